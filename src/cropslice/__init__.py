"""cropslice: split an image into tiles and deliver them as a zip archive on S3."""

__version__ = "0.1.0"
