"""Testing utilities and fakes for cropslice."""

from .fakes import (
    FakeLogger,
    FakeS3Client,
    MultipartState,
    RecordingSleep,
    S3Object,
    create_test_image,
    setup_test_s3_environment,
)

__all__ = [
    "FakeS3Client",
    "FakeLogger",
    "MultipartState",
    "RecordingSleep",
    "S3Object",
    "create_test_image",
    "setup_test_s3_environment",
]
