"""Core components of the crop-and-archive pipeline."""

from .logging_config import get_logger, set_debug, setup_logger
from .exceptions import (
    ConfigurationError,
    CropSliceError,
    InputError,
    ProcessingError,
    StorageError,
    StreamError,
    UploadError,
    with_error_handling,
)
from .models import (
    CropResult,
    CropSpec,
    EncodedTile,
    ErrorPayload,
    PipelineConfig,
    SignedLink,
    TileRect,
    UploadJob,
)
from .grid import iter_grid, member_name, plan_grid
from .validation import parse_crop_spec, require_image
from .encoder import EncodeLimiter, SourceImage, TileEncoder
from .channel import ByteChannel
from .archive import ArchiveBuilder
from .retry import BackoffPolicy, with_retry
from .upload import MultipartUploader
from .links import LinkIssuer
from .storage import delete_archive
from .pipeline import CropPipeline, PipelineContext, archive_key

__all__ = [
    "setup_logger",
    "get_logger",
    "set_debug",
    "CropSliceError",
    "InputError",
    "ConfigurationError",
    "ProcessingError",
    "StreamError",
    "StorageError",
    "UploadError",
    "with_error_handling",
    "CropSpec",
    "TileRect",
    "EncodedTile",
    "SignedLink",
    "UploadJob",
    "CropResult",
    "ErrorPayload",
    "PipelineConfig",
    "plan_grid",
    "iter_grid",
    "member_name",
    "parse_crop_spec",
    "require_image",
    "SourceImage",
    "EncodeLimiter",
    "TileEncoder",
    "ByteChannel",
    "ArchiveBuilder",
    "BackoffPolicy",
    "with_retry",
    "MultipartUploader",
    "LinkIssuer",
    "delete_archive",
    "PipelineContext",
    "CropPipeline",
    "archive_key",
]
