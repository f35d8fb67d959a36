"""Custom exceptions and error handling utilities for cropslice."""

from __future__ import annotations

import inspect
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Iterator, Optional, TypeVar

from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from .logging_config import get_logger


class CropSliceError(Exception):
    """Base exception for all cropslice errors."""

    status_code = 500


class InputError(CropSliceError):
    """Error raised for a malformed request, before any processing."""

    status_code = 400


class ConfigurationError(CropSliceError):
    """Error raised for invalid configuration options."""


class ProcessingError(CropSliceError):
    """Error raised when the source cannot be decoded or a tile cannot be encoded."""


class StreamError(CropSliceError):
    """Error raised while producing or consuming the archive byte stream."""


class StorageError(CropSliceError):
    """Error raised for object store failures (upload attempt, signing, delete)."""


class UploadError(CropSliceError):
    """Error raised once the upload retry budget is exhausted."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


PIL_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)

F = TypeVar("F", bound=Callable[..., Any])


def translate_error(exc: BaseException, operation: str) -> CropSliceError:
    """Map a third-party exception onto the cropslice taxonomy."""
    if isinstance(exc, CropSliceError):
        return exc
    if isinstance(exc, (BotoCoreError, ClientError)):
        return StorageError(f"S3 operation failed in {operation}: {exc}")
    if isinstance(exc, PIL_ERRORS):
        return ProcessingError(f"Image processing failed in {operation}: {exc}")
    return ProcessingError(f"Unexpected error in {operation}: {exc}")


def with_error_handling(func: F) -> F:
    """Wrap a function (sync or async) with standardized error handling."""

    if inspect.iscoroutinefunction(func):

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except CropSliceError:
                raise
            except Exception as exc:  # noqa: BLE001
                get_logger("cropslice").error(
                    f"Unhandled error in {func.__name__}: {exc}", exc_info=True
                )
                raise translate_error(exc, func.__name__) from exc

        return async_wrapper  # type: ignore[return-value]

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CropSliceError:
            raise
        except Exception as exc:  # noqa: BLE001
            get_logger("cropslice").error(
                f"Unhandled error in {func.__name__}: {exc}", exc_info=True
            )
            raise translate_error(exc, func.__name__) from exc

    return wrapper  # type: ignore[return-value]


@contextmanager
def storage_errors(operation: str, key: Optional[str] = None) -> Iterator[None]:
    """Context manager turning botocore failures into StorageError."""
    try:
        yield
    except CropSliceError:
        raise
    except Exception as exc:  # noqa: BLE001
        target = f" for {key}" if key else ""
        raise StorageError(f"{operation} failed{target}: {exc}") from exc
