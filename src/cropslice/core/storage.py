"""Administrative operations on stored archives."""

import re

from .exceptions import InputError, storage_errors, with_error_handling
from .protocols import S3ClientProtocol

ARCHIVE_KEY_PATTERN = re.compile(r"^cropped_images_\d{14}\.zip$")


def validate_archive_key(object_key: str, allow_any_key: bool = False) -> str:
    """Reject names that are not archives produced by this service."""
    if not object_key or not object_key.strip():
        raise InputError("File name is required")
    if not allow_any_key and not ARCHIVE_KEY_PATTERN.match(object_key):
        raise InputError(f"Not an archive name: {object_key}")
    return object_key


@with_error_handling
async def delete_archive(
    s3_client: S3ClientProtocol,
    bucket: str,
    object_key: str,
    allow_any_key: bool = False,
) -> None:
    """
    Delete one stored archive. S3 deletes are idempotent, so a missing key
    is not an error.

    Raises:
        InputError: if the name is not an archive name
        StorageError: if the store rejects the delete
    """
    validate_archive_key(object_key, allow_any_key)
    with storage_errors("delete_object", object_key):
        await s3_client.delete_object(Bucket=bucket, Key=object_key)
