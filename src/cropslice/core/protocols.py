"""Protocol definitions for dependency injection and testability."""

from typing import Any, Dict, Optional, Protocol


class S3ClientProtocol(Protocol):
    """Subset of the aioboto3 S3 client used by the pipeline."""

    async def create_multipart_upload(
        self, Bucket: str, Key: str, ContentType: str
    ) -> Dict[str, Any]:
        """Start a multipart upload."""
        ...

    async def upload_part(
        self, Bucket: str, Key: str, PartNumber: int, UploadId: str, Body: bytes
    ) -> Dict[str, Any]:
        """Upload one part of a multipart upload."""
        ...

    async def complete_multipart_upload(
        self, Bucket: str, Key: str, UploadId: str, MultipartUpload: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Finalize a multipart upload into a single object."""
        ...

    async def abort_multipart_upload(
        self, Bucket: str, Key: str, UploadId: str
    ) -> Dict[str, Any]:
        """Discard a multipart upload and its parts."""
        ...

    async def delete_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        """Delete an object."""
        ...

    async def generate_presigned_url(
        self,
        ClientMethod: str,
        Params: Optional[Dict[str, Any]] = None,
        ExpiresIn: int = 3600,
    ) -> str:
        """Sign a request for later use."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for context-aware logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...
