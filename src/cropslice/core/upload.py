"""Streaming upload of the archive into a single S3 object."""

import asyncio
from typing import Any, AsyncIterable, Dict, List, Optional

from .exceptions import storage_errors
from .models import MIN_PART_SIZE
from .observability import LogContext, StructuredLogger
from .protocols import LoggerProtocol, S3ClientProtocol


class MultipartUploader:
    """
    Pipes a byte stream into S3 through a multipart upload.

    Chunks are regrouped into parts of ``part_size`` bytes; at most one part
    is buffered. The object is completed only after the stream ends
    normally. Any error or cancellation aborts the multipart upload, so a
    failed attempt never leaves an object behind.
    """

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        bucket: str,
        part_size: int = MIN_PART_SIZE,
        logger: Optional[LoggerProtocol] = None,
    ):
        if part_size < MIN_PART_SIZE:
            raise ValueError(f"part_size must be at least {MIN_PART_SIZE} bytes")
        self._s3_client = s3_client
        self._bucket = bucket
        self._part_size = part_size
        self._logger = logger or StructuredLogger("cropslice.upload")

    async def upload(
        self,
        object_key: str,
        content: AsyncIterable[bytes],
        content_type: str,
        context: Optional[LogContext] = None,
    ) -> Dict[str, Any]:
        """Upload ``content`` as ``object_key``; returns the completion response."""
        context = (context or LogContext()).with_operation("upload")

        with storage_errors("create_multipart_upload", object_key):
            response = await self._s3_client.create_multipart_upload(
                Bucket=self._bucket, Key=object_key, ContentType=content_type
            )
        upload_id = response["UploadId"]
        self._logger.debug("Multipart upload started", context, upload_id=upload_id)

        parts: List[Dict[str, Any]] = []
        try:
            buffer = bytearray()
            async for chunk in content:
                buffer += chunk
                while len(buffer) >= self._part_size:
                    body = bytes(buffer[: self._part_size])
                    del buffer[: self._part_size]
                    parts.append(await self._upload_part(object_key, upload_id, len(parts) + 1, body))

            if buffer or not parts:
                parts.append(await self._upload_part(object_key, upload_id, len(parts) + 1, bytes(buffer)))

            with storage_errors("complete_multipart_upload", object_key):
                result = await self._s3_client.complete_multipart_upload(
                    Bucket=self._bucket,
                    Key=object_key,
                    UploadId=upload_id,
                    MultipartUpload={"Parts": parts},
                )
        except BaseException:
            await asyncio.shield(self._abort(object_key, upload_id, context))
            raise

        self._logger.info("Upload complete", context, parts=len(parts))
        return result

    async def _upload_part(
        self, object_key: str, upload_id: str, part_number: int, body: bytes
    ) -> Dict[str, Any]:
        with storage_errors(f"upload_part {part_number}", object_key):
            response = await self._s3_client.upload_part(
                Bucket=self._bucket,
                Key=object_key,
                PartNumber=part_number,
                UploadId=upload_id,
                Body=body,
            )
        return {"ETag": response["ETag"], "PartNumber": part_number}

    async def _abort(self, object_key: str, upload_id: str, context: LogContext) -> None:
        try:
            with storage_errors("abort_multipart_upload", object_key):
                await self._s3_client.abort_multipart_upload(
                    Bucket=self._bucket, Key=object_key, UploadId=upload_id
                )
        except Exception as exc:  # noqa: BLE001
            self._logger.error(f"Failed to abort multipart upload: {exc}", context, upload_id=upload_id)
        else:
            self._logger.warning("Multipart upload aborted", context, upload_id=upload_id)
