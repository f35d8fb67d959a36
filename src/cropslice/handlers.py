"""Request boundary: turn crop/delete requests into (status, payload) pairs.

These functions are what an HTTP layer calls after parsing the multipart
form. They never raise for pipeline failures; every error is mapped to a
status code and an ``{"error": ...}`` payload here.
"""

from typing import Any, Dict, Optional, Tuple

from .core import (
    CropPipeline,
    CropSliceError,
    ErrorPayload,
    InputError,
    PipelineContext,
    delete_archive,
    get_logger,
    parse_crop_spec,
    require_image,
)

Response = Tuple[int, Dict[str, Any]]

logger = get_logger("cropslice.handlers")


def _error(status: int, message: str) -> Response:
    return status, ErrorPayload(error=message).model_dump()


async def handle_crop_request(
    context: PipelineContext,
    image: Optional[bytes],
    crop_width: Any,
    crop_height: Any,
) -> Response:
    """Validate the request, run the pipeline and build the response payload."""
    try:
        image_bytes = require_image(image, context.config.max_image_bytes)
        crop_spec = parse_crop_spec(crop_width, crop_height)
    except InputError as exc:
        logger.info(f"Rejected crop request: {exc}")
        return _error(exc.status_code, str(exc))

    try:
        result = await CropPipeline(context).run(image_bytes, crop_spec)
    except CropSliceError as exc:
        logger.error(f"Error during image processing or uploading ({type(exc).__name__}): {exc}")
        return _error(exc.status_code, f"Error processing image: {exc}")

    return 200, result.to_payload()


async def handle_delete_request(context: PipelineContext, file_name: Optional[str]) -> Response:
    """Delete a stored archive by name."""
    try:
        await delete_archive(context.s3_client, context.config.bucket, file_name or "")
    except CropSliceError as exc:
        logger.error(f"Failed to delete {file_name!r}: {exc}")
        return _error(exc.status_code, f"Error deleting file: {exc}")

    logger.info(f"Deleted archive {file_name}")
    return 200, {"message": f"Deleted {file_name}"}
