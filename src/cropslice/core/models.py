"""Shared data models for cropslice."""

import os
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveInt,
    ValidationError,
)

from .exceptions import ConfigurationError

MIN_PART_SIZE = 5 * 1024 * 1024
ARCHIVE_CONTENT_TYPE = "application/zip"
MEMBER_NAME_TEMPLATE = "crop_{x}_{y}.jpg"


class CropSpec(BaseModel):
    """Requested tile size, validated at ingress."""

    model_config = ConfigDict(frozen=True)

    tile_width: PositiveInt
    tile_height: PositiveInt


class TileRect(BaseModel):
    """One cell of the grid partition, in source pixel coordinates."""

    model_config = ConfigDict(frozen=True)

    origin_x: NonNegativeInt
    origin_y: NonNegativeInt
    width: PositiveInt
    height: PositiveInt

    @property
    def box(self) -> tuple:
        """Pillow crop box (left, upper, right, lower)."""
        return (
            self.origin_x,
            self.origin_y,
            self.origin_x + self.width,
            self.origin_y + self.height,
        )


def member_name(rect: TileRect) -> str:
    """Archive member name of a tile, derived from its origin only."""
    return MEMBER_NAME_TEMPLATE.format(x=rect.origin_x, y=rect.origin_y)


class EncodedTile(BaseModel):
    """Encoded bytes of one tile; the member name depends on the origin only."""

    model_config = ConfigDict(frozen=True)

    rect: TileRect
    data: bytes

    @property
    def name(self) -> str:
        return member_name(self.rect)


class SignedLink(BaseModel):
    """Time-limited retrieval URL for a stored archive."""

    model_config = ConfigDict(frozen=True)

    url: str
    expires_at: datetime
    object_key: str


class UploadJob(BaseModel):
    """Per-job upload record, updated by the retry loop only."""

    object_key: str
    content_type: str = ARCHIVE_CONTENT_TYPE
    attempt: int = 0


class CropResult(BaseModel):
    """Successful response payload."""

    model_config = ConfigDict(populate_by_name=True)

    file_url: str = Field(alias="fileUrl")
    file_name: str = Field(alias="fileName")

    def to_payload(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)


class ErrorPayload(BaseModel):
    """Failure response payload."""

    error: str


class PipelineConfig(BaseModel):
    """Configuration for the crop-and-archive pipeline."""

    bucket: str = Field(min_length=1)
    region: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    jpeg_quality: int = Field(default=60, ge=1, le=95)
    encode_concurrency: int = Field(default=2, ge=1)
    max_pending_tiles: int = Field(default=4, ge=1)
    max_image_bytes: int = Field(default=50 * 1024 * 1024, ge=1)
    part_size: int = Field(default=MIN_PART_SIZE, ge=MIN_PART_SIZE)
    channel_capacity: int = Field(default=8, ge=1)
    max_upload_attempts: int = Field(default=2, ge=1, le=5)
    retry_initial_delay: float = Field(default=1.0, ge=0)
    retry_backoff_factor: float = Field(default=2.0, ge=1)
    retry_max_delay: float = Field(default=8.0, ge=0)
    link_ttl_seconds: int = Field(default=86400, ge=3600)
    archive_compression: Literal["deflated", "stored"] = "deflated"
    debug: bool = False

    @classmethod
    def build(cls, **values: Any) -> "PipelineConfig":
        """Construct a config, reporting validation failures as ConfigurationError."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    @classmethod
    def from_env(cls, **overrides: Any) -> "PipelineConfig":
        """
        Build the configuration from environment variables.

        Environment Variables:
            BUCKET_NAME: destination bucket (required)
            REGION: bucket region
            AWS_ACCESSKEY / AWS_SECRET_ACCESSKEY: explicit credentials
            JPEG_QUALITY, ENCODE_CONCURRENCY, MAX_PENDING_TILES,
            MAX_IMAGE_BYTES, PART_SIZE, MAX_UPLOAD_ATTEMPTS, LINK_TTL_SECONDS
        """
        env_map = {
            "bucket": "BUCKET_NAME",
            "region": "REGION",
            "access_key_id": "AWS_ACCESSKEY",
            "secret_access_key": "AWS_SECRET_ACCESSKEY",
            "jpeg_quality": "JPEG_QUALITY",
            "encode_concurrency": "ENCODE_CONCURRENCY",
            "max_pending_tiles": "MAX_PENDING_TILES",
            "max_image_bytes": "MAX_IMAGE_BYTES",
            "part_size": "PART_SIZE",
            "max_upload_attempts": "MAX_UPLOAD_ATTEMPTS",
            "link_ttl_seconds": "LINK_TTL_SECONDS",
        }
        values: Dict[str, Any] = {}
        for field_name, env_var in env_map.items():
            raw = os.getenv(env_var)
            if raw:
                values[field_name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})

        if "bucket" not in values:
            raise ConfigurationError("BUCKET_NAME is not set")
        return cls.build(**values)
