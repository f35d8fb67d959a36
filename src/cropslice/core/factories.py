"""Factories for creating configured service instances."""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import aioboto3
from botocore.config import Config as BotoConfig

from .models import PipelineConfig
from .observability import StructuredLogger
from .pipeline import PipelineContext
from .protocols import LoggerProtocol, S3ClientProtocol


class S3ClientFactory:
    """Factory for aioboto3 S3 sessions and clients."""

    @staticmethod
    def create_session(config: PipelineConfig) -> aioboto3.Session:
        """Create a session, using explicit credentials when configured."""
        kwargs: Dict[str, Any] = {}
        if config.region:
            kwargs["region_name"] = config.region
        if config.access_key_id and config.secret_access_key:
            kwargs["aws_access_key_id"] = config.access_key_id
            kwargs["aws_secret_access_key"] = config.secret_access_key
        return aioboto3.Session(**kwargs)

    @staticmethod
    def client_config() -> BotoConfig:
        # SigV4 presigned URLs; request retries are left to with_retry
        return BotoConfig(signature_version="s3v4", retries={"max_attempts": 1, "mode": "standard"})


class PipelineContextFactory:
    """Factory for the process-wide PipelineContext."""

    @staticmethod
    @asynccontextmanager
    async def open(
        config: PipelineConfig,
        s3_client: Optional[S3ClientProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
        **kwargs: Any,
    ) -> AsyncIterator[PipelineContext]:
        """
        Yield a context for the lifetime of the block.

        A real aioboto3 client is opened (and closed on exit) unless one is
        passed in; tests pass a FakeS3Client.
        """
        logger = logger or StructuredLogger("cropslice.pipeline")
        if s3_client is not None:
            yield PipelineContext.create(config, s3_client, logger=logger, **kwargs)
            return

        session = S3ClientFactory.create_session(config)
        async with session.client("s3", config=S3ClientFactory.client_config()) as client:  # type: ignore[reportUnknownMemberType]
            yield PipelineContext.create(config, client, logger=logger, **kwargs)
