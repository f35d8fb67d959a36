"""Crop-and-archive pipeline: plan, encode, archive, upload, sign."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Set

from .archive import ArchiveBuilder
from .channel import ByteChannel
from .encoder import EncodeLimiter, SourceImage, TileEncoder, run_in_worker
from .exceptions import StorageError, with_error_handling
from .grid import grid_shape, plan_grid
from .links import LinkIssuer, utc_now
from .models import CropResult, CropSpec, PipelineConfig, SignedLink, TileRect, UploadJob
from .observability import LogContext, MetricsCollector, StructuredLogger, timed_stage
from .protocols import LoggerProtocol, S3ClientProtocol
from .retry import BackoffPolicy, with_retry
from .storage import delete_archive
from .upload import MultipartUploader

ARCHIVE_NAME_FORMAT = "cropped_images_{timestamp}.zip"


def archive_key(started_at: datetime) -> str:
    """Object key for a job started at ``started_at``."""
    return ARCHIVE_NAME_FORMAT.format(timestamp=started_at.strftime("%Y%m%d%H%M%S"))


@dataclass
class PipelineContext:
    """
    Everything a job needs from the process: configuration, the shared S3
    client and the shared encode limiter.

    Build one per process and hand it to each job; tests build one per test
    around a fake client.
    """

    config: PipelineConfig
    s3_client: S3ClientProtocol
    limiter: EncodeLimiter
    logger: LoggerProtocol = field(default_factory=lambda: StructuredLogger("cropslice.pipeline"))
    metrics: MetricsCollector = field(default_factory=MetricsCollector)
    clock: Callable[[], datetime] = utc_now
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    @classmethod
    def create(cls, config: PipelineConfig, s3_client: S3ClientProtocol, **kwargs: Any) -> "PipelineContext":
        return cls(
            config=config,
            s3_client=s3_client,
            limiter=EncodeLimiter(config.encode_concurrency),
            **kwargs,
        )


class CropPipeline:
    """
    Runs one crop job.

    Every upload attempt re-encodes all tiles and rebuilds the archive from
    the decoded source, so a retry never depends on bytes from a failed
    attempt.
    """

    def __init__(self, context: PipelineContext):
        self._context = context
        config = context.config
        self._encoder = TileEncoder(context.limiter, quality=config.jpeg_quality)
        self._uploader = MultipartUploader(
            context.s3_client, config.bucket, part_size=config.part_size, logger=context.logger
        )
        self._links = LinkIssuer(context.s3_client, config.bucket, clock=context.clock)
        self._backoff = BackoffPolicy(
            initial_delay=config.retry_initial_delay,
            factor=config.retry_backoff_factor,
            max_delay=config.retry_max_delay,
        )

    @with_error_handling
    async def run(self, image_bytes: bytes, crop_spec: CropSpec) -> CropResult:
        """
        Crop ``image_bytes`` into tiles, upload the zip and return its link.

        Raises:
            ProcessingError: the image cannot be decoded or a tile cannot be encoded
            StreamError: the archive stream broke
            UploadError: every upload attempt failed
            StorageError: the link could not be signed
        """
        context = self._context
        started_at = context.clock()
        job = UploadJob(object_key=archive_key(started_at))
        log_context = LogContext(component="crop_pipeline").with_metadata(
            object_key=job.object_key,
            tile=f"{crop_spec.tile_width}x{crop_spec.tile_height}",
        )
        context.logger.info("Starting crop job", log_context, image_bytes=len(image_bytes))

        async with timed_stage("decode", context.metrics, context.logger, log_context):
            async with context.limiter:
                source = await run_in_worker(SourceImage.load, image_bytes)

        rects = plan_grid(source.width, source.height, crop_spec.tile_width, crop_spec.tile_height)
        columns, rows = grid_shape(source.width, source.height, crop_spec.tile_width, crop_spec.tile_height)
        context.logger.info(
            "Planned grid",
            log_context,
            image=f"{source.width}x{source.height}",
            format=source.format,
            tiles=len(rects),
            grid=f"{columns}x{rows}",
        )

        async def attempt(number: int) -> None:
            job.attempt = number
            await self._upload_attempt(source, rects, job, started_at, log_context.with_metadata(attempt=number))

        async with timed_stage("upload", context.metrics, context.logger, log_context):
            await with_retry(
                attempt,
                max_attempts=context.config.max_upload_attempts,
                backoff=self._backoff,
                retry_on=(StorageError,),
                sleep=context.sleep,
                operation_name="upload",
            )

        link = await self._issue_link(job.object_key, log_context)
        context.logger.info("Crop job complete", log_context, attempts=job.attempt, expires_at=link.expires_at.isoformat())
        return CropResult(file_url=link.url, file_name=job.object_key)

    async def _upload_attempt(
        self,
        source: SourceImage,
        rects: List[TileRect],
        job: UploadJob,
        started_at: datetime,
        log_context: LogContext,
    ) -> None:
        config = self._context.config
        channel = ByteChannel(config.channel_capacity)
        builder = ArchiveBuilder(channel, compression=config.archive_compression, date_time=started_at)
        producer = asyncio.create_task(self._produce(source, rects, builder, log_context))

        try:
            await self._uploader.upload(job.object_key, channel, job.content_type, log_context)
        except BaseException:
            channel.cancel()
            producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)
            raise
        await producer

    async def _produce(
        self,
        source: SourceImage,
        rects: List[TileRect],
        builder: ArchiveBuilder,
        log_context: LogContext,
    ) -> None:
        context = self._context
        try:
            async with timed_stage("encode", context.metrics, context.logger, log_context):
                await self._encode_into(source, rects, builder)
            await builder.finish()
        except Exception as exc:
            await builder.abort(exc)
            raise

    async def _encode_into(
        self, source: SourceImage, rects: List[TileRect], builder: ArchiveBuilder
    ) -> None:
        # At most max_pending_tiles tiles exist at once; new encodes start
        # only after a finished tile was handed to the archive.
        max_pending = self._context.config.max_pending_tiles
        remaining = iter(rects)
        pending: Set["asyncio.Task[Any]"] = set()
        try:
            while True:
                while len(pending) < max_pending:
                    rect = next(remaining, None)
                    if rect is None:
                        break
                    pending.add(asyncio.create_task(self._encoder.encode(source, rect)))
                if not pending:
                    return

                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                failures = [task.exception() for task in done if task.exception() is not None]
                if failures:
                    raise failures[0]  # type: ignore[misc]
                for task in done:
                    await builder.add_member(task.result())
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def _issue_link(self, object_key: str, log_context: LogContext) -> SignedLink:
        context = self._context
        try:
            async with timed_stage("link", context.metrics, context.logger, log_context):
                return await self._links.issue(object_key, context.config.link_ttl_seconds)
        except StorageError:
            context.logger.warning("Link issuance failed, deleting uploaded archive", log_context)
            try:
                await delete_archive(context.s3_client, context.config.bucket, object_key)
            except StorageError as cleanup_error:
                context.logger.error(f"Orphaned archive left in store: {cleanup_error}", log_context)
            raise

