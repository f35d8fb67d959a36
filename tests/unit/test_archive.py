"""Unit tests for the incremental archive builder."""

import asyncio
import io
import zipfile
from datetime import datetime

import pytest

from cropslice.core.archive import ArchiveBuilder
from cropslice.core.channel import ByteChannel
from cropslice.core.exceptions import ProcessingError, StreamError
from cropslice.core.models import EncodedTile, TileRect


def _tile(x: int, y: int, payload: bytes = b"jpeg-bytes") -> EncodedTile:
    return EncodedTile(rect=TileRect(origin_x=x, origin_y=y, width=10, height=10), data=payload)


async def _collect(channel: ByteChannel) -> bytes:
    return b"".join([chunk async for chunk in channel])


class TestArchiveBuilder:
    """Tests for ArchiveBuilder."""

    @pytest.mark.parametrize("compression", ["deflated", "stored"])
    def test_builds_valid_zip(self, compression):
        async def run():
            channel = ByteChannel(capacity=16)
            builder = ArchiveBuilder(channel, compression=compression, date_time=datetime(2024, 5, 6, 7, 8, 10))
            consumer = asyncio.create_task(_collect(channel))
            await builder.add_member(_tile(0, 0, b"a" * 100))
            await builder.add_member(_tile(10, 0, b"b" * 50))
            await builder.finish()
            return builder, await consumer

        builder, data = asyncio.run(run())

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert archive.testzip() is None
            assert archive.namelist() == ["crop_0_0.jpg", "crop_10_0.jpg"]
            assert archive.read("crop_0_0.jpg") == b"a" * 100
            assert archive.getinfo("crop_10_0.jpg").date_time == (2024, 5, 6, 7, 8, 10)
        assert builder.member_names == ["crop_0_0.jpg", "crop_10_0.jpg"]
        assert builder.bytes_written == len(data)

    def test_emits_bytes_before_finish(self):
        async def run():
            channel = ByteChannel(capacity=16)
            builder = ArchiveBuilder(channel)
            await builder.add_member(_tile(0, 0))
            return channel.bytes_sent

        assert asyncio.run(run()) > 0

    def test_names_follow_origin_not_arrival_order(self):
        async def run():
            channel = ByteChannel(capacity=16)
            builder = ArchiveBuilder(channel)
            consumer = asyncio.create_task(_collect(channel))
            for x, y in [(50, 50), (0, 0), (0, 50), (50, 0)]:
                await builder.add_member(_tile(x, y, f"{x}-{y}".encode()))
            await builder.finish()
            return await consumer

        data = asyncio.run(run())

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert sorted(archive.namelist()) == [
                "crop_0_0.jpg",
                "crop_0_50.jpg",
                "crop_50_0.jpg",
                "crop_50_50.jpg",
            ]
            assert archive.read("crop_50_0.jpg") == b"50-0"

    def test_duplicate_member_rejected(self):
        async def run():
            builder = ArchiveBuilder(ByteChannel(capacity=16))
            await builder.add_member(_tile(0, 0))
            with pytest.raises(StreamError, match="Duplicate"):
                await builder.add_member(_tile(0, 0))

        asyncio.run(run())

    def test_duplicate_detected_among_many_members(self):
        async def run():
            channel = ByteChannel(capacity=4)
            consumer = asyncio.create_task(_collect(channel))
            builder = ArchiveBuilder(channel, compression="stored")
            for index in range(500):
                await builder.add_member(_tile(index * 10, 0, b"x"))
            with pytest.raises(StreamError, match="Duplicate archive member: crop_2500_0.jpg"):
                await builder.add_member(_tile(2500, 0, b"y"))
            await builder.finish()
            return builder, await consumer

        builder, data = asyncio.run(run())

        assert len(builder.member_names) == 500
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert archive.read("crop_2500_0.jpg") == b"x"

    def test_add_after_finish_rejected(self):
        async def run():
            builder = ArchiveBuilder(ByteChannel(capacity=16))
            await builder.finish()
            with pytest.raises(StreamError, match="finished"):
                await builder.add_member(_tile(0, 0))

        asyncio.run(run())

    def test_abort_propagates_error_to_consumer(self):
        async def run():
            channel = ByteChannel(capacity=16)
            builder = ArchiveBuilder(channel)
            await builder.add_member(_tile(0, 0))
            await builder.abort(ProcessingError("tile failed"))
            with pytest.raises(ProcessingError, match="tile failed"):
                await _collect(channel)

        asyncio.run(run())

    def test_abort_wraps_foreign_errors(self):
        async def run():
            channel = ByteChannel(capacity=16)
            builder = ArchiveBuilder(channel)
            await builder.abort(RuntimeError("kaboom"))
            with pytest.raises(StreamError, match="kaboom"):
                await _collect(channel)

        asyncio.run(run())

    def test_consumer_abort_fails_writer(self):
        async def run():
            channel = ByteChannel(capacity=16)
            builder = ArchiveBuilder(channel)
            channel.cancel()
            with pytest.raises(StreamError):
                await builder.add_member(_tile(0, 0))

        asyncio.run(run())

    def test_unknown_compression(self):
        with pytest.raises(ValueError):
            ArchiveBuilder(ByteChannel(), compression="lzma")
