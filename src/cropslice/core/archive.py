"""Incremental zip archive construction on top of a ByteChannel."""

import asyncio
import zipfile
from datetime import datetime
from typing import List, Optional, Set

from .channel import ByteChannel
from .exceptions import CropSliceError, StreamError
from .logging_config import get_logger
from .models import EncodedTile

COMPRESSION_METHODS = {
    "deflated": zipfile.ZIP_DEFLATED,
    "stored": zipfile.ZIP_STORED,
}

logger = get_logger("cropslice.archive")


class _PendingBytes:
    """
    Write-only, non-seekable file object for ZipFile.

    ZipFile falls back to data descriptors when ``tell`` is missing, so each
    member can be emitted as soon as it is written.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.total = 0

    def write(self, data: bytes) -> int:
        self._buffer += data
        self.total += len(data)
        return len(data)

    def flush(self) -> None:
        pass

    def take(self) -> bytes:
        data = bytes(self._buffer)
        self._buffer.clear()
        return data


class ArchiveBuilder:
    """
    Writes EncodedTiles into a zip stream, one member at a time.

    Members are appended in the order they arrive; each member's name comes
    from its tile origin, so arrival order never changes naming. Bytes are
    pushed into the channel after every member, never held for the whole
    archive.
    """

    def __init__(
        self,
        channel: ByteChannel,
        compression: str = "deflated",
        date_time: Optional[datetime] = None,
    ):
        if compression not in COMPRESSION_METHODS:
            raise ValueError(f"Unknown archive compression: {compression}")
        self._channel = channel
        self._compression = COMPRESSION_METHODS[compression]
        self._date_time = (date_time or datetime.now()).timetuple()[:6]
        self._sink = _PendingBytes()
        self._zip = zipfile.ZipFile(
            self._sink, mode="w", compression=self._compression, allowZip64=True
        )
        self._names: List[str] = []
        self._name_set: Set[str] = set()
        self._finished = False

    @property
    def member_names(self) -> List[str]:
        """Member names in write order."""
        return list(self._names)

    @property
    def bytes_written(self) -> int:
        return self._sink.total

    def _write_member(self, tile: EncodedTile) -> None:
        info = zipfile.ZipInfo(tile.name, date_time=self._date_time)
        info.compress_type = self._compression
        info.external_attr = 0o644 << 16
        self._zip.writestr(info, tile.data)

    async def add_member(self, tile: EncodedTile) -> None:
        """Append one tile and forward the produced bytes downstream."""
        if self._finished:
            raise StreamError("Cannot add members to a finished archive")
        if tile.name in self._name_set:
            raise StreamError(f"Duplicate archive member: {tile.name}")

        try:
            await asyncio.to_thread(self._write_member, tile)
        except (OSError, ValueError, zipfile.LargeZipFile) as exc:
            raise StreamError(f"Failed to write archive member {tile.name}: {exc}") from exc

        self._names.append(tile.name)
        self._name_set.add(tile.name)
        await self._flush()

    async def finish(self) -> None:
        """Write the central directory and signal completion."""
        if self._finished:
            return
        self._finished = True
        try:
            self._zip.close()
        except (OSError, ValueError) as exc:
            raise StreamError(f"Failed to finalize archive: {exc}") from exc
        await self._flush()
        await self._channel.close()
        logger.debug(
            f"Archive complete: {len(self._names)} members, {self._sink.total} bytes"
        )

    async def abort(self, error: BaseException) -> None:
        """Propagate a failure downstream instead of completing the stream."""
        self._finished = True
        if not isinstance(error, CropSliceError):
            wrapped = StreamError(f"Archive production failed: {error}")
            wrapped.__cause__ = error
            error = wrapped
        await self._channel.fail(error)

    async def _flush(self) -> None:
        data = self._sink.take()
        if data:
            await self._channel.send(data)
