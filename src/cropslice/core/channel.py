"""Bounded producer/consumer byte channel with data, completion and error signals."""

import asyncio
from typing import AsyncIterator, Optional, Union

from .exceptions import StreamError


class _Completed:
    pass


class _Failed:
    def __init__(self, error: BaseException):
        self.error = error


_COMPLETED = _Completed()
_Item = Union[bytes, _Completed, _Failed]


class ByteChannel:
    """
    One-pass pipe between the archive producer and the upload consumer.

    ``send`` blocks while ``capacity`` chunks are queued, so a slow consumer
    stalls the producer. The consumer iterates the channel; iteration ends on
    ``close()`` and raises the producer's error after ``fail()``. A consumer
    that gives up calls ``cancel()``, after which ``send`` raises
    StreamError.
    """

    def __init__(self, capacity: int = 8):
        if capacity < 1:
            raise ValueError(f"Channel capacity must be at least 1, got {capacity}")
        self._queue: "asyncio.Queue[_Item]" = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self._finished = False
        self._cancelled: Optional[BaseException] = None
        self.bytes_sent = 0
        self.chunks_sent = 0

    @property
    def closed(self) -> bool:
        """True once the producer signalled completion or failure."""
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self._cancelled is not None

    def _check_writable(self) -> None:
        if self._cancelled is not None:
            raise StreamError(f"Stream consumer aborted: {self._cancelled}") from self._cancelled
        if self._closed:
            raise StreamError("Cannot write to a closed stream")

    async def send(self, chunk: bytes) -> None:
        """Queue one chunk, waiting for room if the consumer is behind."""
        self._check_writable()
        if not chunk:
            return
        await self._queue.put(bytes(chunk))
        # cancel() may have drained the queue while we were waiting
        self._check_writable()
        self.bytes_sent += len(chunk)
        self.chunks_sent += 1

    async def close(self) -> None:
        """Signal that no more chunks will be sent."""
        self._check_writable()
        self._closed = True
        await self._queue.put(_COMPLETED)

    async def fail(self, error: BaseException) -> None:
        """Signal a producer failure; the consumer re-raises ``error``."""
        if self._closed or self._cancelled is not None:
            return
        self._closed = True
        await self._queue.put(_Failed(error))

    def cancel(self, reason: Optional[BaseException] = None) -> None:
        """Abort from the consumer side and release a blocked producer."""
        if self._cancelled is None:
            self._cancelled = reason or StreamError("consumer cancelled")
        while not self._queue.empty():
            self._queue.get_nowait()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self

    async def __anext__(self) -> bytes:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, _Completed):
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, _Failed):
            self._finished = True
            raise item.error
        return item
