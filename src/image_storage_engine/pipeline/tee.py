"""Fan one readable byte source out to several independently paced taps."""

import asyncio
import inspect
from typing import Any, AsyncIterator, List, Optional

from ..core.logging_config import get_logger

CHUNK_SIZE = 64 * 1024

_EOF = object()


class _SourceFailure:
    def __init__(self, error: BaseException):
        self.error = error


async def iter_source(source: Any, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    """
    Iterate a host supplied source as byte chunks.

    Accepts an async iterable of bytes, an object with an async ``read(n)``
    (e.g. an ASGI upload) or a blocking binary file object, which is read
    in a worker thread.
    """
    if hasattr(source, "__aiter__"):
        async for chunk in source:
            if chunk:
                yield bytes(chunk)
        return

    read = getattr(source, "read", None)
    if read is None:
        raise TypeError(f"Unsupported upload stream type: {type(source).__name__}")

    if inspect.iscoroutinefunction(read):
        while True:
            chunk = await read(chunk_size)
            if not chunk:
                return
            yield bytes(chunk)
    else:
        while True:
            chunk = await asyncio.to_thread(read, chunk_size)
            if not chunk:
                return
            yield bytes(chunk)


class StreamTee:
    """
    Broadcast a single source to ``taps`` consumers.

    Every tap sees every chunk. Each tap has a bounded queue, so a slow
    consumer eventually holds back the shared source and with it every
    other tap. A read error on the source is delivered to all taps.
    """

    def __init__(self, source: Any, taps: int, max_buffer: int = 16):
        if taps < 1:
            raise ValueError("A tee needs at least one tap")
        self._source = source
        self._queues: List[asyncio.Queue] = [
            asyncio.Queue(maxsize=max_buffer) for _ in range(taps)
        ]
        self._taken = [False] * taps
        self._pump: Optional[asyncio.Task] = None
        self._logger = get_logger("tee")

    def __len__(self) -> int:
        return len(self._queues)

    def tap(self, index: int) -> AsyncIterator[bytes]:
        """Return the iterator of tap ``index``; each tap can be taken once."""
        if self._taken[index]:
            raise RuntimeError(f"Tap {index} has already been taken")
        self._taken[index] = True
        return self._read_tap(self._queues[index])

    def start(self) -> None:
        """Start pumping the source; idempotent."""
        if self._pump is None:
            self._pump = asyncio.create_task(self._run())

    async def _run(self) -> None:
        total = 0
        try:
            async for chunk in iter_source(self._source):
                total += len(chunk)
                for queue in self._queues:
                    await queue.put(chunk)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._logger.error(f"Source stream failed after {total} bytes: {exc}")
            failure = _SourceFailure(exc)
            for queue in self._queues:
                await queue.put(failure)
            return

        self._logger.debug(f"Source exhausted after {total} bytes")
        for queue in self._queues:
            await queue.put(_EOF)

    async def _read_tap(self, queue: asyncio.Queue) -> AsyncIterator[bytes]:
        self.start()
        while True:
            item = await queue.get()
            if item is _EOF:
                return
            if isinstance(item, _SourceFailure):
                raise item.error
            yield item

    async def aclose(self) -> None:
        """Stop the pump if it is still running."""
        if self._pump is not None and not self._pump.done():
            self._pump.cancel()
            await asyncio.gather(self._pump, return_exceptions=True)
