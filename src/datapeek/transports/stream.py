"""Pull-based byte stream shared by transports and decoders.

A ByteStream wraps an async iterator of byte chunks (an httpx response
body, an FTP data connection, a file opened inside a ZIP archive) and
exposes the small file-like surface the decoders need:

    read(n)     - up to n bytes, b"" once the source is exhausted
    unshift(b)  - push bytes back so the next read returns them first
    aclose()    - stop reading and release the underlying resource

Closing is what makes early termination work: aclose() runs the owner's
close callback, which shuts the socket or file descriptor rather than
just abandoning the iterator. A read after close returns b"" and never
pulls from the source again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import IO, AsyncIterator, Awaitable, Callable

logger = logging.getLogger("datapeek.transports.stream")

CloseCallback = Callable[[], Awaitable[None]]


class ByteStream:
    """Readable, closeable, non-restartable byte stream."""

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        on_close: CloseCallback | None = None,
        name: str = "",
    ):
        self.name = name
        self._chunks = chunks
        self._on_close = on_close
        self._pending = bytearray()
        self._exhausted = False
        self._closed = False
        self.bytes_read = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def exhausted(self) -> bool:
        """True once the source reported end-of-stream on its own."""
        return self._exhausted

    async def _pull(self) -> bytes:
        while True:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                return b""
            if chunk:
                self.bytes_read += len(chunk)
                return bytes(chunk)

    async def read(self, size: int = -1) -> bytes:
        """Return up to size bytes; at most one chunk is pulled per call.

        A negative size drains the stream.
        """
        if size is None or size < 0:
            parts = [await self.read(1 << 20)]
            while parts[-1]:
                parts.append(await self.read(1 << 20))
            return b"".join(parts)
        if size == 0:
            return b""

        if not self._pending:
            if self._closed or self._exhausted:
                return b""
            chunk = await self._pull()
            if not chunk:
                return b""
            self._pending.extend(chunk)

        data = bytes(self._pending[:size])
        del self._pending[:size]
        return data

    def unshift(self, data: bytes) -> None:
        """Put bytes back at the front of the stream."""
        if data:
            self._pending[:0] = data

    async def aclose(self) -> None:
        """Stop the stream and release the resource behind it. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        aclose = getattr(self._chunks, "aclose", None)
        try:
            if aclose is not None:
                await aclose()
        finally:
            if self._on_close is not None:
                await self._on_close()

    async def __aenter__(self) -> ByteStream:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


async def iter_file(fh: IO[bytes], chunk_size: int) -> AsyncIterator[bytes]:
    """Yield chunks of a local file without blocking the event loop."""
    while True:
        chunk = await asyncio.to_thread(fh.read, chunk_size)
        if not chunk:
            return
        yield chunk


def file_stream(fh: IO[bytes], chunk_size: int = 64 * 1024, name: str = "") -> ByteStream:
    """ByteStream over an open binary file; closing it closes the file."""

    async def _close() -> None:
        fh.close()

    return ByteStream(iter_file(fh, chunk_size), on_close=_close, name=name)

