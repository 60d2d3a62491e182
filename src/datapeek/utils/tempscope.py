"""Request-scoped temporary files.

A TempScope owns every temp file created while serving one request:
spooled ZIP archives and extracted DBF tables. It is opened when the
request starts and cleaned up exactly once when the pipeline finishes,
whatever the outcome. Scopes are never shared, so cleaning one up cannot
delete a file another request is still reading.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from datapeek.transports.stream import ByteStream

logger = logging.getLogger("datapeek.utils.tempscope")


class TempScope:
    """Owns zero or more temp files and deletes them on cleanup.

    Use as a context manager; deletion is best-effort and failures are
    logged rather than raised so they never fail the request.
    """

    def __init__(self, directory: str | None = None):
        self._directory = directory
        self._paths: list[Path] = []
        self._closed = False

    def __enter__(self) -> TempScope:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def create(self, suffix: str = "") -> Path:
        """Allocate a new empty temp file owned by this scope."""
        if self._closed:
            raise RuntimeError("TempScope has already been cleaned up")
        fd, name = tempfile.mkstemp(
            prefix="datapeek-", suffix=suffix, dir=self._directory
        )
        os.close(fd)
        path = Path(name)
        self._paths.append(path)
        return path

    async def spool(
        self, stream: ByteStream, suffix: str = "", chunk_size: int = 64 * 1024
    ) -> Path:
        """Copy a byte stream to a new temp file and return its path.

        The stream is read to exhaustion; callers use this when the
        consumer needs random access (ZIP directories, DBF tables).
        """
        path = self.create(suffix)
        written = 0
        with open(path, "wb") as fh:
            while True:
                chunk = await stream.read(chunk_size)
                if not chunk:
                    break
                await asyncio.to_thread(fh.write, chunk)
                written += len(chunk)
        logger.debug("wrote %d bytes to %s", written, path)
        return path

    def cleanup(self) -> dict[str, int]:
        """Delete every owned file. Runs at most once."""
        stats = {"files": 0, "errors": 0}
        if self._closed:
            return stats
        self._closed = True
        for path in self._paths:
            try:
                path.unlink(missing_ok=True)
                stats["files"] += 1
            except OSError as e:
                stats["errors"] += 1
                logger.warning("Failed to remove temp file %s: %s", path, e)
        self._paths.clear()
        logger.debug("temp clean up: %s", stats)
        return stats
