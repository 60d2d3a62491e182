"""Abstract transport interface.

All transport adapters implement this contract. A transport has exactly
one job: get the source's bytes (or, for ArcGIS, its query feed) in
front of a decoder, and tear the connection down again. Transports do
NOT decode, window, or interpret records.

The lifecycle is:
- open(): connect and start the transfer, returning a ByteStream
- abort(): kill the transfer now (socket / descriptor closed), used for
  early termination once the sample window is full
- close(): release everything; always called once by the pipeline,
  after abort() or after the stream was read to the end
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

from datapeek.config import Settings
from datapeek.transports.stream import ByteStream

logger = logging.getLogger("datapeek.transports")


class ConnectionState(str, Enum):
    """Transport connection states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ABORTED = "aborted"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass
class TransportHealth:
    """Snapshot of one transport after (or during) a transfer."""
    state: ConnectionState = ConnectionState.DISCONNECTED
    transport_type: str = ""
    source_url: str = ""
    bytes_read: int = 0
    errors: int = 0
    last_error: str = ""


class BaseTransport(ABC):
    """Abstract base for all datapeek transports.

    One instance serves one request and is never reused.
    """

    def __init__(self, source_url: str, settings: Settings):
        self.source_url = source_url
        self.settings = settings
        self._state = ConnectionState.DISCONNECTED
        self._errors = 0
        self._last_error = ""
        self._stream: ByteStream | None = None

    @property
    @abstractmethod
    def transport_type(self) -> str:
        """Return the transport tag (e.g. 'http', 'ftp')."""
        ...

    @property
    def state(self) -> ConnectionState:
        return self._state

    @abstractmethod
    async def open(self) -> Any:
        """Connect and start the transfer.

        Returns a ByteStream for file transports. Raises
        SourceConnectionError on any connection-level failure.
        """
        ...

    @abstractmethod
    async def abort(self) -> None:
        """Terminate the in-flight transfer immediately. Idempotent."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release all resources and close connections. Never raises."""
        ...

    def health(self) -> TransportHealth:
        """Report transfer state, bytes pulled so far and errors recorded."""
        return TransportHealth(
            state=self._state,
            transport_type=self.transport_type,
            source_url=self.source_url,
            bytes_read=self._stream.bytes_read if self._stream is not None else 0,
            errors=self._errors,
            last_error=self._last_error,
        )

    def _record_error(self, msg: str) -> None:
        """Track errors. Call from subclass on failures."""
        self._errors += 1
        self._last_error = msg
        logger.warning(
            "Transport %s error [%s]: %s",
            self.transport_type, self.source_url, msg,
        )
