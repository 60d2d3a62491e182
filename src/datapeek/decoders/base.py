"""Shared decoder plumbing.

A decoder is a coroutine `decode(stream, ctx)` that reads records from
a ByteStream, offers them to the context's collector in source order,
and returns when the source is exhausted or the collector reports the
window full. In the latter case the decoder closes the stream itself,
which aborts the transport underneath it.

Decoders raise DecodeError for malformed payloads and must tolerate
their stream being closed under them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable

from datapeek.sampling.collector import SampleCollector
from datapeek.transports.stream import ByteStream
from datapeek.utils.tempscope import TempScope


@dataclass
class DecodeContext:
    """Everything a decoder needs besides its input stream."""
    collector: SampleCollector
    scope: TempScope
    chunk_size: int = 64 * 1024

    @property
    def source_url(self) -> str:
        return self.collector.result.data

    @property
    def label(self) -> str:
        return self.collector.label


Decoder = Callable[[ByteStream, DecodeContext], Awaitable[None]]
