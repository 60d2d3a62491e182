"""Pytest configuration for the datapeek test suite."""

import io
import os
import struct
import zipfile

# Ensure test environment variables are set before any imports
os.environ.setdefault("DATAPEEK_LOG_LEVEL", "warning")
os.environ.setdefault("DATAPEEK_REQUEST_TIMEOUT", "0")

import aioftp
import pytest

from datapeek.config import Settings
from datapeek.decoders.base import DecodeContext
from datapeek.models.request import SampleRequest, SourceClassification, Transport
from datapeek.models.result import SampleResult
from datapeek.sampling.collector import SampleCollector
from datapeek.transports.stream import ByteStream
from datapeek.utils.tempscope import TempScope


class ChunkSource:
    """Async chunk iterator that remembers how much of it was consumed."""

    def __init__(self, data: bytes, chunk_size: int = 16):
        self.chunks = [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)]
        self.served = 0
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.closed or self.served >= len(self.chunks):
            raise StopAsyncIteration
        chunk = self.chunks[self.served]
        self.served += 1
        return chunk

    async def aclose(self):
        self.closed = True

    @property
    def remaining(self) -> int:
        return len(self.chunks) - self.served


@pytest.fixture
def settings(tmp_path):
    s = Settings()
    s.chunk_size = 64
    s.temp_dir = str(tmp_path)
    s.request_timeout = 0
    return s


@pytest.fixture
def scope(tmp_path):
    with TempScope(str(tmp_path)) as s:
        yield s


@pytest.fixture
def make_source():
    return ChunkSource


@pytest.fixture
def make_stream():
    """Build a ByteStream over bytes; returns (stream, source)."""

    def _make(data: bytes, chunk_size: int = 16):
        source = ChunkSource(data, chunk_size)
        return ByteStream(source, name="test"), source

    return _make


@pytest.fixture
def make_ctx(scope):
    """Build a DecodeContext with a fresh result; returns (ctx, result)."""

    def _make(size: int = 10, offset: int = 0, fmt=None, label: str = "http"):
        request = SampleRequest(
            source_url="https://example.com/data", size=size, offset=offset
        )
        classification = SourceClassification(transport=Transport.HTTP, format=fmt)
        result = SampleResult.for_request(request, classification)
        collector = SampleCollector(result, size=size, offset=offset, label=label)
        return DecodeContext(collector=collector, scope=scope, chunk_size=32), result

    return _make


def _dbf_bytes(fields, records, deleted=()):
    """Minimal dBase III table. fields: [(name, type, length)]."""
    header_len = 32 + 32 * len(fields) + 1
    record_len = 1 + sum(length for _, _, length in fields)
    out = io.BytesIO()
    # version, yy mm dd, record count, header len, record len, cp1252 driver
    out.write(struct.pack(
        "<BBBBIHH17xB2x", 0x03, 124, 1, 1, len(records), header_len, record_len, 0x03
    ))
    for name, ftype, length in fields:
        out.write(struct.pack(
            "<11sc4xBB14x", name.encode("ascii"), ftype.encode("ascii"), length, 0
        ))
    out.write(b"\r")
    for i, record in enumerate(records):
        out.write(b"*" if i in deleted else b" ")
        for (name, ftype, length), value in zip(fields, record):
            text = "" if value is None else str(value)
            if ftype == "N":
                text = text.rjust(length)
            else:
                text = text.ljust(length)
            out.write(text[:length].encode("ascii"))
    out.write(b"\x1a")
    return out.getvalue()


@pytest.fixture
def build_dbf():
    return _dbf_bytes


def _zip_bytes(entries):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries:
            zf.writestr(name, data)
    return buf.getvalue()


@pytest.fixture
def build_zip():
    """entries: list of (name, bytes) written in order."""
    return _zip_bytes


@pytest.fixture
def geojson_bytes():
    """FeatureCollection bytes whose features carry the given properties."""
    import json

    def _make(properties):
        features = [
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [i, -i]},
                "properties": p,
            }
            for i, p in enumerate(properties)
        ]
        return json.dumps({"type": "FeatureCollection", "features": features}).encode()

    return _make


class FakeDataStream:
    def __init__(self, data: bytes, block: int = 8):
        self.data = data
        self.block = block
        self.served = 0
        self.closed = False
        self.finished = False

    def iter_by_block(self, count):
        return self._blocks()

    async def _blocks(self):
        for start in range(0, len(self.data), self.block):
            if self.closed:
                return
            self.served += 1
            yield self.data[start:start + self.block]

    def close(self):
        self.closed = True

    async def finish(self):
        self.finished = True
        self.closed = True


class FakeServer:
    """State shared by every client the transport creates in one test."""

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.users = {("anonymous", "anon@")}
        self.refuse = False
        self.clients: list["FakeClient"] = []
        self.streams: list[FakeDataStream] = []

    def client_class(self):
        server = self

        class FakeClient:
            def __init__(self, *args, **kwargs):
                self.commands = []
                self.closed = False
                server.clients.append(self)

            async def connect(self, host, port):
                self.commands.append(("CONNECT", host, port))
                if server.refuse:
                    raise ConnectionRefusedError(111, "Connection refused")

            async def login(self, user, password):
                self.commands.append(("USER", user, password))
                if (user, password) not in server.users:
                    raise aioftp.StatusCodeError("230", "530", ["Login incorrect."])

            async def download_stream(self, path):
                self.commands.append(("RETR", path))
                if path not in server.files:
                    raise aioftp.StatusCodeError("1xx", "550", ["No such file."])
                stream = FakeDataStream(server.files[path])
                server.streams.append(stream)
                return stream

            async def quit(self):
                self.commands.append(("QUIT",))
                # an aborted transfer leaves "426" queued on the control channel
                if server.streams and server.streams[-1].closed and not server.streams[-1].finished:
                    raise aioftp.StatusCodeError("2xx", "426", ["Transfer aborted."])

            def close(self):
                self.closed = True

        return FakeClient


@pytest.fixture
def ftp_server(monkeypatch):
    server = FakeServer()
    monkeypatch.setattr(aioftp, "Client", server.client_class())
    return server


