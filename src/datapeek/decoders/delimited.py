"""Delimited text decoder (CSV, TSV, PSV and friends).

The delimiter is sniffed from the header line before any record is
parsed: whichever of `,` `|` TAB `;` occurs most often in the header
wins, ties going to the earliest in that order. Bytes read past the
header are pushed back onto the stream, and rows are then parsed with
the csv module one logical record at a time. A quoted field may span
physical lines, up to MAX_RECORD_CHARS per record.

Rows are keyed by the header fields. A row with a different number of
columns than the header is a parse error. Once the window is full the
stream is closed so no more of the file is downloaded.
"""

from __future__ import annotations

import codecs
import csv
import logging
from contextlib import aclosing
from typing import AsyncIterator

from datapeek.decoders.base import DecodeContext
from datapeek.errors import DecodeError, ErrorCode
from datapeek.sampling.collector import Offer
from datapeek.transports.stream import ByteStream

logger = logging.getLogger("datapeek.decoders.delimited")

# order matters: ties resolve to the earliest candidate
CANDIDATE_DELIMITERS = (",", "|", "\t", ";")
DEFAULT_DELIMITER = ","
# longest logical record accepted while a quoted field spans lines
MAX_RECORD_CHARS = 1 << 20


def detect_delimiter(header_line: str) -> str:
    """Most frequent candidate delimiter in the header line."""
    best, best_count = DEFAULT_DELIMITER, 0
    for candidate in CANDIDATE_DELIMITERS:
        count = header_line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


async def read_header(stream: ByteStream, chunk_size: int) -> str | None:
    """Read up to the first newline and push the remainder back.

    Returns the decoded header line, or None for an empty stream.
    """
    buffer = bytearray()
    while b"\n" not in buffer:
        chunk = await stream.read(chunk_size)
        if not chunk:
            break
        buffer.extend(chunk)
    if not buffer:
        return None

    end = buffer.find(b"\n")
    if end < 0:
        head, rest = bytes(buffer), b""
    else:
        head, rest = bytes(buffer[:end]), bytes(buffer[end + 1:])
    stream.unshift(rest)
    return _strip_cr(head.decode("utf-8-sig", errors="replace"))


async def iter_lines(stream: ByteStream, chunk_size: int) -> AsyncIterator[str]:
    """Physical lines of the rest of the stream, decoded as UTF-8."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    tail = ""
    while True:
        chunk = await stream.read(chunk_size)
        if not chunk:
            break
        lines = (tail + decoder.decode(chunk)).split("\n")
        tail = lines.pop()
        for line in lines:
            yield _strip_cr(line)
    tail += decoder.decode(b"", final=True)
    if tail:
        yield _strip_cr(tail)


def in_quoted_field(text: str, delimiter: str) -> bool:
    """True when text ends inside a quoted field that continues on the next line.

    Only a quote at the start of a field opens one; a stray quote in the
    middle of an unquoted field (`TV 5",big`) is literal text, as the csv
    module reads it.
    """
    quoted = False
    field_start = True
    i = 0
    while i < len(text):
        c = text[i]
        if quoted:
            if c == '"':
                if text[i + 1:i + 2] == '"':
                    i += 1
                else:
                    quoted = False
        elif c == '"' and field_start:
            quoted = True
        field_start = not quoted and c == delimiter
        i += 1
    return quoted


def parse_row(text: str, delimiter: str) -> list[str]:
    rows = list(csv.reader([text], delimiter=delimiter, strict=True))
    return rows[0] if rows else []


async def decode_delimited(stream: ByteStream, ctx: DecodeContext) -> None:
    """Sniff the delimiter, then offer rows until the window is full."""
    prefix = f"{ctx.label} CSV"
    collector = ctx.collector

    def parse_error(detail: str) -> DecodeError:
        message = f"Error parsing file from {ctx.source_url} as CSV: {detail}"
        logger.info("%s: %s", prefix, message)
        return DecodeError(ErrorCode.CSV_PARSE, message)

    header = await read_header(stream, ctx.chunk_size)
    if header is None:
        logger.debug("%s: empty file", prefix)
        return

    delimiter = detect_delimiter(header)
    collector.set_delimiter(delimiter)
    try:
        fields = parse_row(header, delimiter)
    except csv.Error as e:
        raise parse_error(f"{e} (line 1)") from e
    collector.set_fields(fields)

    line_number = 1
    pending: str | None = None
    async with aclosing(iter_lines(stream, ctx.chunk_size)) as lines:
        async for line in lines:
            line_number += 1
            text = line if pending is None else f"{pending}\n{line}"
            if in_quoted_field(text, delimiter):
                if len(text) > MAX_RECORD_CHARS:
                    raise parse_error(
                        f"Quoted field exceeds {MAX_RECORD_CHARS} characters (line {line_number})"
                    )
                pending = text
                continue
            pending = None
            if not text:
                continue

            try:
                values = parse_row(text, delimiter)
            except csv.Error as e:
                raise parse_error(f"{e} (line {line_number})") from e
            if len(values) != len(fields):
                raise parse_error(
                    f"Number of columns on line {line_number} does not match header"
                )

            if collector.offer(dict(zip(fields, values))) is Offer.WINDOW_FULL:
                await stream.aclose()
                logger.debug("%s: stream ended prematurely", prefix)
                return

    if pending is not None:
        raise parse_error(f"Quoted field not terminated (line {line_number})")
    logger.debug("%s: stream ended normally", prefix)
