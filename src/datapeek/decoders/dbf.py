"""DBF (shapefile attribute table) decoder.

dbfread needs a seekable file, so the entry is first spooled to a temp
file in the request's TempScope. The table is then read on a worker
thread, stopping after the window's last record. Deleted records are
skipped by dbfread and never count towards the offset.
"""

from __future__ import annotations

import asyncio
import logging
from itertools import islice
from pathlib import Path
from typing import Any

from dbfread import DBF

from datapeek.decoders.base import DecodeContext
from datapeek.errors import DecodeError, ErrorCode
from datapeek.sampling.collector import Offer
from datapeek.transports.stream import ByteStream

logger = logging.getLogger("datapeek.decoders.dbf")


def visible_attributes(record: dict[str, Any]) -> dict[str, Any]:
    """Drop bookkeeping attributes such as @deleted."""
    return {k: v for k, v in record.items() if not str(k).startswith("@")}


def read_window(path: Path, limit: int) -> tuple[list[str], list[dict[str, Any]]]:
    """Field names and the first `limit` non-deleted records of a table."""
    table = DBF(
        str(path),
        ignorecase=False,
        recfactory=dict,
        ignore_missing_memofile=True,
        char_decode_errors="replace",
    )
    fields = [name for name in table.field_names if not name.startswith("@")]
    # iterating a DBF yields live records only
    live = iter(table)
    try:
        records = [visible_attributes(r) for r in islice(live, limit)]
    finally:
        # releases the table's file handle without reading further
        close = getattr(live, "close", None)
        if close is not None:
            close()
    return fields, records


async def decode_dbf(stream: ByteStream, ctx: DecodeContext) -> None:
    prefix = f"{ctx.label} DBF"
    collector = ctx.collector

    path = await ctx.scope.spool(stream, suffix=".dbf", chunk_size=ctx.chunk_size)
    await stream.aclose()

    limit = collector.offset + collector.size
    try:
        fields, records = await asyncio.to_thread(read_window, path, limit)
    except Exception as e:
        message = f"Error parsing file from {ctx.source_url}: Could not parse as shapefile"
        logger.info("%s: %s (%r)", prefix, message, e)
        raise DecodeError(ErrorCode.DBF_PARSE, message) from e

    collector.set_fields(fields)
    for record in records:
        if collector.offer(record) is Offer.WINDOW_FULL:
            logger.debug("%s: found %d results, exiting", prefix, collector.size)
            return
    logger.debug("%s: ran out of records", prefix)
