"""ZIP archive walker.

A ZIP's central directory sits at the end of the file, so the download
is spooled to a temp file before anything can be read. Entries are then
visited in archive order and the first one with a recognized extension
is handed to its decoder:

    .csv / .tsv / .psv  -> delimited text
    .geojson            -> GeoJSON
    .dbf                -> shapefile attribute table

Entries before it are skipped without being decompressed. Only that
first recognized entry is sampled; the offset window applies inside it
and does not carry across entries. An archive with no recognized entry
is an error, never an empty success.
"""

from __future__ import annotations

import asyncio
import logging
import zipfile
import zlib
from typing import Callable

from datapeek.classifier import format_for_name
from datapeek.decoders.base import DecodeContext, Decoder
from datapeek.decoders.registry import decoder_for
from datapeek.errors import DecodeError, ErrorCode
from datapeek.models.request import SourceFormat
from datapeek.transports.stream import ByteStream, file_stream

logger = logging.getLogger("datapeek.sampling.archive")

ENTRY_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError)


async def walk_archive(
    stream: ByteStream,
    ctx: DecodeContext,
    dispatch: Callable[[SourceFormat], Decoder] = decoder_for,
) -> SourceFormat:
    """Sample the first recognized entry of a zipped source.

    Returns the format of the entry that was decoded and records it as
    the result's conform type.
    """
    prefix = ctx.label

    def archive_error(e: BaseException) -> DecodeError:
        message = f"Error retrieving file {ctx.source_url}: {e}"
        logger.info("%s: %s", prefix, message)
        return DecodeError(ErrorCode.BAD_ARCHIVE, message)

    path = await ctx.scope.spool(stream, suffix=".zip", chunk_size=ctx.chunk_size)
    await stream.aclose()

    try:
        archive = await asyncio.to_thread(zipfile.ZipFile, path)
    except (zipfile.BadZipFile, OSError) as e:
        raise archive_error(e) from e

    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            fmt = format_for_name(info.filename)
            if fmt is None:
                logger.debug("%s: skipping %s", prefix, info.filename)
                continue

            logger.debug("%s %s: %s", prefix, fmt.value.upper(), info.filename)
            ctx.collector.result.conform.type = fmt
            try:
                fh = archive.open(info)
            except ENTRY_ERRORS as e:
                raise archive_error(e) from e

            entry = file_stream(fh, ctx.chunk_size, name=info.filename)
            try:
                await dispatch(fmt)(entry, ctx)
            except ENTRY_ERRORS as e:
                raise archive_error(e) from e
            finally:
                await entry.aclose()
            return fmt

    logger.info("%s: Could not determine type from zip file %s", prefix, ctx.source_url)
    raise DecodeError(
        ErrorCode.NO_RECOGNIZED_ENTRY,
        f"Could not determine type from zip file {ctx.source_url}",
    )
