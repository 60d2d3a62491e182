"""Streaming GeoJSON decoder.

Parses `features[*]` incrementally with ijson, so a multi-gigabyte
FeatureCollection costs no more than the features actually sampled.
Each feature's `properties` object is one record. When the window
fills, the stream is closed immediately and the remaining document is
never requested.
"""

from __future__ import annotations

import logging

import ijson

from datapeek.decoders.base import DecodeContext
from datapeek.errors import DecodeError, ErrorCode
from datapeek.sampling.collector import Offer
from datapeek.transports.stream import ByteStream

logger = logging.getLogger("datapeek.decoders.geojson")

FEATURES_PREFIX = "features.item"


async def decode_geojson(stream: ByteStream, ctx: DecodeContext) -> None:
    """Offer each feature's properties to the collector until it is full."""
    prefix = f"{ctx.label} GEOJSON"
    try:
        async for feature in ijson.items(stream, FEATURES_PREFIX, use_float=True):
            properties = feature.get("properties") if isinstance(feature, dict) else None
            if ctx.collector.offer(dict(properties or {})) is Offer.WINDOW_FULL:
                await stream.aclose()
                return
    except ijson.JSONError as e:
        message = f"Error retrieving file {ctx.source_url}: Could not parse as JSON"
        logger.info("%s: %s (%s)", prefix, message, e)
        raise DecodeError(ErrorCode.MALFORMED_JSON, message) from e

    logger.debug("%s: stream ended normally", prefix)
