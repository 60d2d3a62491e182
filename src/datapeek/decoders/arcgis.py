"""ArcGIS feed decoder.

The query response is already windowed by the server; this only copies
field names and feature attributes into the collector, which caps the
result at `size` in case the server ignored resultRecordCount.
"""

from __future__ import annotations

import logging

from datapeek.sampling.collector import Offer, SampleCollector
from datapeek.transports.arcgis import ArcgisFeed

logger = logging.getLogger("datapeek.decoders.arcgis")


def decode_arcgis(feed: ArcgisFeed, collector: SampleCollector) -> None:
    if feed.fields:
        collector.set_fields(feed.fields)
    for attributes in feed.features:
        if collector.offer(dict(attributes)) is Offer.WINDOW_FULL:
            if len(feed.features) > collector.size:
                logger.warning(
                    "ARCGIS: server returned %d features for %s, expected at most %d",
                    len(feed.features), collector.result.data, collector.size,
                )
            return
