"""Sample collector.

The collector is the only writer of a SampleResult's fields and records.
Decoders offer every record they decode, in source order; the collector
applies the offset/size window and tells the decoder when the window is
full so it can stop reading and close its stream.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Iterable

from datapeek.models.result import SampleResult

logger = logging.getLogger("datapeek.sampling.collector")


class Offer(str, Enum):
    CONTINUE = "continue"
    WINDOW_FULL = "window_full"


class SampleCollector:
    """Applies the (offset, size) window to a stream of records.

    `offset` counts records skipped before anything is retained. ArcGIS
    feeds are already windowed server-side, so the pipeline builds their
    collector with offset 0 and relies on `size` as a cap only.
    """

    def __init__(self, result: SampleResult, size: int, offset: int = 0, label: str = ""):
        self.result = result
        self.size = size
        self.offset = offset
        self.label = label
        self.seen = 0
        self._fields_set = False

    @property
    def full(self) -> bool:
        return len(self.result.results) >= self.size

    def set_fields(self, names: Iterable[str]) -> None:
        """Record the field names. No-op once fields are set, even to []."""
        if self._fields_set:
            return
        self._fields_set = True
        self.result.source_data.fields = list(names)
        logger.debug("%s: fields: %s", self.label, self.result.source_data.fields)

    def set_delimiter(self, delimiter: str) -> None:
        self.result.conform.csvsplit = delimiter
        logger.debug(
            "%s: likely delimiter for %s '%s'", self.label, self.result.data, delimiter
        )

    def offer(self, record: dict[str, Any]) -> Offer:
        """Skip, retain, or refuse one record.

        Returns WINDOW_FULL as soon as the size-th record is retained,
        and for any record offered after that.
        """
        if self.full:
            return Offer.WINDOW_FULL
        index = self.seen
        self.seen += 1
        if index < self.offset:
            return Offer.CONTINUE

        # a first record without attributes (GeoJSON `properties: null`)
        # fixes the field list as empty
        self.set_fields(record.keys())
        logger.debug("%s: record: %s", self.label, record)
        self.result.source_data.results.append(record)

        if self.full:
            logger.debug("%s: found %d results, exiting", self.label, self.size)
            return Offer.WINDOW_FULL
        return Offer.CONTINUE
