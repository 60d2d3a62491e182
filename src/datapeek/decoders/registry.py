"""Decoder lookup by payload format."""

from __future__ import annotations

from datapeek.decoders.base import Decoder
from datapeek.decoders.dbf import decode_dbf
from datapeek.decoders.delimited import decode_delimited
from datapeek.decoders.geojson import decode_geojson
from datapeek.models.request import SourceFormat

DECODERS: dict[SourceFormat, Decoder] = {
    SourceFormat.GEOJSON: decode_geojson,
    SourceFormat.DELIMITED: decode_delimited,
    SourceFormat.SHAPEFILE: decode_dbf,
}


def decoder_for(fmt: SourceFormat) -> Decoder:
    return DECODERS[fmt]
