"""Source classification.

Turns the raw query parameters into a validated SampleRequest plus a
SourceClassification. This is a pure function of its inputs: it never
touches the network, so a bad request is rejected before any connection
is attempted.

Dispatch is by URL path:
  - .../MapServer/<n> or .../FeatureServer/<n>  -> ArcGIS query, GeoJSON
  - *.geojson                                   -> GeoJSON
  - *.csv, *.tsv, *.psv (any case)              -> delimited text
  - *.zip                                       -> ZIP, format decided per entry
An ArcGIS match wins over any extension.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlsplit

from datapeek.errors import ErrorCode, SampleValidationError, UnsupportedTypeError
from datapeek.models.request import (
    Compression,
    SampleRequest,
    SourceClassification,
    SourceFormat,
    Transport,
)

logger = logging.getLogger("datapeek.classifier")

# matches:
# - MapServer/0
# - FeatureServer/13
# - MapServer/1/
RE_ARCGIS = re.compile(r"(Map|Feature)Server/\d+/?$")

# matches file.csv, file.TsV, file.PSV
RE_DELIMITED = re.compile(r"\.[cpt]sv$", re.IGNORECASE)

SCHEME_TRANSPORTS = {
    "http": Transport.HTTP,
    "https": Transport.HTTP,
    "ftp": Transport.FTP,
}


def is_delimited_name(name: str) -> bool:
    return bool(RE_DELIMITED.search(name))


def format_for_name(name: str) -> SourceFormat | None:
    """Payload format implied by a file or archive entry name."""
    if is_delimited_name(name):
        return SourceFormat.DELIMITED
    lowered = name.lower()
    if lowered.endswith(".geojson"):
        return SourceFormat.GEOJSON
    if lowered.endswith(".dbf"):
        return SourceFormat.SHAPEFILE
    return None


def _parse_window_value(
    raw: str | int | None, default: int, minimum: int, code: ErrorCode, name: str
) -> int:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise SampleValidationError(code, f"Invalid {name} parameter value: {raw}")
    if value < minimum:
        raise SampleValidationError(code, f"Invalid {name} parameter value: {raw}")
    return value


def classify(
    source: str | None,
    size: str | int | None = None,
    offset: str | int | None = None,
    default_size: int = 10,
) -> tuple[SampleRequest, SourceClassification]:
    """Validate the request and classify the source by its URL.

    Raises SampleValidationError (or its UnsupportedTypeError subclass)
    for anything that cannot be sampled.
    """
    if not source or not source.strip():
        logger.debug("rejecting request due to lack of `source` parameter")
        raise SampleValidationError(
            ErrorCode.MISSING_SOURCE, "'source' parameter is required"
        )

    source = source.strip()
    try:
        parts = urlsplit(source)
        # port is parsed lazily and raises on garbage like host:abc
        parts.port
    except ValueError:
        parts = None
    if parts is None or not parts.scheme or not parts.netloc:
        logger.info("Unable to parse URL from '%s'", source)
        raise SampleValidationError(
            ErrorCode.UNPARSABLE_URL, f"Unable to parse URL from '{source}'"
        )

    size_value = _parse_window_value(size, default_size, 1, ErrorCode.BAD_SIZE, "size")
    offset_value = _parse_window_value(offset, 0, 0, ErrorCode.BAD_OFFSET, "offset")

    request = SampleRequest(source_url=parts.geturl(), size=size_value, offset=offset_value)

    transport = SCHEME_TRANSPORTS.get(parts.scheme.lower())
    if transport is None:
        logger.info("Unsupported scheme '%s' for %s", parts.scheme, source)
        raise UnsupportedTypeError(f"Unsupported type: {source}")

    path = parts.path
    if RE_ARCGIS.search(path) and transport is Transport.HTTP:
        classification = SourceClassification(
            transport=Transport.ARCGIS, format=SourceFormat.GEOJSON
        )
    elif path.lower().endswith(".zip"):
        classification = SourceClassification(
            transport=transport, compression=Compression.ZIP
        )
    else:
        fmt = format_for_name(path)
        # bare DBF files are only sampled from inside a shapefile archive
        if fmt is None or fmt is SourceFormat.SHAPEFILE:
            logger.info("Unsupported type for %s", source)
            raise UnsupportedTypeError(f"Unsupported type: {source}")
        classification = SourceClassification(transport=transport, format=fmt)

    logger.debug(
        "classified %s as %s/%s (size=%d offset=%d)",
        request.source_url, classification.label,
        classification.format.value if classification.format else "?",
        request.size, request.offset,
    )
    return request, classification
