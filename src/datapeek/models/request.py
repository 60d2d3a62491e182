"""Sample request and source classification models.

A SampleRequest is what the caller asked for: which source, and which
window of records. A SourceClassification is what datapeek decided about
that source from its URL alone -- how to fetch it, whether it is zipped,
and which decoder reads it. Classification never looks at content, so
both models are fixed before the first byte is fetched.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Transport(str, Enum):
    """How the source bytes are fetched.

    Values are the transport tags reported in the preview body.
    """
    HTTP = "http"
    FTP = "ftp"
    ARCGIS = "ESRI"


class SourceFormat(str, Enum):
    """Payload formats with a decoder. Values are conform type tags."""
    GEOJSON = "geojson"
    DELIMITED = "csv"
    SHAPEFILE = "shapefile"


class Compression(str, Enum):
    NONE = "none"
    ZIP = "zip"


class SampleRequest(BaseModel):
    """A validated request to preview a remote source."""
    source_url: str = Field(
        description="Absolute URL of the source, normalized by the classifier"
    )
    size: int = Field(
        default=10,
        gt=0,
        description="Maximum number of records to return"
    )
    offset: int = Field(
        default=0,
        ge=0,
        description="Number of leading records to skip"
    )

    class Config:
        frozen = True


class SourceClassification(BaseModel):
    """Transport, container and payload format derived from the URL path.

    For zipped sources the payload format is unknown until an archive
    entry is found, so `format` stays None.
    """
    transport: Transport
    format: Optional[SourceFormat] = None
    compression: Compression = Compression.NONE

    class Config:
        frozen = True

    @property
    def label(self) -> str:
        """Log prefix such as 'http' or 'ftp ZIP'; decoders append their format."""
        if self.compression is Compression.ZIP:
            return f"{self.transport.value} ZIP"
        return self.transport.value
