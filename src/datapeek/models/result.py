"""Sample result model.

SampleResult is the preview handed back to the caller. It is created
empty by the pipeline and filled incrementally by exactly one decoder
through the SampleCollector; nothing else writes to `source_data`.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from datapeek.models.request import (
    Compression,
    SampleRequest,
    SourceClassification,
    SourceFormat,
)


class Conform(BaseModel):
    """How the raw records map to fields: format tag and delimiter."""
    type: Optional[SourceFormat] = Field(
        default=None,
        description="Detected payload format"
    )
    csvsplit: Optional[str] = Field(
        default=None,
        description="Detected delimiter, set only for delimited text"
    )


class SourceData(BaseModel):
    fields: list[str] = Field(
        default_factory=list,
        description="Field names, set once from the first header or record"
    )
    results: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Sampled records in source order"
    )


class SampleResult(BaseModel):
    """Accumulated preview for one request."""
    data: str = Field(description="The source URL that was sampled")
    type: str = Field(description="Transport tag (http, ftp or ESRI)")
    compression: Optional[str] = Field(
        default=None,
        description="Container compression, only set for zipped sources"
    )
    conform: Conform = Field(default_factory=Conform)
    source_data: SourceData = Field(default_factory=SourceData)
    coverage: dict[str, Any] = Field(default_factory=dict)
    note: str = ""

    @classmethod
    def for_request(
        cls, request: SampleRequest, classification: SourceClassification
    ) -> SampleResult:
        """Empty result for a freshly classified request."""
        return cls(
            data=request.source_url,
            type=classification.transport.value,
            compression=(
                classification.compression.value
                if classification.compression is Compression.ZIP
                else None
            ),
            conform=Conform(type=classification.format),
        )

    @property
    def fields(self) -> list[str]:
        return self.source_data.fields

    @property
    def results(self) -> list[dict[str, Any]]:
        return self.source_data.results

    def to_response(self) -> dict[str, Any]:
        """Preview body in the shape callers expect.

        Optional members (compression, csvsplit) are omitted rather
        than sent as null. Record values are passed through untouched.
        """
        conform: dict[str, Any] = {}
        if self.conform.type is not None:
            conform["type"] = self.conform.type.value
        if self.conform.csvsplit is not None:
            conform["csvsplit"] = self.conform.csvsplit

        body: dict[str, Any] = {
            "coverage": dict(self.coverage),
            "note": self.note,
            "data": self.data,
            "type": self.type,
            "conform": conform,
            "source_data": {
                "fields": list(self.source_data.fields),
                "results": list(self.source_data.results),
            },
        }
        if self.compression is not None:
            body["compression"] = self.compression
        return body
