"""ArcGIS feature/map server transport.

Rather than a byte stream, this transport issues a single query against
the layer endpoint and returns a structured feed:

    {service}/query?outFields=*&where=1=1
        &resultRecordCount={size}&resultOffset={offset}&f=json

The server applies the offset/size window itself, so the response is
already small. The decoder only keeps a defensive cap in case a server
ignores resultRecordCount.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx

from datapeek.config import Settings
from datapeek.errors import DecodeError, ErrorCode, SourceConnectionError, describe
from datapeek.transports.base import BaseTransport, ConnectionState
from datapeek.transports.http import build_client

logger = logging.getLogger("datapeek.transports.arcgis")


@dataclass
class ArcgisFeed:
    """Field names and feature attributes from one query response."""
    fields: list[str] = field(default_factory=list)
    features: list[dict[str, Any]] = field(default_factory=list)


def query_url(service_url: str) -> str:
    """The layer's /query endpoint, keeping any existing query string."""
    parts = urlsplit(service_url)
    path = parts.path.rstrip("/") + "/query"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def query_params(size: int, offset: int) -> dict[str, str]:
    return {
        "outFields": "*",
        "where": "1=1",
        "resultRecordCount": str(size),
        "resultOffset": str(offset),
        "f": "json",
    }


class ArcgisTransport(BaseTransport):
    """Transport for ArcGIS REST layer endpoints."""

    def __init__(
        self,
        source_url: str,
        settings: Settings,
        size: int,
        offset: int,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(source_url, settings)
        self.size = size
        self.offset = offset
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None

    @property
    def transport_type(self) -> str:
        return "ESRI"

    def _error(self, detail: str, code: ErrorCode, status: int | None = None) -> SourceConnectionError:
        message = f"Error connecting to Arcgis server {self.source_url}: {detail}"
        logger.info("ARCGIS: %s", message)
        return SourceConnectionError(code, message, status=status)

    def _decode_error(self) -> DecodeError:
        message = f"Error connecting to Arcgis server {self.source_url}: Could not parse as JSON"
        logger.info("ARCGIS: %s", message)
        return DecodeError(ErrorCode.MALFORMED_JSON, message)

    async def open(self) -> ArcgisFeed:
        self._state = ConnectionState.CONNECTING
        self._client = build_client(self.settings, self._http_transport)
        url = query_url(self.source_url)
        params = query_params(self.size, self.offset)
        logger.debug("using arcgis sampler for %s", self.source_url)

        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            self._state = ConnectionState.FAILED
            self._record_error(f"Query failed: {e!r}")
            raise self._error(describe(e), ErrorCode.CONNECTION_FAILED) from e

        if not response.is_success:
            self._state = ConnectionState.FAILED
            # only plain-text bodies are quoted; HTML error pages are dropped
            body = ""
            if response.headers.get("content-type", "").startswith("text/plain"):
                body = response.text.strip()
            detail = f"{body} ({response.status_code})" if body else f"({response.status_code})"
            raise self._error(detail, ErrorCode.HTTP_STATUS, status=response.status_code)

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._state = ConnectionState.FAILED
            raise self._decode_error() from e

        if not isinstance(payload, dict):
            self._state = ConnectionState.FAILED
            raise self._decode_error()

        # ArcGIS reports most failures as 200 OK with an error member
        error = payload.get("error")
        if isinstance(error, dict):
            self._state = ConnectionState.FAILED
            raise self._error(
                f"{error.get('message', '')} ({error.get('code', '')})",
                ErrorCode.CONNECTION_FAILED,
            )

        self._state = ConnectionState.CONNECTED
        return self._to_feed(payload)

    def _to_feed(self, payload: dict[str, Any]) -> ArcgisFeed:
        feed = ArcgisFeed()
        for f in payload.get("fields") or []:
            if isinstance(f, dict) and "name" in f:
                feed.fields.append(str(f["name"]))
        for feature in payload.get("features") or []:
            if isinstance(feature, dict):
                attributes = feature.get("attributes")
                if isinstance(attributes, dict):
                    feed.features.append(attributes)
        logger.debug(
            "ARCGIS: %d fields, %d features from %s",
            len(feed.fields), len(feed.features), self.source_url,
        )
        return feed

    async def abort(self) -> None:
        # the query response is already fully read; nothing is in flight
        if self._state is ConnectionState.CONNECTED:
            self._state = ConnectionState.ABORTED

    async def close(self) -> None:
        try:
            if self._client is not None:
                await self._client.aclose()
        except httpx.HTTPError as e:
            self._record_error(f"Close failed: {e!r}")
        finally:
            self._client = None
            self._state = ConnectionState.CLOSED
