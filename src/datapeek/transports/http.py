"""HTTP(S) transport.

Streams a GET response body through httpx without buffering it. The
response is opened in streaming mode so that aborting closes the socket
before the rest of the body is transferred.

TLS certificate checks follow DATAPEEK_TLS_VERIFY, which is off by
default: many public data portals serve self-signed or expired
certificates, and refusing them would make those sources unsampleable.
"""

from __future__ import annotations

import logging

import httpx

from datapeek.config import Settings
from datapeek.errors import ErrorCode, SourceConnectionError, describe
from datapeek.transports.base import BaseTransport, ConnectionState
from datapeek.transports.stream import ByteStream

logger = logging.getLogger("datapeek.transports.http")


def build_client(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """AsyncClient configured the way every datapeek HTTP fetch needs.

    No client-side timeouts are applied here; the optional overall
    bound lives in the pipeline.
    """
    return httpx.AsyncClient(
        verify=settings.tls_verify,
        follow_redirects=True,
        timeout=None,
        transport=transport,
    )


class HttpTransport(BaseTransport):
    """Transport for plain HTTP and HTTPS file downloads."""

    def __init__(
        self,
        source_url: str,
        settings: Settings,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(source_url, settings)
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None
        self._response: httpx.Response | None = None

    @property
    def transport_type(self) -> str:
        return "http"

    async def open(self) -> ByteStream:
        self._state = ConnectionState.CONNECTING
        self._client = build_client(self.settings, self._http_transport)
        try:
            request = self._client.build_request("GET", self.source_url)
            self._response = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            self._state = ConnectionState.FAILED
            self._record_error(f"Request failed: {e!r}")
            raise SourceConnectionError(
                ErrorCode.CONNECTION_FAILED,
                f"Error retrieving file {self.source_url}: {describe(e)}",
            ) from e

        response = self._response
        if not response.is_success:
            self._state = ConnectionState.FAILED
            raise await self._status_error(response)

        self._state = ConnectionState.CONNECTED
        logger.debug(
            "HTTP %s %s (%s)",
            response.status_code, self.source_url,
            response.headers.get("content-type", "unknown"),
        )
        self._stream = ByteStream(
            response.aiter_bytes(),
            on_close=self.abort,
            name=self.source_url,
        )
        return self._stream

    async def _status_error(self, response: httpx.Response) -> SourceConnectionError:
        """Build the error for a non-2xx response.

        The body is only read when it is text/plain; anything else could
        be an arbitrarily large payload and is discarded unread.
        """
        message = f"Error retrieving file {self.source_url}"
        body = None
        content_type = response.headers.get("content-type", "")
        if content_type.startswith("text/plain"):
            try:
                await response.aread()
                body = response.text.strip()
            except httpx.HTTPError as e:
                self._record_error(f"Could not read error body: {e!r}")
        if body:
            message += f": {body} ({response.status_code})"
        else:
            message += f": ({response.status_code})"
        logger.info("%s", message)
        return SourceConnectionError(
            ErrorCode.HTTP_STATUS, message,
            status=response.status_code, body=body,
        )

    async def abort(self) -> None:
        """Close the response mid-body, which drops the connection."""
        if self._state in (ConnectionState.ABORTED, ConnectionState.CLOSED):
            return
        if self._response is not None and not self._response.is_closed:
            await self._response.aclose()
            self._state = ConnectionState.ABORTED
            logger.debug("aborted transfer of %s", self.source_url)

    async def close(self) -> None:
        try:
            if self._response is not None and not self._response.is_closed:
                await self._response.aclose()
            if self._client is not None:
                await self._client.aclose()
        except httpx.HTTPError as e:
            self._record_error(f"Close failed: {e!r}")
        finally:
            self._response = None
            self._client = None
            self._state = ConnectionState.CLOSED
