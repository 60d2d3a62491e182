"""Sampling pipeline orchestration.

This module is the conductor of a sample request. It drives one source
through the full sequence:

    Classifying -> Connecting -> (ArchiveWalking ->) Decoding
                -> CleaningUp -> Done(Success | Error)

Any stage may fail straight to Error, and an errored run still passes
through CleaningUp: the transport is closed and the request's temp
files are deleted on every exit path. Nothing is retried. A failure is
reported once, and whatever partial sample had been collected is thrown
away with it.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

import aioftp
import httpx

from datapeek.classifier import classify
from datapeek.config import Settings, settings as default_settings
from datapeek.decoders.arcgis import decode_arcgis
from datapeek.decoders.base import DecodeContext
from datapeek.decoders.registry import decoder_for
from datapeek.errors import (
    ErrorCode,
    SampleError,
    SourceConnectionError,
    describe,
)
from datapeek.models.request import (
    Compression,
    SampleRequest,
    SourceClassification,
    Transport,
)
from datapeek.models.result import SampleResult
from datapeek.sampling.archive import walk_archive
from datapeek.sampling.collector import SampleCollector
from datapeek.transports.arcgis import ArcgisTransport
from datapeek.transports.base import BaseTransport
from datapeek.transports.ftp import FtpTransport
from datapeek.transports.http import HttpTransport
from datapeek.utils.tempscope import TempScope

logger = logging.getLogger("datapeek.sampling.pipeline")


class PipelineState(str, Enum):
    CLASSIFYING = "classifying"
    CONNECTING = "connecting"
    ARCHIVE_WALKING = "archive_walking"
    DECODING = "decoding"
    CLEANING_UP = "cleaning_up"
    DONE_SUCCESS = "done_success"
    DONE_ERROR = "done_error"


def build_transport(
    request: SampleRequest,
    classification: SourceClassification,
    settings: Settings,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> BaseTransport:
    """Pick the transport adapter for a classified source."""
    if classification.transport is Transport.ARCGIS:
        return ArcgisTransport(
            request.source_url, settings,
            size=request.size, offset=request.offset,
            http_transport=http_transport,
        )
    if classification.transport is Transport.FTP:
        return FtpTransport(request.source_url, settings)
    return HttpTransport(request.source_url, settings, http_transport=http_transport)


class SamplePipeline:
    """Runs one sample request from raw parameters to SampleResult.

    `http_transport` replaces httpx's network layer and exists for
    tests; production code leaves it unset.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or default_settings
        self._http_transport = http_transport
        self.state = PipelineState.CLASSIFYING
        self.history: list[PipelineState] = [self.state]

    def _enter(self, state: PipelineState) -> None:
        logger.debug("pipeline %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    async def run(
        self,
        source: str | None,
        size: str | int | None = None,
        offset: str | int | None = None,
    ) -> SampleResult:
        """Sample a source, raising SampleError on any failure."""
        try:
            request, classification = classify(
                source, size, offset, default_size=self.settings.default_size
            )
        except SampleError:
            self._enter(PipelineState.DONE_ERROR)
            raise

        timeout = self.settings.request_timeout
        try:
            if timeout and timeout > 0:
                try:
                    result = await asyncio.wait_for(
                        self._sample(request, classification), timeout
                    )
                except asyncio.TimeoutError as e:
                    message = (
                        f"Error retrieving file {request.source_url}: "
                        f"timed out after {timeout:g}s"
                    )
                    logger.info("%s", message)
                    raise SourceConnectionError(ErrorCode.TIMEOUT, message) from e
            else:
                result = await self._sample(request, classification)
        except SampleError:
            self._enter(PipelineState.DONE_ERROR)
            raise

        self._enter(PipelineState.DONE_SUCCESS)
        return result

    async def _sample(
        self, request: SampleRequest, classification: SourceClassification
    ) -> SampleResult:
        result = SampleResult.for_request(request, classification)
        # ArcGIS applies the offset server-side
        skip = 0 if classification.transport is Transport.ARCGIS else request.offset
        collector = SampleCollector(
            result, size=request.size, offset=skip, label=classification.label
        )

        with TempScope(self.settings.temp_dir) as scope:
            transport = build_transport(
                request, classification, self.settings, self._http_transport
            )
            try:
                self._enter(PipelineState.CONNECTING)
                payload = await transport.open()

                if classification.transport is Transport.ARCGIS:
                    self._enter(PipelineState.DECODING)
                    decode_arcgis(payload, collector)
                    return result

                ctx = DecodeContext(
                    collector=collector,
                    scope=scope,
                    chunk_size=self.settings.chunk_size,
                )
                if classification.compression is Compression.ZIP:
                    self._enter(PipelineState.ARCHIVE_WALKING)
                    await walk_archive(payload, ctx)
                else:
                    self._enter(PipelineState.DECODING)
                    await decoder_for(classification.format)(payload, ctx)
                return result
            except SampleError:
                raise
            except (httpx.HTTPError, aioftp.AIOFTPException, OSError) as e:
                # failures after the transfer started, e.g. a reset mid-body
                message = f"Error retrieving file {request.source_url}: {describe(e)}"
                logger.info("%s: %s", classification.label, message)
                raise SourceConnectionError(ErrorCode.CONNECTION_FAILED, message) from e
            finally:
                self._enter(PipelineState.CLEANING_UP)
                await transport.close()
                health = transport.health()
                logger.debug(
                    "%s: transport %s after %d bytes, %d errors",
                    classification.label, health.state.value,
                    health.bytes_read, health.errors,
                    extra={"source": request.source_url},
                )


async def sample_source(
    source: str | None,
    size: str | int | None = None,
    offset: str | int | None = None,
    settings: Settings | None = None,
) -> SampleResult:
    """Convenience wrapper: run a fresh pipeline for one request."""
    return await SamplePipeline(settings).run(source, size, offset)
