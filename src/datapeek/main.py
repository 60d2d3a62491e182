"""datapeek application entrypoint."""

import logging
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from datapeek.config import settings
from datapeek.errors import SampleError
from datapeek.sampling.pipeline import sample_source
from datapeek.utils.logging import configure_logging

configure_logging(settings.log_level)
logger = logging.getLogger("datapeek")
access_logger = logging.getLogger("datapeek.access")

app = FastAPI(
    title="datapeek",
    description="Preview the first records of a remote data source",
    version=settings.version,
)


@app.on_event("startup")
async def startup():
    logger.info("datapeek v%s starting", settings.version)
    logger.info("Log level: %s", settings.log_level)
    logger.info("API port: %s", settings.api_port)
    if not settings.tls_verify:
        logger.info("TLS certificate verification is disabled for sources")
    if settings.request_timeout > 0:
        logger.info("Request timeout: %ss", settings.request_timeout)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = round((time.perf_counter() - started) * 1000, 1)
    access_logger.info(
        "%s %s %d %.1fms",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        extra={
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": duration_ms,
            "source": request.query_params.get("source"),
        },
    )
    return response


@app.get("/health")
async def health():
    return {"status": "ok", "version": settings.version}


async def _sample(source: Optional[str], size: Optional[str], offset: Optional[str]):
    try:
        result = await sample_source(source, size, offset, settings=settings)
    except SampleError as e:
        return JSONResponse(status_code=400, content=e.to_body())
    return JSONResponse(status_code=200, content=jsonable_encoder(result.to_response()))


@app.get("/sample")
async def sample(
    source: Optional[str] = None,
    size: Optional[str] = None,
    offset: Optional[str] = None,
):
    return await _sample(source, size, offset)


@app.get("/fields")
async def fields(
    source: Optional[str] = None,
    size: Optional[str] = None,
    offset: Optional[str] = None,
):
    """Legacy alias of /sample."""
    return await _sample(source, size, offset)


def run():
    uvicorn.run(app, host="0.0.0.0", port=settings.api_port, log_config=None)


if __name__ == "__main__":
    run()
