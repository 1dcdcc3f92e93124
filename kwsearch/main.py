from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kwsearch.api.v1.router import router as api_router
from kwsearch.config import settings, validate_settings
from kwsearch.core.errors import (
    ConfigurationError,
    DataError,
    ProviderError,
    StoreError,
    SyncError,
)
from kwsearch.core.log_config import configure_logging
from kwsearch.db.session import async_engine, verify_store


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[type-arg]
    configure_logging()
    logger = logging.getLogger(__name__)
    validate_settings()
    await verify_store()
    logger.info("Starting keyword search API", extra={"env": settings.app_env})
    yield
    await async_engine.dispose()
    logger.info("Shutting down keyword search API")


app = FastAPI(
    title="Keyword Search API",
    version="1.0.0",
    description="Keyword / student embedding sync and similarity search",
    lifespan=lifespan,
)


app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(DataError)
async def _data_error(request: Request, exc: DataError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(SyncError)
async def _sync_error(request: Request, exc: SyncError) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={
            "detail": str(exc),
            "kind": exc.kind.value,
            "batch_index": exc.batch_index,
            "batch_ids": exc.batch_ids,
            "unsynchronized_ids": exc.unsynchronized_ids,
            "written": exc.report.written,
        },
    )


@app.exception_handler(ProviderError)
async def _provider_error(request: Request, exc: ProviderError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(StoreError)
async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
    return JSONResponse(
        status_code=503, content={"detail": str(exc), "entity_id": exc.entity_id}
    )


@app.exception_handler(ConfigurationError)
async def _configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.get("/api/v1/health", tags=["health"])
async def health() -> dict[str, Any]:
    return {"status": "ok", "env": settings.app_env}
