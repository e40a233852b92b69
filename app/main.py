from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import CORS_HEADERS, INGEST_PATH, router
from logging_config import configure_logging
from services.ingestion import build_default_ingestion_service


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    service = build_default_ingestion_service()
    try:
        yield
    finally:
        service.close()
        build_default_ingestion_service.cache_clear()


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as ``{"error": ...}``.

    Errors on the ingest path, including router-level 405s, always carry the
    CORS headers.
    """
    detail = str(exc.detail)
    headers = dict(exc.headers or {})
    if request.url.path == INGEST_PATH:
        headers.update(CORS_HEADERS)
        if exc.status_code == 405:
            detail = "Method not allowed"
            headers["Allow"] = "POST, OPTIONS"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail},
        headers=headers,
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Telemetry Ingest",
        description="Sensor reading ingestion with envelope-based threshold alerting.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.include_router(router)
    return app

app = create_app()
