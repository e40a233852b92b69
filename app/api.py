"""HTTP route definitions for the service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.schemas import ErrorResponse, IngestResponse
from services.errors import IngestError
from services.ingestion import IngestionService, build_default_ingestion_service

logger = logging.getLogger(__name__)

INGEST_PATH = "/api/ingest-sensor"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

router = APIRouter()


def get_ingestion_service() -> IngestionService:
    return build_default_ingestion_service()


@router.options(INGEST_PATH, include_in_schema=False)
async def ingest_preflight() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=CORS_HEADERS)


@router.post(
    INGEST_PATH,
    response_model=IngestResponse,
    summary="Ingest one sensor reading and raise threshold alerts.",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
async def ingest_sensor(
    request: Request,
    service: IngestionService = Depends(get_ingestion_service),
) -> JSONResponse:
    body = await request.body()
    try:
        await run_in_threadpool(service.ingest, request.headers.get("Authorization"), body)
    except IngestError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail=exc.message,
            headers=CORS_HEADERS,
        ) from exc
    except Exception as exc:
        logger.exception("Unhandled error while ingesting reading")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
            headers=CORS_HEADERS,
        ) from exc
    response = IngestResponse(message="Sensor reading stored successfully")
    return JSONResponse(content=response.model_dump(), headers=CORS_HEADERS)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
