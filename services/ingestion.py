"""Request-level orchestration of sensor reading ingestion."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, List, Optional

from app.schemas import AlertRecord, ReadingRecord
from auth.verifier import (
    IdentityVerificationError,
    IdentityVerifier,
    JwtIdentityVerifier,
    SupabaseIdentityVerifier,
    parse_bearer,
)
from datastore.base import AlertStore, AssetDirectory, ReadingStore, StoreError
from datastore.local import (
    build_default_alert_store,
    build_default_asset_directory,
    build_default_reading_store,
)
from datastore.rest import RestDataStore
from services.errors import InvalidInput, NotFound, StorageFailure, Unauthenticated
from services.thresholds import ThresholdEvaluator
from services.validator import ReadingValidationError, decode_body, validate_reading
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class IngestOutcome:
    reading: ReadingRecord
    alerts: List[AlertRecord] = field(default_factory=list)
    alerts_persisted: bool = True


class IngestionService:
    """Authenticates, validates, stores and evaluates one reading per call.

    The reading write is the only side effect that must succeed. Alerts are
    written afterwards as a single batch and a failure there is logged and
    reported on the outcome without failing the call.
    """

    def __init__(
        self,
        verifier: IdentityVerifier,
        assets: AssetDirectory,
        readings: ReadingStore,
        alerts: AlertStore,
        evaluator: ThresholdEvaluator,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.verifier = verifier
        self.assets = assets
        self.readings = readings
        self.alerts = alerts
        self.evaluator = evaluator
        self._clock = clock

    def ingest(self, authorization: Optional[str], body: Any) -> IngestOutcome:
        """Run one reading through the pipeline.

        ``body`` is either the raw JSON request body or an already decoded
        mapping. Raises an ``IngestError`` subclass when the request must be
        rejected.
        """
        received_at = self._clock()

        credential = parse_bearer(authorization)
        if credential is None:
            raise Unauthenticated("Missing or invalid Authorization header")
        try:
            subject = self.verifier.verify(credential)
        except IdentityVerificationError as exc:
            logger.info("Credential rejected", extra={"reason": str(exc)})
            raise Unauthenticated("Invalid token") from exc

        try:
            payload = decode_body(body) if isinstance(body, (bytes, str)) else body
            reading = validate_reading(payload, received_at=received_at)
        except ReadingValidationError as exc:
            logger.info(
                "Reading rejected",
                extra={"subject": subject.id, "reason": exc.reason},
            )
            raise InvalidInput(exc.reason) from exc

        try:
            asset = self.assets.get_asset(reading.asset_id)
        except StoreError as exc:
            logger.error(
                "Asset lookup failed",
                extra={"asset_id": reading.asset_id, "reason": str(exc)},
            )
            raise StorageFailure("Failed to load asset configuration") from exc
        if asset is None:
            raise NotFound(f"Asset {reading.asset_id} not found")

        try:
            stored = self.readings.insert_reading(reading)
        except StoreError as exc:
            logger.error(
                "Reading write failed",
                extra={"asset_id": reading.asset_id, "reason": str(exc)},
            )
            raise StorageFailure("Failed to store sensor reading") from exc
        logger.info(
            "Reading stored",
            extra={"asset_id": stored.asset_id, "reading_id": stored.id, "subject": subject.id},
        )

        drafts = self.evaluator.evaluate(reading, asset)
        if not drafts:
            return IngestOutcome(reading=stored)

        for draft in drafts:
            logger.info(
                "Alert raised: %s",
                draft.message,
                extra={
                    "asset_id": draft.asset_id,
                    "alert_type": draft.type,
                    "severity": draft.severity.value,
                },
            )
        try:
            created = self.alerts.insert_alerts(drafts)
        except Exception as exc:
            # The reading is already stored; alert persistence never fails the request.
            logger.warning(
                "Alert write degraded; reading kept",
                exc_info=not isinstance(exc, StoreError),
                extra={
                    "asset_id": reading.asset_id,
                    "reading_id": stored.id,
                    "alert_count": len(drafts),
                    "reason": str(exc),
                },
            )
            return IngestOutcome(reading=stored, alerts_persisted=False)
        return IngestOutcome(reading=stored, alerts=created)

    def close(self) -> None:
        """Release network clients held by collaborators."""
        seen: set[int] = set()
        for collaborator in (self.verifier, self.assets, self.readings, self.alerts):
            if id(collaborator) in seen:
                continue
            seen.add(id(collaborator))
            close = getattr(collaborator, "close", None)
            if callable(close):
                close()


def _build_verifier(settings: Settings) -> IdentityVerifier:
    if settings.auth_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise ValueError("AUTH_BACKEND=supabase requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
        return SupabaseIdentityVerifier.from_url(
            settings.supabase_url, settings.supabase_key, timeout=settings.store_timeout
        )
    return JwtIdentityVerifier(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        audience=settings.jwt_audience,
    )


@lru_cache
def build_default_ingestion_service() -> IngestionService:
    """Factory that wires the service from environment settings."""
    settings = get_settings()
    verifier = _build_verifier(settings)
    if settings.store_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise ValueError("STORE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
        store = RestDataStore.from_url(
            settings.supabase_url, settings.supabase_key, timeout=settings.store_timeout
        )
        return IngestionService(
            verifier=verifier,
            assets=store,
            readings=store,
            alerts=store,
            evaluator=ThresholdEvaluator(),
        )
    return IngestionService(
        verifier=verifier,
        assets=build_default_asset_directory(),
        readings=build_default_reading_store(),
        alerts=build_default_alert_store(),
        evaluator=ThresholdEvaluator(),
    )
