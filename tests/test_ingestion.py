from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import List, Sequence

import pytest

from app.schemas import AlertRecord, AssetRecord, ReadingRecord
from auth.verifier import IdentityVerificationError, Subject
from datastore.base import StoreError
from datastore.local import LocalAlertStore, LocalAssetDirectory, LocalReadingStore
from models.records import AlertDraft, SensorReading, Severity
from services.errors import InvalidInput, NotFound, StorageFailure, Unauthenticated
from services.ingestion import IngestionService
from services.thresholds import ThresholdEvaluator

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
AUTH = "Bearer good-token"


class StaticVerifier:
    def __init__(self) -> None:
        self.seen: List[str] = []

    def verify(self, credential: str) -> Subject:
        self.seen.append(credential)
        if credential != "good-token":
            raise IdentityVerificationError("unknown token")
        return Subject(id="user-1")


class FailingReadingStore(LocalReadingStore):
    def insert_reading(self, reading: SensorReading) -> ReadingRecord:
        raise StoreError("write timed out")


class FailingAlertStore(LocalAlertStore):
    def __init__(self) -> None:
        super().__init__(name="alerts")
        self.attempts: List[Sequence[AlertDraft]] = []

    def insert_alerts(self, drafts: Sequence[AlertDraft]) -> List[AlertRecord]:
        self.attempts.append(list(drafts))
        raise StoreError("alerts table unavailable")


class FailingAssetDirectory(LocalAssetDirectory):
    def get_asset(self, asset_id: str):
        raise StoreError("connection reset")


def _assets() -> LocalAssetDirectory:
    directory = LocalAssetDirectory(name="assets")
    directory.put_asset(
        AssetRecord(
            id="press-1",
            name="Hydraulic Press",
            temperature_min=20,
            temperature_max=85,
            pressure_min=50,
            pressure_max=200,
            vibration_min=0.1,
            vibration_max=2.0,
            energy_min=250,
            energy_max=800,
        )
    )
    return directory


def _service(**overrides) -> IngestionService:
    collaborators = {
        "verifier": StaticVerifier(),
        "assets": _assets(),
        "readings": LocalReadingStore(name="sensor_readings"),
        "alerts": LocalAlertStore(name="alerts"),
        "evaluator": ThresholdEvaluator(),
        "clock": lambda: NOW,
    }
    collaborators.update(overrides)
    return IngestionService(**collaborators)


def _body(**overrides) -> dict:
    body = {
        "asset_id": "press-1",
        "temperature": 60,
        "pressure": 120,
        "vibration": 1.0,
        "energy_consumption": 500,
    }
    body.update(overrides)
    return body


def test_in_range_reading_is_stored_without_alerts() -> None:
    service = _service()

    outcome = service.ingest(AUTH, _body())

    assert outcome.alerts == []
    assert outcome.alerts_persisted is True
    stored = service.readings.list_readings()  # type: ignore[attr-defined]
    assert [r.id for r in stored] == [outcome.reading.id]
    assert stored[0].timestamp == NOW
    assert service.alerts.list_alerts() == []  # type: ignore[attr-defined]


def test_raw_json_body_is_accepted() -> None:
    service = _service()

    outcome = service.ingest(AUTH, json.dumps(_body(timestamp="2024-01-01T00:00:00Z")).encode())

    assert outcome.reading.timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_violation_creates_persisted_alert() -> None:
    service = _service()

    outcome = service.ingest(AUTH, _body(temperature=95))

    assert [(a.type, a.severity) for a in outcome.alerts] == [
        ("temperature_high", Severity.critical)
    ]
    stored_alerts = service.alerts.list_alerts()  # type: ignore[attr-defined]
    assert len(stored_alerts) == 1
    assert stored_alerts[0].id
    assert stored_alerts[0].created_at is not None
    assert stored_alerts[0].status == "active"


@pytest.mark.parametrize("authorization", [None, "", "Token good-token", "Bearer ", "bearer good-token"])
def test_missing_or_malformed_header_is_unauthenticated(authorization) -> None:
    verifier = StaticVerifier()
    service = _service(verifier=verifier)

    with pytest.raises(Unauthenticated) as excinfo:
        service.ingest(authorization, _body())

    assert excinfo.value.message == "Missing or invalid Authorization header"
    assert verifier.seen == []


def test_rejected_credential_is_unauthenticated() -> None:
    service = _service()

    with pytest.raises(Unauthenticated) as excinfo:
        service.ingest("Bearer forged", _body())

    assert excinfo.value.message == "Invalid token"
    assert excinfo.value.status_code == 401


def test_authentication_precedes_validation() -> None:
    service = _service()

    with pytest.raises(Unauthenticated):
        service.ingest(None, b"{not json")


def test_invalid_reading_is_rejected_without_writes() -> None:
    service = _service()

    with pytest.raises(InvalidInput) as excinfo:
        service.ingest(AUTH, _body(vibration=-1))

    assert excinfo.value.message == "Vibration must be non-negative"
    assert excinfo.value.status_code == 400
    assert service.readings.list_readings() == []  # type: ignore[attr-defined]


def test_invalid_json_is_invalid_input() -> None:
    service = _service()

    with pytest.raises(InvalidInput) as excinfo:
        service.ingest(AUTH, b"{not json")

    assert excinfo.value.message == "Invalid JSON body"


def test_unknown_asset_is_not_found_and_nothing_is_written() -> None:
    service = _service()

    with pytest.raises(NotFound) as excinfo:
        service.ingest(AUTH, _body(asset_id="ghost", temperature=140))

    assert "ghost" in excinfo.value.message
    assert excinfo.value.status_code == 404
    assert service.readings.list_readings() == []  # type: ignore[attr-defined]
    assert service.alerts.list_alerts() == []  # type: ignore[attr-defined]


def test_reading_write_failure_is_storage_failure() -> None:
    alerts = LocalAlertStore(name="alerts")
    service = _service(readings=FailingReadingStore(name="sensor_readings"), alerts=alerts)

    with pytest.raises(StorageFailure) as excinfo:
        service.ingest(AUTH, _body(temperature=95))

    assert excinfo.value.message == "Failed to store sensor reading"
    assert alerts.list_alerts() == []


def test_asset_lookup_failure_is_storage_failure() -> None:
    service = _service(assets=FailingAssetDirectory(name="assets"))

    with pytest.raises(StorageFailure):
        service.ingest(AUTH, _body())


def test_alert_write_failure_does_not_fail_ingestion(caplog) -> None:
    alerts = FailingAlertStore()
    service = _service(alerts=alerts)

    with caplog.at_level(logging.WARNING, logger="services.ingestion"):
        outcome = service.ingest(AUTH, _body(temperature=95, pressure=10))

    assert outcome.alerts_persisted is False
    assert outcome.alerts == []
    assert [d.type for d in alerts.attempts[0]] == ["temperature_high", "pressure_low"]
    assert len(service.readings.list_readings()) == 1  # type: ignore[attr-defined]
    degraded = [r for r in caplog.records if "Alert write degraded" in r.getMessage()]
    assert len(degraded) == 1
    assert degraded[0].alert_count == 2
    assert degraded[0].asset_id == "press-1"


class CrashingAlertStore(LocalAlertStore):
    def insert_alerts(self, drafts: Sequence[AlertDraft]) -> List[AlertRecord]:
        raise ValueError("unexpected column in returned row")


def test_unexpected_alert_write_error_does_not_fail_ingestion(caplog) -> None:
    service = _service(alerts=CrashingAlertStore(name="alerts"))

    with caplog.at_level(logging.WARNING, logger="services.ingestion"):
        outcome = service.ingest(AUTH, _body(temperature=95))

    assert outcome.alerts_persisted is False
    assert len(service.readings.list_readings()) == 1  # type: ignore[attr-defined]
    degraded = [r for r in caplog.records if "Alert write degraded" in r.getMessage()]
    assert len(degraded) == 1
    assert degraded[0].exc_info is not None
    assert degraded[0].reason == "unexpected column in returned row"


def test_alert_store_is_not_called_without_violations() -> None:
    alerts = FailingAlertStore()
    service = _service(alerts=alerts)

    outcome = service.ingest(AUTH, _body())

    assert outcome.alerts_persisted is True
    assert alerts.attempts == []


def test_duplicate_submissions_are_stored_independently() -> None:
    service = _service()

    first = service.ingest(AUTH, _body(temperature=90))
    second = service.ingest(AUTH, _body(temperature=90))

    assert first.reading.id != second.reading.id
    assert len(service.readings.list_readings()) == 2  # type: ignore[attr-defined]
    alerts = service.alerts.list_alerts()  # type: ignore[attr-defined]
    assert [a.type for a in alerts] == ["temperature_high", "temperature_high"]
    assert all(a.severity == Severity.medium for a in alerts)


def test_close_releases_each_collaborator_once() -> None:
    class ClosingStore(LocalReadingStore):
        closed = 0

        def close(self) -> None:
            ClosingStore.closed += 1

    store = ClosingStore(name="shared")
    service = _service(readings=store, alerts=store)

    service.close()

    assert ClosingStore.closed == 1
