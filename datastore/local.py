from __future__ import annotations
import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Generic, List, Optional, Sequence, Type, TypeVar
from uuid import uuid4

from pydantic import BaseModel

from app.schemas import AlertRecord, AssetRecord, ReadingRecord
from datastore.base import StoreError
from models.records import AlertDraft, Asset, SensorReading
from settings import get_settings

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class _JsonRecordTable(Generic[RecordT]):
    """Thread-safe in-memory row store with optional JSON file persistence."""

    record_type: Type[RecordT]

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._items: Dict[str, RecordT] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def _put_many(self, items: Sequence[RecordT]) -> None:
        with self._lock:
            updated = dict(self._items)
            for item in items:
                updated[item.id] = item.model_copy(deep=True)  # type: ignore[attr-defined]
            # Nothing becomes visible unless the file write succeeded.
            self._persist(updated)
            self._items = updated

    def _get(self, key: str) -> Optional[RecordT]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def scan(self) -> list[RecordT]:
        """Return deep copies of all stored rows in insertion order."""

        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    def _persist(self, items: Dict[str, RecordT]) -> None:
        if not self.persistence_path:
            return
        payload = {key: item.model_dump(mode="json") for key, item in items.items()}
        try:
            self.persistence_path.write_text(json.dumps(payload, indent=2))
        except OSError as exc:
            raise StoreError(f"Failed to write table {self.name!r}: {exc}") from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "Discarding unreadable table file %s",
                self.persistence_path,
                extra={"reason": str(exc)},
            )
            data = {}

        for key, payload in data.items():
            self._items[key] = self.record_type.model_validate(payload)


class LocalAssetDirectory(_JsonRecordTable[AssetRecord]):
    record_type = AssetRecord

    def put_asset(self, record: AssetRecord) -> None:
        self._put_many([record])

    def get_asset(self, asset_id: str) -> Optional[Asset]:
        record = self._get(asset_id)
        if record is None:
            return None
        return record.to_asset()


class LocalReadingStore(_JsonRecordTable[ReadingRecord]):
    record_type = ReadingRecord

    def insert_reading(self, reading: SensorReading) -> ReadingRecord:
        record = ReadingRecord(
            id=str(uuid4()),
            asset_id=reading.asset_id,
            temperature=reading.temperature,
            pressure=reading.pressure,
            vibration=reading.vibration,
            energy_consumption=reading.energy_consumption,
            timestamp=reading.timestamp,
        )
        self._put_many([record])
        return record

    def list_readings(self) -> list[ReadingRecord]:
        return self.scan()


class LocalAlertStore(_JsonRecordTable[AlertRecord]):
    record_type = AlertRecord

    def insert_alerts(self, drafts: Sequence[AlertDraft]) -> List[AlertRecord]:
        created_at = datetime.now(timezone.utc)
        records = [
            AlertRecord(
                id=str(uuid4()),
                asset_id=draft.asset_id,
                type=draft.type,
                severity=draft.severity,
                message=draft.message,
                status=draft.status,
                created_at=created_at,
            )
            for draft in drafts
        ]
        self._put_many(records)
        return records

    def list_alerts(self) -> list[AlertRecord]:
        return self.scan()


def _as_path(value: Optional[str]) -> Optional[Path]:
    return Path(value) if value else None


@lru_cache
def build_default_asset_directory(path: Optional[str] = None) -> LocalAssetDirectory:
    settings = get_settings()
    table_path = settings.assets_path if path is None else path
    return LocalAssetDirectory(name="assets", persistence_path=_as_path(table_path))


@lru_cache
def build_default_reading_store(path: Optional[str] = None) -> LocalReadingStore:
    settings = get_settings()
    table_path = settings.readings_path if path is None else path
    return LocalReadingStore(name="sensor_readings", persistence_path=_as_path(table_path))


@lru_cache
def build_default_alert_store(path: Optional[str] = None) -> LocalAlertStore:
    settings = get_settings()
    table_path = settings.alerts_path if path is None else path
    return LocalAlertStore(name="alerts", persistence_path=_as_path(table_path))
