"""Interfaces of the storage collaborators used by the ingestion pipeline."""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from app.schemas import AlertRecord, ReadingRecord
from models.records import AlertDraft, Asset, SensorReading


class StoreError(RuntimeError):
    """A storage call failed or timed out."""


class AssetDirectory(Protocol):
    def get_asset(self, asset_id: str) -> Optional[Asset]:
        ...


class ReadingStore(Protocol):
    def insert_reading(self, reading: SensorReading) -> ReadingRecord:
        ...


class AlertStore(Protocol):
    def insert_alerts(self, drafts: Sequence[AlertDraft]) -> List[AlertRecord]:
        ...
