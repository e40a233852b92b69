"""Supabase/PostgREST backed implementation of the storage collaborators."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

import httpx
from pydantic import ValidationError

from app.schemas import AlertRecord, AssetRecord, ReadingRecord
from datastore.base import StoreError
from models.records import AlertDraft, Asset, SensorReading


class RestDataStore:
    """Asset directory, reading store and alert store over one HTTP client.

    Rows live in the ``assets``, ``sensor_readings`` and ``alerts`` tables.
    Every call is bounded by the client's timeout; transport errors, timeouts
    and non-2xx answers are all reported as ``StoreError``.
    """

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    @classmethod
    def from_url(cls, base_url: str, api_key: str, timeout: float = 5.0) -> "RestDataStore":
        client = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
        )
        return cls(client)

    def close(self) -> None:
        self._client.close()

    def get_asset(self, asset_id: str) -> Optional[Asset]:
        rows = self._request(
            "GET",
            "/assets",
            params={"id": f"eq.{asset_id}", "select": "*", "limit": "1"},
        )
        if not rows:
            return None
        try:
            return AssetRecord.model_validate(rows[0]).to_asset()
        except ValidationError as exc:
            raise StoreError(f"Malformed asset row for {asset_id!r}") from exc

    def insert_reading(self, reading: SensorReading) -> ReadingRecord:
        row = {
            "asset_id": reading.asset_id,
            "temperature": reading.temperature,
            "pressure": reading.pressure,
            "vibration": reading.vibration,
            "energy_consumption": reading.energy_consumption,
            "timestamp": reading.timestamp.isoformat(),
        }
        rows = self._request("POST", "/sensor_readings", json=row)
        stored: Dict[str, Any] = dict(rows[0]) if rows else {}
        stored.setdefault("id", str(uuid4()))
        return ReadingRecord.model_validate({**row, **stored})

    def insert_alerts(self, drafts: Sequence[AlertDraft]) -> List[AlertRecord]:
        created_at = datetime.now(timezone.utc).isoformat()
        rows = [
            {
                "asset_id": draft.asset_id,
                "type": draft.type,
                "severity": draft.severity.value,
                "message": draft.message,
                "status": draft.status.value,
                "created_at": created_at,
            }
            for draft in drafts
        ]
        returned = self._request("POST", "/alerts", json=rows)
        if len(returned) != len(rows):
            returned = [{} for _ in rows]
        try:
            return [
                AlertRecord.model_validate({"id": str(uuid4()), **row, **stored})
                for row, stored in zip(rows, returned)
            ]
        except (ValidationError, TypeError) as exc:
            raise StoreError("Malformed alert rows returned") from exc

    def _request(self, method: str, path: str, **kwargs: Any) -> List[Dict[str, Any]]:
        headers = {"Prefer": "return=representation"} if method == "POST" else None
        try:
            response = self._client.request(method, path, headers=headers, **kwargs)
            response.raise_for_status()
            payload = response.json() if response.content else []
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise StoreError(f"{method} {path} returned invalid JSON") from exc
        if isinstance(payload, dict):
            return [payload]
        return list(payload)
