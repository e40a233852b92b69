"""Pydantic schemas for the HTTP API layer and persisted rows."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from models.records import AlertStatus, Asset, MetricRange, Severity


class IngestResponse(BaseModel):
    """Payload returned once a reading has been stored."""

    message: str = Field(..., description="Human readable acknowledgement.")


class ErrorResponse(BaseModel):
    """Payload returned for every rejected request."""

    error: str


class AssetRecord(BaseModel):
    """Row shape of the ``assets`` table as exposed by the configuration store."""

    id: str
    name: Optional[str] = None
    temperature_min: float
    temperature_max: float
    pressure_min: float
    pressure_max: float
    vibration_min: float
    vibration_max: float
    energy_min: float
    energy_max: float

    def to_asset(self) -> Asset:
        return Asset(
            id=self.id,
            name=self.name,
            temperature=MetricRange(self.temperature_min, self.temperature_max),
            pressure=MetricRange(self.pressure_min, self.pressure_max),
            vibration=MetricRange(self.vibration_min, self.vibration_max),
            energy_consumption=MetricRange(self.energy_min, self.energy_max),
        )


class ReadingRecord(BaseModel):
    """A stored sensor reading."""

    id: str
    asset_id: str
    temperature: float
    pressure: float
    vibration: float
    energy_consumption: float
    timestamp: datetime


class AlertRecord(BaseModel):
    """A stored alert row."""

    id: str
    asset_id: str
    type: str
    severity: Severity
    message: str
    status: AlertStatus = AlertStatus.active
    created_at: datetime
