"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

METRICS: tuple[str, ...] = ("temperature", "pressure", "vibration", "energy_consumption")


class Severity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class AlertStatus(str, Enum):
    """Alert lifecycle states; only ``active`` is ever produced by ingestion."""

    active = "active"
    acknowledged = "acknowledged"
    resolved = "resolved"


@dataclass(frozen=True, slots=True)
class SensorReading:
    """A validated telemetry sample for one machine."""

    asset_id: str
    temperature: float
    pressure: float
    vibration: float
    energy_consumption: float
    timestamp: datetime

    def metric(self, name: str) -> float:
        return getattr(self, name)


@dataclass(frozen=True, slots=True)
class MetricRange:
    """Normal operating range for a single metric."""

    min: float
    max: float


@dataclass(frozen=True, slots=True)
class Asset:
    """A monitored machine and its per-metric operating envelope."""

    id: str
    temperature: MetricRange
    pressure: MetricRange
    vibration: MetricRange
    energy_consumption: MetricRange
    name: Optional[str] = None

    def envelope(self, metric: str) -> MetricRange:
        return getattr(self, metric)


@dataclass(frozen=True, slots=True)
class AlertDraft:
    """A threshold violation that has not been persisted yet."""

    asset_id: str
    type: str
    severity: Severity
    message: str
    status: AlertStatus = AlertStatus.active
