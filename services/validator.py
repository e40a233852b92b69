"""Structural and range validation for incoming sensor readings."""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from typing import Any, Mapping

from models.records import METRICS, SensorReading

TEMPERATURE_RANGE = (-50.0, 150.0)

_NON_NEGATIVE_MESSAGES = (
    ("pressure", "Pressure must be non-negative"),
    ("vibration", "Vibration must be non-negative"),
    ("energy_consumption", "Energy consumption must be non-negative"),
)


class ReadingValidationError(ValueError):
    """Raised with a caller-facing reason when a reading is rejected."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def _is_finite_number(value: Any) -> bool:
    # bool is an int subclass but never a valid measurement
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range
        return False


def decode_body(body: bytes | str) -> Any:
    """Decode a raw JSON request body; an empty body decodes to ``None``."""
    if not body or not body.strip():
        return None
    try:
        return json.loads(body)
    except ValueError as exc:
        raise ReadingValidationError("Invalid JSON body") from exc


def parse_timestamp(value: str) -> datetime:
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def validate_reading(payload: Any, received_at: datetime) -> SensorReading:
    """Validate a decoded request body and build a ``SensorReading``.

    Rules are checked in a fixed priority order and the first failure wins:
    ``asset_id``, then each metric's presence and finiteness, then the
    temperature window, then the non-negative metrics, then the optional
    timestamp. ``received_at`` is used when the payload carries no timestamp.
    Unknown keys are ignored.
    """
    if not isinstance(payload, Mapping):
        raise ReadingValidationError("Request body must be a JSON object")

    asset_id = payload.get("asset_id")
    if not isinstance(asset_id, str) or not asset_id:
        raise ReadingValidationError("Invalid asset_id")

    for field in METRICS:
        if not _is_finite_number(payload.get(field)):
            raise ReadingValidationError(f"Invalid {field}")

    low, high = TEMPERATURE_RANGE
    temperature = float(payload["temperature"])
    if temperature < low or temperature > high:
        raise ReadingValidationError(f"Temperature must be between {low:g} and {high:g}")

    for field, message in _NON_NEGATIVE_MESSAGES:
        if payload[field] < 0:
            raise ReadingValidationError(message)

    raw_timestamp = payload.get("timestamp")
    if raw_timestamp is None:
        timestamp = received_at
    elif isinstance(raw_timestamp, str):
        try:
            timestamp = parse_timestamp(raw_timestamp)
        except ValueError as exc:
            raise ReadingValidationError("Invalid timestamp") from exc
    else:
        raise ReadingValidationError("Invalid timestamp")

    return SensorReading(
        asset_id=asset_id,
        temperature=temperature,
        pressure=float(payload["pressure"]),
        vibration=float(payload["vibration"]),
        energy_consumption=float(payload["energy_consumption"]),
        timestamp=timestamp,
    )
