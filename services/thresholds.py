"""Envelope checks that turn a reading into classified alert drafts."""

from __future__ import annotations

from typing import List, Optional

from models.records import METRICS, AlertDraft, Asset, MetricRange, SensorReading, Severity

CRITICAL_EXCEEDANCE_PCT = 10.0

_LABELS = {
    "temperature": "Temperature",
    "pressure": "Pressure",
    "vibration": "Vibration",
    "energy_consumption": "Energy consumption",
}


def exceedance_pct(value: float, bound: float) -> float:
    """Percentage distance of ``value`` from ``bound``, relative to the bound."""
    if bound == 0:
        return float("inf")
    return abs(value - bound) / abs(bound) * 100


def classify_severity(exceedance: float) -> Severity:
    if exceedance > CRITICAL_EXCEEDANCE_PCT:
        return Severity.critical
    return Severity.medium


class ThresholdEvaluator:
    """Pure component comparing readings against an asset's envelope."""

    def evaluate(self, reading: SensorReading, asset: Asset) -> List[AlertDraft]:
        drafts: List[AlertDraft] = []
        for metric in METRICS:
            draft = self._check_metric(
                asset_id=reading.asset_id,
                metric=metric,
                value=reading.metric(metric),
                envelope=asset.envelope(metric),
            )
            if draft is not None:
                drafts.append(draft)
        return drafts

    @staticmethod
    def _check_metric(
        asset_id: str, metric: str, value: float, envelope: MetricRange
    ) -> Optional[AlertDraft]:
        label = _LABELS[metric]
        if value > envelope.max:
            return AlertDraft(
                asset_id=asset_id,
                type=f"{metric}_high",
                severity=classify_severity(exceedance_pct(value, envelope.max)),
                message=f"{label} {value:g} exceeds maximum threshold {envelope.max:g}",
            )
        # A zero minimum means no low-side check; ingestion rejects negatives anyway.
        if envelope.min != 0 and value < envelope.min:
            return AlertDraft(
                asset_id=asset_id,
                type=f"{metric}_low",
                severity=classify_severity(exceedance_pct(value, envelope.min)),
                message=f"{label} {value:g} is below minimum threshold {envelope.min:g}",
            )
        return None
