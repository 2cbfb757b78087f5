"""
Scoring and severity mapping for anomalies.

Each detector reports its own raw metric (z-score, IQR distance, slope
shift...). These helpers normalize raw metrics into [0, 1] and map the
normalized score onto severity buckets.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from src.core.config import SeverityThresholds

from .schema import Anomaly, AnomalySeverity

SEVERITY_ORDER = [
    AnomalySeverity.LOW,
    AnomalySeverity.MEDIUM,
    AnomalySeverity.HIGH,
    AnomalySeverity.CRITICAL,
]

# Raw metric that saturates the normalized score at 1.0.
Z_SCORE_SATURATION = 5.0
IQR_SATURATION = 3.0
VOLATILITY_SATURATION = 3.0


@dataclass
class SeverityMapper:
    """
    Maps normalized scores to severity levels.
    """

    thresholds: SeverityThresholds

    def severity(self, score: float) -> AnomalySeverity:
        if score >= self.thresholds.high:
            return AnomalySeverity.CRITICAL
        if score >= self.thresholds.medium:
            return AnomalySeverity.HIGH
        if score >= self.thresholds.low:
            return AnomalySeverity.MEDIUM
        return AnomalySeverity.LOW


def clamp_score(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def z_score_confidence(z_score: float) -> float:
    return clamp_score(abs(z_score) / Z_SCORE_SATURATION)


def iqr_confidence(distance: float) -> float:
    return clamp_score(distance / IQR_SATURATION)


def volatility_confidence(ratio: float, multiplier: float) -> float:
    """Zero at the spike threshold, saturating VOLATILITY_SATURATION above it."""
    return clamp_score((ratio - multiplier) / VOLATILITY_SATURATION)


def severity_rank(severity: AnomalySeverity) -> int:
    return SEVERITY_ORDER.index(severity)


def overall_severity(*severities: AnomalySeverity) -> AnomalySeverity:
    """
    Return the highest severity among inputs.
    """

    return SEVERITY_ORDER[max(severity_rank(s) for s in severities)]


def sort_by_severity(anomalies: Iterable[Anomaly]) -> List[Anomaly]:
    """Most severe first; ties broken by score, then by original order."""
    return sorted(
        anomalies,
        key=lambda a: (severity_rank(a.severity), a.score),
        reverse=True,
    )
