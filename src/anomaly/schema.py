"""
Schema definitions for price/volume anomaly detection.

Covers the input observations, the per-detector result rows, and the anomaly
records kept in history. Every anomaly carries its detector evidence in
`details` so downstream consumers can explain it without re-running detection.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Set
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class AnomalyType(str, Enum):
    """Closed set of anomaly categories."""

    STATISTICAL_OUTLIER = "statistical_outlier"
    TREND_BREAK = "trend_break"
    VOLATILITY_SPIKE = "volatility_spike"
    VOLUME_ANOMALY = "volume_anomaly"
    BEHAVIOR_CHANGE = "behavior_change"
    SEASONAL_ANOMALY = "seasonal_anomaly"
    CLUSTER_OUTLIER = "cluster_outlier"


class AnomalySeverity(str, Enum):
    """Severity levels for anomalies."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AnomalyStatus(str, Enum):
    """Review status of a stored anomaly."""

    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class TimeSeriesPoint(BaseModel):
    """
    A single price/volume observation.

    Non-finite values are rejected at validation time. Timestamps are
    normalized to UTC; naive timestamps are taken to be UTC already.
    """

    timestamp: datetime
    value: float = Field(allow_inf_nan=False)
    volume: float = Field(0.0, allow_inf_nan=False)

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class SeriesStats(BaseModel):
    """Population mean and standard deviation (NaN for empty input)."""

    mean: float
    std_dev: float


class ZScoreOutlier(BaseModel):
    index: int
    value: float
    z_score: float


class IQROutlier(BaseModel):
    """
    Point outside the IQR fences.

    score is the distance beyond the violated fence in units of IQR.
    """

    index: int
    value: float
    score: float
    lower_bound: float
    upper_bound: float


class IsolationResult(BaseModel):
    index: int
    value: float
    score: float
    is_anomaly: bool


class ClusterAssignment(BaseModel):
    index: int
    value: float
    cluster: int
    distance: float


class TrendChange(BaseModel):
    """
    Slope sign reversal at `index`.

    previous_slope is fitted on the window ending before index, slope on the
    window starting at index; change is the slope shift relative to the
    series' mean absolute step.
    """

    index: int
    slope: float
    previous_slope: float
    change: float


class VolatilitySpike(BaseModel):
    """Rolling window ending at `index` whose std exceeds the series std."""

    index: int
    volatility: float
    ratio: float


class BehaviorChangeResult(BaseModel):
    has_changed: bool
    similarity: float
    change_magnitude: float


class SeasonalAnomaly(BaseModel):
    """Value that deviates from its own phase bucket."""

    index: int
    phase: int
    expected: float
    actual: float
    z_score: float
    deviation: float


class Anomaly(BaseModel):
    """
    Stored anomaly record.

    Fields:
    - id: unique identifier, generated at detection time and never reused
    - symbol: series identifier (e.g. "BTC")
    - type: anomaly category
    - severity: bucket derived from score and severity thresholds
    - score: normalized detector score in [0.0, 1.0]
    - detected_at: detection timestamp (UTC)
    - status: review status, mutable through the orchestrator
    - details: detector evidence (index, observed_at, method, raw metrics)
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    symbol: str
    type: AnomalyType
    severity: AnomalySeverity
    score: float = Field(ge=0.0, le=1.0)
    detected_at: datetime
    status: AnomalyStatus = AnomalyStatus.OPEN
    details: Dict[str, Any] = Field(default_factory=dict)


class AnomalyCorrelation(BaseModel):
    """
    Group of anomalies from different symbols within one time window.

    shared_types holds the types present for every symbol in the group.
    """

    symbols: Set[str]
    timestamp: datetime
    shared_types: Set[AnomalyType]
    anomaly_ids: List[str] = Field(default_factory=list)


class AnomalyStats(BaseModel):
    """Aggregated counts over all retained history."""

    total_anomalies: int = 0
    open_anomalies: int = 0
    by_symbol: Dict[str, int] = Field(default_factory=dict)
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_severity: Dict[str, int] = Field(default_factory=dict)
    by_status: Dict[str, int] = Field(default_factory=dict)
