"""
Anomaly module: multi-dimensional anomaly detection for price/volume series.

Implements statistical, time-series, density and behavioral detectors, the
orchestrator that merges them, and the in-memory anomaly history.
"""

from .behavior import BehaviorPatternDetector
from .checks import DetectionCheck, Finding, PreparedSeries, build_default_checks
from .correlation import correlate
from .engine import AnomalyDetectionOrchestrator, get_default_orchestrator
from .schema import (
    Anomaly,
    AnomalyCorrelation,
    AnomalySeverity,
    AnomalyStats,
    AnomalyStatus,
    AnomalyType,
    TimeSeriesPoint,
)
from .scoring import SeverityMapper, overall_severity, sort_by_severity
from .statistical import StatisticalDetector
from .store import AnomalyHistoryStore
from .timeseries import TimeSeriesDetector

__all__ = [
    "AnomalyDetectionOrchestrator",
    "get_default_orchestrator",
    "AnomalyHistoryStore",
    "Anomaly",
    "AnomalyCorrelation",
    "AnomalySeverity",
    "AnomalyStats",
    "AnomalyStatus",
    "AnomalyType",
    "TimeSeriesPoint",
    "StatisticalDetector",
    "TimeSeriesDetector",
    "BehaviorPatternDetector",
    "DetectionCheck",
    "Finding",
    "PreparedSeries",
    "build_default_checks",
    "correlate",
    "SeverityMapper",
    "overall_severity",
    "sort_by_severity",
]
