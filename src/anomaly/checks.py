"""
Detection checks run by the orchestrator.

Each check wraps one or more leaf detectors behind the same interface: a
fixed `kind` and `run(series, config) -> List[Finding]`. The orchestrator
runs them in registration order and never branches on the concrete class.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Sequence

from src.core.config import DetectionConfig

from .behavior import BehaviorPatternDetector
from .schema import AnomalyType, TimeSeriesPoint
from .scoring import clamp_score, iqr_confidence, volatility_confidence, z_score_confidence
from .statistical import StatisticalDetector, is_negligible
from .timeseries import TimeSeriesDetector

# Slope shifts below this (in mean absolute steps) are treated as noise.
TREND_CHANGE_MIN = 0.5


@dataclass(frozen=True)
class PreparedSeries:
    """Chronologically sorted columns extracted from the input points."""

    timestamps: List[datetime]
    values: List[float]
    volumes: List[float]

    @classmethod
    def from_points(cls, points: Sequence[TimeSeriesPoint]) -> "PreparedSeries":
        ordered = sorted(points, key=lambda p: p.timestamp)
        return cls(
            timestamps=[p.timestamp for p in ordered],
            values=[p.value for p in ordered],
            volumes=[p.volume for p in ordered],
        )

    def __len__(self) -> int:
        return len(self.values)


@dataclass
class Finding:
    """
    Partial anomaly produced by a check, before severity and id assignment.

    - score: normalized confidence in [0, 1]
    - index: position in the sorted series the finding refers to
    - method: detector that produced it (z_score, iqr, isolation, ...)
    - metrics: raw detector evidence copied into Anomaly.details
    """

    type: AnomalyType
    score: float
    index: int
    method: str
    metrics: Dict[str, Any] = field(default_factory=dict)


class DetectionCheck(ABC):
    """Interface shared by every registered check."""

    kind: AnomalyType

    @abstractmethod
    def run(self, series: PreparedSeries, config: DetectionConfig) -> List[Finding]:
        """Return findings for the series; empty when nothing is abnormal."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value})"


@dataclass(repr=False)
class StatisticalOutlierCheck(DetectionCheck):
    detector: StatisticalDetector
    kind: AnomalyType = AnomalyType.STATISTICAL_OUTLIER

    def run(self, series: PreparedSeries, config: DetectionConfig) -> List[Finding]:
        findings: List[Finding] = []
        for outlier in self.detector.z_score_outliers(series.values, config):
            findings.append(
                Finding(
                    type=self.kind,
                    score=z_score_confidence(outlier.z_score),
                    index=outlier.index,
                    method="z_score",
                    metrics={"z_score": outlier.z_score, "threshold": config.z_score_threshold},
                )
            )
        for outlier in self.detector.iqr_outliers(series.values, config):
            findings.append(
                Finding(
                    type=self.kind,
                    score=iqr_confidence(outlier.score),
                    index=outlier.index,
                    method="iqr",
                    metrics={
                        "iqr_distance": outlier.score,
                        "lower_bound": outlier.lower_bound,
                        "upper_bound": outlier.upper_bound,
                        "threshold": config.iqr_multiplier,
                    },
                )
            )
        return findings


@dataclass(repr=False)
class DensityCheck(DetectionCheck):
    """
    Isolation scoring plus small-cluster separation.

    A cluster smaller than min_cluster_size is an outlier group when its
    centroid lies more than z_score_threshold pooled standard deviations away
    from the nearest cluster that is large enough.
    """

    detector: StatisticalDetector
    kind: AnomalyType = AnomalyType.CLUSTER_OUTLIER

    def run(self, series: PreparedSeries, config: DetectionConfig) -> List[Finding]:
        findings: List[Finding] = []
        for result in self.detector.isolation_score(series.values, config.isolation_contamination):
            if result.is_anomaly:
                findings.append(
                    Finding(
                        type=self.kind,
                        score=clamp_score(result.score),
                        index=result.index,
                        method="isolation",
                        metrics={
                            "isolation_score": result.score,
                            "threshold": 1.0 - config.isolation_contamination,
                        },
                    )
                )
        findings.extend(self._small_clusters(series, config))
        return findings

    def _small_clusters(self, series: PreparedSeries, config: DetectionConfig) -> List[Finding]:
        assignments = self.detector.cluster_distances(series.values, config.cluster_count)
        members: Dict[int, List[float]] = {}
        for assignment in assignments:
            members.setdefault(assignment.cluster, []).append(assignment.value)

        centroids = {c: sum(vs) / len(vs) for c, vs in members.items()}
        large = [c for c, vs in members.items() if len(vs) >= config.min_cluster_size]
        small = [c for c, vs in members.items() if len(vs) < config.min_cluster_size]
        if not large or not small:
            return []

        pooled = [v - centroids[c] for c in large for v in members[c]]
        pooled_std = (sum(d * d for d in pooled) / len(pooled)) ** 0.5
        level = sum(centroids[c] for c in large) / len(large)

        findings: List[Finding] = []
        for cluster in small:
            separation = min(abs(centroids[cluster] - centroids[c]) for c in large)
            if is_negligible(pooled_std, level):
                if separation == 0.0:
                    continue
                spread = float("inf")
            else:
                spread = separation / pooled_std
            if spread <= config.z_score_threshold:
                continue
            for assignment in assignments:
                if assignment.cluster != cluster:
                    continue
                findings.append(
                    Finding(
                        type=self.kind,
                        score=z_score_confidence(min(spread, 1e9)),
                        index=assignment.index,
                        method="cluster",
                        metrics={
                            "cluster": cluster,
                            "cluster_size": len(members[cluster]),
                            "distance": assignment.distance,
                            "separation": separation,
                        },
                    )
                )
        return findings


@dataclass(repr=False)
class TrendBreakCheck(DetectionCheck):
    detector: TimeSeriesDetector
    kind: AnomalyType = AnomalyType.TREND_BREAK

    def run(self, series: PreparedSeries, config: DetectionConfig) -> List[Finding]:
        changes = self.detector.trend_change(
            series.values, config.trend_window_size, config.trend_noise_floor
        )
        return [
            Finding(
                type=self.kind,
                score=clamp_score(change.change),
                index=change.index,
                method="trend_change",
                metrics={
                    "slope": change.slope,
                    "previous_slope": change.previous_slope,
                    "change": change.change,
                },
            )
            for change in changes
            if change.change >= TREND_CHANGE_MIN
        ]


@dataclass(repr=False)
class VolatilityCheck(DetectionCheck):
    detector: TimeSeriesDetector
    kind: AnomalyType = AnomalyType.VOLATILITY_SPIKE

    def run(self, series: PreparedSeries, config: DetectionConfig) -> List[Finding]:
        return [
            Finding(
                type=self.kind,
                score=volatility_confidence(spike.ratio, config.volatility_spike_multiplier),
                index=spike.index,
                method="rolling_std",
                metrics={"volatility": spike.volatility, "ratio": spike.ratio},
            )
            for spike in self.detector.volatility_spikes(series.values, config)
        ]


@dataclass(repr=False)
class VolumeCheck(DetectionCheck):
    """Z-score outliers on the volume column."""

    detector: StatisticalDetector
    kind: AnomalyType = AnomalyType.VOLUME_ANOMALY

    def run(self, series: PreparedSeries, config: DetectionConfig) -> List[Finding]:
        summary = self.detector.stats(series.volumes)
        findings: List[Finding] = []
        for outlier in self.detector.z_score_outliers(series.volumes, config):
            metrics: Dict[str, Any] = {
                "z_score": outlier.z_score,
                "expected_volume": summary.mean,
                "actual_volume": outlier.value,
            }
            if summary.mean != 0.0:
                metrics["volume_change_percent"] = (
                    (outlier.value - summary.mean) / summary.mean * 100.0
                )
            findings.append(
                Finding(
                    type=self.kind,
                    score=z_score_confidence(outlier.z_score),
                    index=outlier.index,
                    method="volume_z_score",
                    metrics=metrics,
                )
            )
        return findings


@dataclass(repr=False)
class SeasonalCheck(DetectionCheck):
    detector: BehaviorPatternDetector
    kind: AnomalyType = AnomalyType.SEASONAL_ANOMALY

    def run(self, series: PreparedSeries, config: DetectionConfig) -> List[Finding]:
        anomalies = self.detector.seasonal_anomaly(
            series.values, config.seasonal_period, config.seasonal_z_threshold
        )
        return [
            Finding(
                type=self.kind,
                score=clamp_score(anomaly.deviation),
                index=anomaly.index,
                method="seasonal_bucket",
                metrics={
                    "phase": anomaly.phase,
                    "expected": anomaly.expected,
                    "actual": anomaly.actual,
                    "z_score": anomaly.z_score,
                    "deviation_percent": anomaly.deviation * 100.0,
                },
            )
            for anomaly in anomalies
        ]


@dataclass(repr=False)
class BehaviorChangeCheck(DetectionCheck):
    """
    Compare the step profile of the latest window_size chunk with the chunks
    before it.

    Chunks are compared on their first differences, so the direction of
    moves drives similarity and the price level does not. At most
    pattern_history_length earlier chunks are used; flat chunks carry no
    shape and are skipped on both sides. When two or more earlier chunks are
    available they must resemble each other (mean consecutive similarity at
    least behavior_change_threshold); a history that is already erratic has
    no behavior to depart from.
    """

    detector: BehaviorPatternDetector
    kind: AnomalyType = AnomalyType.BEHAVIOR_CHANGE

    def run(self, series: PreparedSeries, config: DetectionConfig) -> List[Finding]:
        size = config.window_size
        values = series.values
        chunk_count = len(values) // size
        if chunk_count < 2:
            return []

        start = len(values) - chunk_count * size
        profiles = [
            _steps(values[start + i * size : start + (i + 1) * size]) for i in range(chunk_count)
        ]
        current = profiles[-1]
        history = [p for p in profiles[:-1] if any(step != 0.0 for step in p)]
        history = history[-config.pattern_history_length :]
        if not history or not any(step != 0.0 for step in current):
            return []

        threshold = config.behavior_change_threshold
        consistency = None
        if len(history) > 1:
            pairs = [
                self.detector.pattern_similarity(a, b) for a, b in zip(history, history[1:])
            ]
            consistency = sum(pairs) / len(pairs)
            if consistency < threshold:
                return []

        result = self.detector.behavior_change(current, history, threshold)
        if not result.has_changed:
            return []
        return [
            Finding(
                type=self.kind,
                score=clamp_score(result.change_magnitude),
                index=len(values) - size,
                method="step_similarity",
                metrics={
                    "similarity": result.similarity,
                    "change_magnitude": result.change_magnitude,
                    "history_consistency": consistency,
                    "patterns_compared": len(history),
                },
            )
        ]


def _steps(chunk: Sequence[float]) -> List[float]:
    return [b - a for a, b in zip(chunk, chunk[1:])]


def build_default_checks(
    statistical: StatisticalDetector,
    timeseries: TimeSeriesDetector,
    behavior: BehaviorPatternDetector,
) -> List[DetectionCheck]:
    """Registered checks in evaluation order."""

    return [
        StatisticalOutlierCheck(statistical),
        DensityCheck(statistical),
        TrendBreakCheck(timeseries),
        VolatilityCheck(timeseries),
        VolumeCheck(statistical),
        SeasonalCheck(behavior),
        BehaviorChangeCheck(behavior),
    ]
