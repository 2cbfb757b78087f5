"""
Anomaly detection orchestrator.

Consumes price/volume observations for a symbol, runs every registered check,
maps detector scores to severities, deduplicates through the cooldown ledger,
and records surviving anomalies in the history store.
"""

from __future__ import annotations

import asyncio
import logging
import random
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from src.core.config import DetectionConfig, build_detection_config
from src.core.exceptions import DataValidationError
from src.core.logging_config import setup_logging

from .behavior import BehaviorPatternDetector
from .checks import DetectionCheck, Finding, PreparedSeries, build_default_checks
from .correlation import correlate
from .schema import (
    Anomaly,
    AnomalyCorrelation,
    AnomalySeverity,
    AnomalyStats,
    AnomalyStatus,
    TimeSeriesPoint,
)
from .scoring import SeverityMapper, sort_by_severity
from .statistical import StatisticalDetector
from .store import AnomalyHistoryStore
from .timeseries import TimeSeriesDetector

logger = logging.getLogger(__name__)

ConfigOverrides = Optional[Union[DetectionConfig, Mapping[str, Any]]]
PointInput = Union[TimeSeriesPoint, Mapping[str, Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnomalyDetectionOrchestrator:
    """
    Multi-detector anomaly engine over an explicit history store.

    Notes:
    - Per-call config overrides merge over the orchestrator's base config and
      never modify it; use update_config() for a lasting change.
    - `rng` feeds the isolation heuristic; pass a seeded Random for
      reproducible runs.
    - `clock` supplies detected_at and the cooldown reference time.
    - Detection itself is CPU-bound; adetect() moves it off the event loop.
    """

    def __init__(
        self,
        config: ConfigOverrides = None,
        store: Optional[AnomalyHistoryStore] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        checks: Optional[Iterable[DetectionCheck]] = None,
    ) -> None:
        self.config = build_detection_config(config)
        self.store = store if store is not None else AnomalyHistoryStore()
        self.statistical = StatisticalDetector(rng=rng if rng is not None else random.Random())
        self.timeseries = TimeSeriesDetector()
        self.behavior = BehaviorPatternDetector()
        self._clock = clock or _utcnow
        if checks is None:
            checks = build_default_checks(self.statistical, self.timeseries, self.behavior)
        self._checks: List[DetectionCheck] = list(checks)

    @property
    def checks(self) -> List[DetectionCheck]:
        return list(self._checks)

    def detect(
        self,
        symbol: str,
        points: Sequence[PointInput],
        config: ConfigOverrides = None,
    ) -> List[Anomaly]:
        """
        Detect anomalies in `points` and record the new ones for `symbol`.

        Returns only the records created by this call, most severe first.
        Fewer than min_data_points points yields an empty list.
        """
        effective = self.config.merged(config)
        if not isinstance(symbol, str) or not symbol:
            raise DataValidationError(f"symbol must be a non-empty string, got {symbol!r}")
        if len(points) < effective.min_data_points:
            logger.debug(
                "Skipping %s: %d points, %d required", symbol, len(points), effective.min_data_points
            )
            return []

        series = PreparedSeries.from_points(_validate_points(points))
        findings: List[Finding] = []
        for check in self._checks:
            findings.extend(check.run(series, effective))
        if not findings:
            logger.debug("No anomalies for %s over %d points", symbol, len(series))
            return []

        now = self._clock()
        mapper = SeverityMapper(effective.severity_thresholds)
        candidates = sort_by_severity(
            self._to_anomaly(symbol, finding, series, mapper, now) for finding in findings
        )
        admitted = self.store.admit(symbol, candidates, now, effective.cooldown_period_ms)

        logger.info(
            "Detected %d anomalies for %s (%d findings, %d suppressed by cooldown)",
            len(admitted),
            symbol,
            len(findings),
            len(candidates) - len(admitted),
        )
        if any(a.severity == AnomalySeverity.CRITICAL for a in admitted):
            logger.warning("Critical anomaly detected for %s", symbol)
        return admitted

    async def adetect(
        self,
        symbol: str,
        points: Sequence[PointInput],
        config: ConfigOverrides = None,
    ) -> List[Anomaly]:
        """Awaitable detect() for asyncio hosts; runs in a worker thread."""
        return await asyncio.to_thread(self.detect, symbol, points, config)

    def update_anomaly_status(self, anomaly_id: str, status: Union[AnomalyStatus, str]) -> bool:
        updated = self.store.update_status(anomaly_id, status)
        if updated:
            logger.info("Anomaly %s marked %s", anomaly_id, AnomalyStatus(status).value)
        return updated

    def get_anomaly_by_id(self, anomaly_id: str) -> Optional[Anomaly]:
        return self.store.find(anomaly_id)

    def get_anomaly_history(self, symbol: str) -> List[Anomaly]:
        return self.store.history(symbol)

    def get_anomaly_stats(self) -> AnomalyStats:
        return self.store.stats()

    def correlate_anomalies(self, symbols: Sequence[str], window_ms: int) -> List[AnomalyCorrelation]:
        """
        Group anomalies of `symbols` whose detection times fall within
        window_ms of each other. Resolved anomalies are left out.
        """
        return correlate(self.store.records_for(symbols), window_ms)

    def clear_history(self) -> None:
        self.store.clear()
        logger.info("Anomaly detection history cleared")

    def update_config(self, overrides: ConfigOverrides) -> DetectionConfig:
        self.config = self.config.merged(overrides)
        logger.info("Anomaly detection config updated")
        return self.config

    def _to_anomaly(
        self,
        symbol: str,
        finding: Finding,
        series: PreparedSeries,
        mapper: SeverityMapper,
        now: datetime,
    ) -> Anomaly:
        details = {
            "method": finding.method,
            "index": finding.index,
            "observed_at": series.timestamps[finding.index].isoformat(),
            "value": series.values[finding.index],
            "volume": series.volumes[finding.index],
        }
        details.update(finding.metrics)
        return Anomaly(
            symbol=symbol,
            type=finding.type,
            severity=mapper.severity(finding.score),
            score=finding.score,
            detected_at=now,
            details=details,
        )


def _validate_points(points: Sequence[PointInput]) -> List[TimeSeriesPoint]:
    validated: List[TimeSeriesPoint] = []
    for position, point in enumerate(points):
        if isinstance(point, TimeSeriesPoint):
            validated.append(point)
            continue
        try:
            validated.append(TimeSeriesPoint.model_validate(point))
        except ValidationError as exc:
            raise DataValidationError(f"Invalid time series point at position {position}: {exc}") from exc
    return validated


_default_orchestrator: Optional[AnomalyDetectionOrchestrator] = None
_default_lock = threading.Lock()


def get_default_orchestrator() -> AnomalyDetectionOrchestrator:
    """
    Process-wide orchestrator for hosts that want one shared history.

    Built lazily with the global config defaults; logging is configured on
    first use.
    """

    global _default_orchestrator
    with _default_lock:
        if _default_orchestrator is None:
            setup_logging()
            _default_orchestrator = AnomalyDetectionOrchestrator()
        return _default_orchestrator
