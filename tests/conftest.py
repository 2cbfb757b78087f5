"""
Pytest configuration and shared fixtures.

Provides detection configs, point factories, a controllable clock and a
seeded orchestrator for unit and integration tests.
"""

import random
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from src.anomaly.engine import AnomalyDetectionOrchestrator
from src.anomaly.schema import TimeSeriesPoint
from src.anomaly.store import AnomalyHistoryStore

BASE_TIME = datetime(2025, 2, 7, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, milliseconds: int) -> None:
        self.now = self.now + timedelta(milliseconds=milliseconds)


@pytest.fixture
def detection_config() -> Dict[str, Any]:
    """
    Fixture providing a permissive detection config for small series.

    minDataPoints is lowered to 10 and the cooldown disabled so every call
    records what it finds.
    """
    return {
        "z_score_threshold": 3,
        "iqr_multiplier": 1.5,
        "min_data_points": 10,
        "window_size": 20,
        "trend_window_size": 10,
        "volatility_window_size": 10,
        "isolation_contamination": 0.1,
        "min_cluster_size": 5,
        "pattern_history_length": 10,
        "behavior_change_threshold": 0.3,
        "cooldown_period_ms": 0,
        "severity_thresholds": {"low": 0.3, "medium": 0.6, "high": 0.8},
    }


@pytest.fixture
def make_points() -> Callable[..., List[TimeSeriesPoint]]:
    """
    Fixture returning a factory that turns values (and optional volumes)
    into one-second-spaced TimeSeriesPoint objects.
    """

    def _make(
        values: Sequence[float],
        volumes: Optional[Sequence[float]] = None,
        start: datetime = BASE_TIME,
    ) -> List[TimeSeriesPoint]:
        return [
            TimeSeriesPoint(
                timestamp=start + timedelta(seconds=i),
                value=value,
                volume=volumes[i] if volumes is not None else 1000.0,
            )
            for i, value in enumerate(values)
        ]

    return _make


@pytest.fixture
def spike_series() -> List[float]:
    """Ten quiet prices with a single jump to 150 at index 6."""
    return [100, 101, 100, 102, 101, 100, 150, 101, 100, 102]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def orchestrator(detection_config, clock) -> AnomalyDetectionOrchestrator:
    """Orchestrator with its own store, a pinned random source and a fake clock."""
    return AnomalyDetectionOrchestrator(
        config=detection_config,
        store=AnomalyHistoryStore(),
        rng=random.Random(7),
        clock=clock,
    )


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (deferred CI)"
    )
