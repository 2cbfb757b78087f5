"""
Unit tests for the registered detection checks.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from src.anomaly.behavior import BehaviorPatternDetector
from src.anomaly.checks import (
    BehaviorChangeCheck,
    DensityCheck,
    PreparedSeries,
    TrendBreakCheck,
    VolumeCheck,
    build_default_checks,
)
from src.anomaly.schema import AnomalyType, TimeSeriesPoint
from src.anomaly.statistical import StatisticalDetector
from src.anomaly.timeseries import TimeSeriesDetector
from src.core.config import DetectionConfig

T0 = datetime(2025, 2, 7, 12, 0, tzinfo=timezone.utc)


def _series(values, volumes=None):
    points = [
        TimeSeriesPoint(
            timestamp=T0 + timedelta(seconds=i),
            value=v,
            volume=volumes[i] if volumes else 1000.0,
        )
        for i, v in enumerate(values)
    ]
    return PreparedSeries.from_points(points)


def test_prepared_series_sorts_by_timestamp():
    points = [
        TimeSeriesPoint(timestamp=T0 + timedelta(seconds=2), value=3.0, volume=30.0),
        TimeSeriesPoint(timestamp=T0, value=1.0, volume=10.0),
        TimeSeriesPoint(timestamp=T0 + timedelta(seconds=1), value=2.0, volume=20.0),
    ]
    series = PreparedSeries.from_points(points)

    assert series.values == [1.0, 2.0, 3.0]
    assert series.volumes == [10.0, 20.0, 30.0]
    assert len(series) == 3


def test_default_check_order():
    checks = build_default_checks(
        StatisticalDetector(rng=random.Random(1)), TimeSeriesDetector(), BehaviorPatternDetector()
    )
    assert [c.kind for c in checks] == [
        AnomalyType.STATISTICAL_OUTLIER,
        AnomalyType.CLUSTER_OUTLIER,
        AnomalyType.TREND_BREAK,
        AnomalyType.VOLATILITY_SPIKE,
        AnomalyType.VOLUME_ANOMALY,
        AnomalyType.SEASONAL_ANOMALY,
        AnomalyType.BEHAVIOR_CHANGE,
    ]
    assert repr(checks[0]) == "StatisticalOutlierCheck(kind=statistical_outlier)"


def test_density_check_flags_isolated_cluster(spike_series):
    check = DensityCheck(StatisticalDetector(rng=random.Random(3)))
    findings = check.run(_series(spike_series), DetectionConfig())

    clustered = [f for f in findings if f.method == "cluster"]
    assert [f.index for f in clustered] == [6]
    assert clustered[0].score == 1.0
    assert clustered[0].metrics["cluster_size"] == 1


def test_density_check_quiet_on_flat_series():
    check = DensityCheck(StatisticalDetector(rng=random.Random(3)))
    assert check.run(_series([50.0] * 12), DetectionConfig()) == []


def test_volume_check_reports_change_percent():
    volumes = [1000.0] * 4 + [5000.0] + [1000.0] * 5
    config = DetectionConfig(z_score_threshold=2.5)
    findings = VolumeCheck(StatisticalDetector()).run(_series([100.0] * 10, volumes), config)

    assert len(findings) == 1
    finding = findings[0]
    assert finding.index == 4
    assert finding.metrics["expected_volume"] == 1400.0
    assert finding.metrics["volume_change_percent"] == (5000.0 - 1400.0) / 1400.0 * 100.0


def test_trend_break_check_flags_reversal():
    values = [100, 105, 110, 115, 120, 80, 75, 70, 72, 71]
    findings = TrendBreakCheck(TimeSeriesDetector()).run(
        _series(values), DetectionConfig(trend_window_size=3)
    )

    by_index = {f.index: f for f in findings}
    assert 5 in by_index
    assert by_index[5].metrics["previous_slope"] > 0 > by_index[5].metrics["slope"]


def test_behavior_change_check_flags_crash_after_steady_rise():
    rise = [100.0 + i for i in range(10)]
    crash = [109.0 - 3 * i for i in range(10)]
    findings = BehaviorChangeCheck(BehaviorPatternDetector()).run(
        _series(rise * 3 + crash), DetectionConfig(window_size=10)
    )

    assert len(findings) == 1
    assert findings[0].index == 30
    assert findings[0].score == 1.0
    assert findings[0].metrics["similarity"] == pytest.approx(-1.0)
    assert findings[0].metrics["history_consistency"] == pytest.approx(1.0)
    assert findings[0].metrics["patterns_compared"] == 3


def test_behavior_change_check_ignores_price_level():
    values = [100, 101, 102, 103, 200, 202, 204, 206, 50, 50.5, 51, 51.5]
    findings = BehaviorChangeCheck(BehaviorPatternDetector()).run(
        _series(values), DetectionConfig(window_size=4)
    )
    assert findings == []


def test_behavior_change_check_skips_erratic_history():
    values = [100, 101, 102, 103, 103, 102, 101, 100, 100, 99, 98, 97]
    findings = BehaviorChangeCheck(BehaviorPatternDetector()).run(
        _series(values), DetectionConfig(window_size=4)
    )
    assert findings == []


def test_behavior_change_check_needs_history():
    findings = BehaviorChangeCheck(BehaviorPatternDetector()).run(
        _series([1, 2, 3, 4]), DetectionConfig(window_size=4)
    )
    assert findings == []


def test_behavior_change_check_ignores_repeating_shape():
    values = [1, 2, 3, 4] * 3
    findings = BehaviorChangeCheck(BehaviorPatternDetector()).run(
        _series(values), DetectionConfig(window_size=4)
    )
    assert findings == []
