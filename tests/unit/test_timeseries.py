"""
Unit tests for the time-series detector.
"""

import pytest

from src.anomaly.timeseries import TimeSeriesDetector
from src.core.config import DetectionConfig


class TestMovingAverage:
    def test_windowed_mean(self):
        ma = TimeSeriesDetector().moving_average([100, 101, 100, 102, 101], 3)
        assert len(ma) == 3  # n - window + 1
        assert ma[0] == pytest.approx(100.333, abs=1e-3)

    def test_window_larger_than_data(self):
        assert TimeSeriesDetector().moving_average([100, 101], 5) == []

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            TimeSeriesDetector().moving_average([1, 2, 3], 0)


class TestEMA:
    def test_seeded_with_first_value(self):
        ema = TimeSeriesDetector().ema([10, 11, 12, 13, 14], 3)
        assert len(ema) == 5
        assert ema == pytest.approx([10.0, 10.5, 11.25, 12.125, 13.0625])
        assert ema[-1] > ema[0]

    def test_empty(self):
        assert TimeSeriesDetector().ema([], 3) == []


class TestTrendChange:
    def test_rise_then_drop(self):
        data = [100, 105, 110, 115, 120, 80, 75, 70]
        changes = TimeSeriesDetector().trend_change(data, 3)

        assert len(changes) > 0
        at_drop = next(c for c in changes if c.index == 5)
        assert at_drop.previous_slope == pytest.approx(5.0)
        assert at_drop.slope == pytest.approx(-5.0)
        assert at_drop.change == pytest.approx(1.0)

    def test_steady_series_without_reversal(self):
        data = [100, 101, 102, 101, 100, 101, 102, 101]
        assert TimeSeriesDetector().trend_change(data, 3) == []

    def test_noise_floor_suppresses_small_slopes(self):
        data = [100, 100.01, 100.02, 100.01, 100.0, 99.99]
        assert TimeSeriesDetector().trend_change(data, 3, noise_floor=0.001) == []
        assert TimeSeriesDetector().trend_change(data, 3, noise_floor=0.0) != []

    def test_short_and_flat_series(self):
        detector = TimeSeriesDetector()
        assert detector.trend_change([1, 2, 3], 3) == []
        assert detector.trend_change([5.0] * 10, 3) == []


class TestVolatilitySpikes:
    CALM = [100.0 + (0.1 if i % 2 else -0.1) for i in range(60)]

    def test_burst_flagged(self):
        data = self.CALM + [120, 80, 120, 80, 120]
        config = DetectionConfig(volatility_window_size=5)
        spikes = TimeSeriesDetector().volatility_spikes(data, config)

        indices = [s.index for s in spikes]
        assert 64 in indices
        assert min(indices) >= 60
        assert all(s.ratio > config.volatility_spike_multiplier for s in spikes)

    def test_uniform_data(self):
        config = DetectionConfig(volatility_window_size=5)
        assert TimeSeriesDetector().volatility_spikes([100] * 10, config) == []

    def test_window_larger_than_data(self):
        config = DetectionConfig(volatility_window_size=20)
        assert TimeSeriesDetector().volatility_spikes([1, 2, 3], config) == []


def test_detectors_do_not_mutate_and_are_idempotent():
    detector = TimeSeriesDetector()
    data = [100, 105, 110, 115, 120, 80, 75, 70]
    snapshot = list(data)

    assert detector.moving_average(data, 3) == detector.moving_average(data, 3)
    assert detector.ema(data, 3) == detector.ema(data, 3)
    assert detector.trend_change(data, 3) == detector.trend_change(data, 3)
    assert data == snapshot
