"""
Time-series detectors.

Moving averages, exponential smoothing, trend-break detection and rolling
volatility spikes. All functions read their input and never mutate it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from src.core.config import DetectionConfig

from .schema import TrendChange, VolatilitySpike
from .statistical import is_negligible


def _mean_std(values: Sequence[float]) -> Tuple[float, float]:
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return mean, math.sqrt(variance)


def _slope(values: Sequence[float]) -> float:
    """Least-squares slope of values against 0..n-1."""
    n = len(values)
    x_mean = (n - 1) / 2.0
    y_mean = sum(values) / n
    numerator = sum((x - x_mean) * (y - y_mean) for x, y in enumerate(values))
    denominator = sum((x - x_mean) ** 2 for x in range(n))
    return numerator / denominator


def _check_window(window: int, minimum: int = 1) -> None:
    if window < minimum:
        raise ValueError(f"window must be >= {minimum}, got {window}")


@dataclass
class TimeSeriesDetector:
    """
    Stateless time-series detector.

    Short inputs produce empty output rather than errors; only a
    non-positive window is treated as a caller bug.
    """

    def moving_average(self, values: Sequence[float], window: int) -> List[float]:
        _check_window(window)
        n = len(values)
        if window > n:
            return []
        return [sum(values[i : i + window]) / window for i in range(n - window + 1)]

    def ema(self, values: Sequence[float], window: int) -> List[float]:
        _check_window(window)
        if not values:
            return []
        multiplier = 2.0 / (window + 1)
        smoothed = [float(values[0])]
        for value in values[1:]:
            smoothed.append(value * multiplier + smoothed[-1] * (1.0 - multiplier))
        return smoothed

    def trend_change(
        self, values: Sequence[float], window: int, noise_floor: float = 0.0
    ) -> List[TrendChange]:
        """
        Flag indices where the local slope reverses sign.

        The slope of the `window` points before an index is compared with the
        slope of the `window` points starting at it. Both slopes, relative to
        the mean absolute level of their window, must exceed `noise_floor`.
        change = |slope - previous_slope| / mean absolute step of the series.
        """
        _check_window(window, minimum=2)
        n = len(values)
        if n < 2 * window:
            return []

        mean_step = sum(abs(b - a) for a, b in zip(values, values[1:])) / (n - 1)
        if mean_step == 0.0:
            return []

        changes: List[TrendChange] = []
        for index in range(window, n - window + 1):
            before = values[index - window : index]
            after = values[index : index + window]
            previous_slope = _slope(before)
            slope = _slope(after)
            if previous_slope * slope >= 0.0:
                continue
            if not (
                _exceeds_floor(previous_slope, before, noise_floor)
                and _exceeds_floor(slope, after, noise_floor)
            ):
                continue
            changes.append(
                TrendChange(
                    index=index,
                    slope=slope,
                    previous_slope=previous_slope,
                    change=abs(slope - previous_slope) / mean_step,
                )
            )
        return changes

    def volatility_spikes(
        self, values: Sequence[float], config: DetectionConfig
    ) -> List[VolatilitySpike]:
        """
        Flag rolling windows whose std exceeds a multiple of the series std.

        The reported index is the last point of the window.
        """
        window = config.volatility_window_size
        n = len(values)
        if n < window:
            return []
        mean, overall = _mean_std(values)
        if is_negligible(overall, mean):
            return []

        spikes: List[VolatilitySpike] = []
        for end in range(window - 1, n):
            _, local = _mean_std(values[end - window + 1 : end + 1])
            ratio = local / overall
            if ratio > config.volatility_spike_multiplier:
                spikes.append(VolatilitySpike(index=end, volatility=local, ratio=ratio))
        return spikes


def _exceeds_floor(slope: float, window: Sequence[float], noise_floor: float) -> bool:
    level = sum(abs(v) for v in window) / len(window)
    return abs(slope) > noise_floor * level
