"""
Behavior pattern detectors.

Compares the shape of recent activity with historical patterns (cosine
similarity) and checks values against their own seasonal phase.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Sequence

from .schema import BehaviorChangeResult, SeasonalAnomaly
from .statistical import is_negligible


@dataclass
class BehaviorPatternDetector:
    """
    Stateless behavior detector.

    Similarity is directional: proportional patterns score 1, opposite
    patterns score negative, and magnitude alone never counts as change.
    """

    def pattern_similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        length = min(len(a), len(b))
        if length == 0:
            return 0.0
        a, b = a[:length], b[:length]
        dot = sum(x * y for x, y in zip(a, b))
        norm_a = math.sqrt(sum(x * x for x in a))
        norm_b = math.sqrt(sum(y * y for y in b))
        if norm_a == 0.0 or norm_b == 0.0:
            return 0.0
        return dot / (norm_a * norm_b)

    def behavior_change(
        self,
        current: Sequence[float],
        historical_patterns: Sequence[Sequence[float]],
        threshold: float,
    ) -> BehaviorChangeResult:
        """
        Compare `current` with every historical pattern.

        similarity is the mean cosine similarity; change_magnitude is
        1 - similarity. Without usable history there is nothing to compare
        against, so no change is reported.
        """
        scores = [self.pattern_similarity(current, pattern) for pattern in historical_patterns]
        if not scores:
            return BehaviorChangeResult(has_changed=False, similarity=1.0, change_magnitude=0.0)
        similarity = sum(scores) / len(scores)
        return BehaviorChangeResult(
            has_changed=similarity < threshold,
            similarity=similarity,
            change_magnitude=1.0 - similarity,
        )

    def seasonal_anomaly(
        self, values: Sequence[float], period: int, z_threshold: float = 1.3
    ) -> List[SeasonalAnomaly]:
        """
        Flag values that deviate from their own phase bucket.

        Values are bucketed by index % period and scored against the bucket's
        mean/std, not the global distribution. Needs at least two full periods.
        deviation is |actual - expected| relative to |expected|.
        """
        if period < 1:
            raise ValueError(f"period must be >= 1, got {period}")
        if len(values) < 2 * period:
            return []

        buckets: Dict[int, List[float]] = {}
        for index, value in enumerate(values):
            buckets.setdefault(index % period, []).append(value)

        summaries = {}
        for phase, members in buckets.items():
            mean = sum(members) / len(members)
            std = math.sqrt(sum((v - mean) ** 2 for v in members) / len(members))
            summaries[phase] = (mean, std)

        anomalies: List[SeasonalAnomaly] = []
        for index, value in enumerate(values):
            phase = index % period
            mean, std = summaries[phase]
            if is_negligible(std, mean):
                continue
            z = (value - mean) / std
            if abs(z) <= z_threshold:
                continue
            deviation = abs(value - mean) / abs(mean) if mean != 0.0 else abs(value - mean)
            anomalies.append(
                SeasonalAnomaly(
                    index=index,
                    phase=phase,
                    expected=mean,
                    actual=value,
                    z_score=z,
                    deviation=deviation,
                )
            )
        return anomalies
