"""
Statistical detectors for price/volume series.

Implements explainable methods:
- Population mean/std summary
- Z-score outliers
- Interquartile-range (IQR) fences
- Isolation scoring (randomized partitioning heuristic)
- Nearest-centroid clustering distances

Everything except isolation scoring is deterministic. Isolation scoring draws
from the injected `rng`, so tests can pin a seed.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import List, Sequence

from src.core.config import DetectionConfig

from .schema import ClusterAssignment, IQROutlier, IsolationResult, SeriesStats, ZScoreOutlier

EULER_GAMMA = 0.5772156649015329
ISOLATION_ITERATIONS = 10
ISOLATION_MAX_SAMPLES = 256
CLUSTER_ITERATIONS = 10
IQR_EPSILON = 1e-9
RELATIVE_STD_TOLERANCE = 1e-12


def is_negligible(std_dev: float, mean: float) -> bool:
    """
    True when std_dev is zero up to float rounding of the mean.

    Summing identical non-integral floats can leave a residual std of a few
    ulps of the mean. The tolerance is purely relative, so series on any
    scale keep their real dispersion.
    """

    return std_dev == 0.0 or std_dev <= RELATIVE_STD_TOLERANCE * abs(mean)


def expected_path_length(n: int) -> float:
    """
    Average path length of an unsuccessful BST search over n points.

    Used both to normalize isolation depths and to credit the unresolved
    remainder of a partition that can no longer be split.
    """

    if n <= 1:
        return 0.0
    if n == 2:
        return 1.0
    return 2.0 * (math.log(n - 1) + EULER_GAMMA) - 2.0 * (n - 1) / n


@dataclass
class StatisticalDetector:
    """
    Stateless statistical outlier detector.

    The only state is the random source used by isolation_score.
    """

    rng: random.Random = field(default_factory=random.Random)

    def stats(self, values: Sequence[float]) -> SeriesStats:
        n = len(values)
        if n == 0:
            return SeriesStats(mean=math.nan, std_dev=math.nan)
        mean = sum(values) / n
        variance = sum((v - mean) ** 2 for v in values) / n
        return SeriesStats(mean=mean, std_dev=math.sqrt(variance))

    def z_score_outliers(
        self, values: Sequence[float], config: DetectionConfig
    ) -> List[ZScoreOutlier]:
        """
        Flag points whose |z| exceeds config.z_score_threshold.

        Zero dispersion yields z = 0 everywhere, so nothing is flagged.
        """
        if not values:
            return []
        summary = self.stats(values)
        flat = is_negligible(summary.std_dev, summary.mean)

        outliers: List[ZScoreOutlier] = []
        for index, value in enumerate(values):
            z = 0.0 if flat else (value - summary.mean) / summary.std_dev
            if abs(z) > config.z_score_threshold:
                outliers.append(ZScoreOutlier(index=index, value=value, z_score=z))
        return outliers

    def iqr_outliers(
        self, values: Sequence[float], config: DetectionConfig
    ) -> List[IQROutlier]:
        """
        Flag points outside [Q1 - m*IQR, Q3 + m*IQR].

        Quartiles are taken at sorted indices floor(n*0.25) and floor(n*0.75).
        The score is the distance beyond the fence in units of IQR.
        """
        n = len(values)
        if n == 0:
            return []
        ordered = sorted(values)
        q1 = ordered[int(math.floor(n * 0.25))]
        q3 = ordered[min(int(math.floor(n * 0.75)), n - 1)]
        iqr = q3 - q1
        lower = q1 - config.iqr_multiplier * iqr
        upper = q3 + config.iqr_multiplier * iqr
        scale = max(iqr, IQR_EPSILON)

        outliers: List[IQROutlier] = []
        for index, value in enumerate(values):
            if value < lower:
                distance = lower - value
            elif value > upper:
                distance = value - upper
            else:
                continue
            outliers.append(
                IQROutlier(
                    index=index,
                    value=value,
                    score=distance / scale,
                    lower_bound=lower,
                    upper_bound=upper,
                )
            )
        return outliers

    def isolation_score(
        self, values: Sequence[float], contamination: float
    ) -> List[IsolationResult]:
        """
        Score every point by how quickly random splits isolate it.

        score = 2 ** (-avg_path / c(n)); a point is anomalous when
        score > 1 - contamination. Uniform data scores 0.5 everywhere.
        """
        n = len(values)
        if n == 0:
            return []
        points = list(values)
        normalizer = expected_path_length(n)
        threshold = 1.0 - contamination

        results: List[IsolationResult] = []
        for index, value in enumerate(points):
            if normalizer == 0.0:
                score = 0.0
            else:
                total = sum(
                    self._isolation_depth(points, index) for _ in range(ISOLATION_ITERATIONS)
                )
                score = 2.0 ** (-(total / ISOLATION_ITERATIONS) / normalizer)
            results.append(
                IsolationResult(index=index, value=value, score=score, is_anomaly=score > threshold)
            )
        return results

    def _isolation_depth(self, points: List[float], index: int) -> float:
        value = points[index]
        others = points[:index] + points[index + 1 :]
        if len(others) >= ISOLATION_MAX_SAMPLES:
            others = self.rng.sample(others, ISOLATION_MAX_SAMPLES - 1)
        sample = others + [value]

        depth = 0
        while len(sample) > 1:
            low, high = min(sample), max(sample)
            if low == high:
                break
            split = self.rng.uniform(low, high)
            if value < split:
                sample = [v for v in sample if v < split]
            else:
                sample = [v for v in sample if v >= split]
            depth += 1
        return depth + expected_path_length(len(sample))

    def cluster_distances(self, values: Sequence[float], k: int) -> List[ClusterAssignment]:
        """
        Assign points to k centroids and report each point's distance.

        Seeds are evenly spaced over [min, max]; a fixed number of
        assign/recompute rounds follows. Distance, not a flag, is the signal.
        """
        if k < 1:
            raise ValueError(f"cluster count must be >= 1, got {k}")
        if not values:
            return []

        low, high = min(values), max(values)
        if k == 1:
            centroids = [(low + high) / 2.0]
        else:
            centroids = [low + (high - low) * i / (k - 1) for i in range(k)]

        assignments: List[int] = []
        for _ in range(CLUSTER_ITERATIONS):
            assignments = [_nearest(value, centroids) for value in values]
            for cluster in range(k):
                members = [v for v, a in zip(values, assignments) if a == cluster]
                if members:
                    centroids[cluster] = sum(members) / len(members)

        return [
            ClusterAssignment(
                index=index,
                value=value,
                cluster=cluster,
                distance=abs(value - centroids[cluster]),
            )
            for index, (value, cluster) in enumerate(zip(values, assignments))
        ]


def _nearest(value: float, centroids: List[float]) -> int:
    return min(range(len(centroids)), key=lambda c: abs(value - centroids[c]))
