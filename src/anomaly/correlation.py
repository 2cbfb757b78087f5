"""
Cross-symbol anomaly correlation.

Groups anomalies from several symbols by detection time. Records are chained:
a record joins the open group when it was detected within window_ms of the
group's latest record, so every pair of records within the window of each
other ends up in the same group. Only groups that span at least two symbols
are reported.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Set

from .schema import Anomaly, AnomalyCorrelation, AnomalyStatus, AnomalyType


def correlate(anomalies: Iterable[Anomaly], window_ms: int) -> List[AnomalyCorrelation]:
    """
    Build correlation groups from anomaly records.

    Resolved anomalies are ignored. Returns groups ordered by start time;
    an empty list when nothing overlaps.
    """

    if window_ms < 0:
        raise ValueError(f"window_ms must be >= 0, got {window_ms}")
    window = timedelta(milliseconds=window_ms)
    events = sorted(
        (a for a in anomalies if a.status != AnomalyStatus.RESOLVED),
        key=lambda a: (a.detected_at, a.symbol),
    )

    correlations: List[AnomalyCorrelation] = []
    group: List[Anomaly] = []

    def flush_group() -> None:
        correlation = _build_correlation(group)
        if correlation is not None:
            correlations.append(correlation)
        group.clear()

    for event in events:
        if group and event.detected_at - group[-1].detected_at > window:
            flush_group()
        group.append(event)
    if group:
        flush_group()

    return correlations


def _build_correlation(group: List[Anomaly]) -> Optional[AnomalyCorrelation]:
    types_by_symbol: Dict[str, Set[AnomalyType]] = {}
    for anomaly in group:
        types_by_symbol.setdefault(anomaly.symbol, set()).add(anomaly.type)
    if len(types_by_symbol) < 2:
        return None

    shared = set.intersection(*types_by_symbol.values())
    return AnomalyCorrelation(
        symbols=set(types_by_symbol),
        timestamp=group[0].detected_at,
        shared_types=shared,
        anomaly_ids=[a.id for a in group],
    )
