"""
In-memory anomaly history.

One store holds every symbol's anomaly history plus the cooldown ledger used
for deduplication. All reads and writes go through a single re-entrant lock,
so concurrent detect calls cannot lose appends or admit duplicates. Queries
return copies; the stored records change only through the store's methods.

History lives for the lifetime of the store. Nothing is evicted; callers that
care about memory must call clear() themselves.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from .schema import Anomaly, AnomalyStats, AnomalyStatus, AnomalyType

logger = logging.getLogger(__name__)


class AnomalyHistoryStore:
    """
    Thread-safe per-symbol anomaly history.

    The cooldown key is (symbol, anomaly type): once a record of a given type
    is admitted for a symbol, further records of that type are suppressed
    until cooldown_ms has elapsed, regardless of which point they refer to.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._history: Dict[str, List[Anomaly]] = {}
        self._last_admitted: Dict[Tuple[str, AnomalyType], datetime] = {}

    def admit(
        self,
        symbol: str,
        candidates: Iterable[Anomaly],
        now: datetime,
        cooldown_ms: int,
    ) -> List[Anomaly]:
        """
        Apply the cooldown filter and append survivors in one critical section.

        Candidates are considered in the given order, so callers should pass
        them most severe first. Returns copies of the admitted records.
        """
        cooldown = timedelta(milliseconds=cooldown_ms)
        with self._lock:
            history = self._history.setdefault(symbol, [])
            admitted: List[Anomaly] = []
            for anomaly in candidates:
                key = (symbol, anomaly.type)
                last = self._last_admitted.get(key)
                if last is not None and now - last < cooldown:
                    logger.debug(
                        "Suppressed %s for %s: within %sms cooldown", anomaly.type.value, symbol, cooldown_ms
                    )
                    continue
                self._last_admitted[key] = now
                admitted.append(anomaly)
            history.extend(admitted)
            return [a.model_copy(deep=True) for a in admitted]

    def history(self, symbol: str) -> List[Anomaly]:
        with self._lock:
            return [a.model_copy(deep=True) for a in self._history.get(symbol, [])]

    def find(self, anomaly_id: str) -> Optional[Anomaly]:
        with self._lock:
            anomaly = self._find(anomaly_id)
            return anomaly.model_copy(deep=True) if anomaly is not None else None

    def update_status(self, anomaly_id: str, status: AnomalyStatus) -> bool:
        status = AnomalyStatus(status)
        with self._lock:
            anomaly = self._find(anomaly_id)
            if anomaly is None:
                return False
            anomaly.status = status
            return True

    def records_for(self, symbols: Iterable[str]) -> List[Anomaly]:
        with self._lock:
            records: List[Anomaly] = []
            for symbol in dict.fromkeys(symbols):
                records.extend(a.model_copy(deep=True) for a in self._history.get(symbol, []))
            return records

    def stats(self) -> AnomalyStats:
        with self._lock:
            stats = AnomalyStats()
            for symbol, anomalies in self._history.items():
                stats.by_symbol[symbol] = len(anomalies)
                stats.total_anomalies += len(anomalies)
                for anomaly in anomalies:
                    _increment(stats.by_type, anomaly.type.value)
                    _increment(stats.by_severity, anomaly.severity.value)
                    _increment(stats.by_status, anomaly.status.value)
                    if anomaly.status == AnomalyStatus.OPEN:
                        stats.open_anomalies += 1
            return stats

    def clear(self) -> None:
        with self._lock:
            self._history.clear()
            self._last_admitted.clear()

    def _find(self, anomaly_id: str) -> Optional[Anomaly]:
        for anomalies in self._history.values():
            for anomaly in anomalies:
                if anomaly.id == anomaly_id:
                    return anomaly
        return None


def _increment(counts: Dict[str, int], key: str) -> None:
    counts[key] = counts.get(key, 0) + 1
