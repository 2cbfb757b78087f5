"""
Alert payload builder.

Turns stored anomalies into `{severity, title, message, symbol}` payloads for
the notification dispatcher. Delivery is the dispatcher's job; this module
only filters, groups and words the alerts.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from src.anomaly.schema import Anomaly, AnomalyStatus
from src.anomaly.scoring import overall_severity, severity_rank, sort_by_severity

from .config import AlertConfig
from .schema import AlertPayload


class AlertBuilder:
    """
    Deterministic alert builder.

    Rules:
    - Skip anomalies below min_severity and anomalies already resolved.
    - Group by symbol when group_by_symbol is True.
    - Order alerts by severity, most severe first, then by symbol.
    """

    def __init__(self, config: Optional[AlertConfig] = None) -> None:
        self.config = config or AlertConfig()

    def build_alerts(self, anomalies: Iterable[Anomaly]) -> List[AlertPayload]:
        """
        Build alert payloads from anomaly records.

        Args:
            anomalies: Iterable of Anomaly objects (any symbols).

        Returns:
            List of AlertPayload objects, at most max_alerts long.
        """
        floor = severity_rank(self.config.min_severity)
        qualifying = [
            a
            for a in anomalies
            if a.status != AnomalyStatus.RESOLVED and severity_rank(a.severity) >= floor
        ]

        if self.config.group_by_symbol:
            grouped: Dict[str, List[Anomaly]] = {}
            for anomaly in qualifying:
                grouped.setdefault(anomaly.symbol, []).append(anomaly)
            alerts = [self._group_alert(symbol, items) for symbol, items in grouped.items()]
        else:
            alerts = [self._single_alert(a) for a in sort_by_severity(qualifying)]

        alerts.sort(key=lambda a: (-severity_rank(a.severity), a.symbol))
        return alerts[: self.config.max_alerts]

    def _single_alert(self, anomaly: Anomaly) -> AlertPayload:
        label = anomaly.type.value.replace("_", " ")
        method = anomaly.details.get("method", "detector")
        return AlertPayload(
            severity=anomaly.severity,
            title=f"{anomaly.severity.value.upper()} {label} on {anomaly.symbol}",
            message=(
                f"{label.capitalize()} detected by {method} "
                f"(score {anomaly.score:.2f}) at {anomaly.detected_at.isoformat()}"
            ),
            symbol=anomaly.symbol,
            anomaly_ids=[anomaly.id],
            detected_at=anomaly.detected_at,
        )

    def _group_alert(self, symbol: str, anomalies: List[Anomaly]) -> AlertPayload:
        ordered = sort_by_severity(anomalies)
        severity = overall_severity(*(a.severity for a in ordered))
        types = list(dict.fromkeys(a.type.value for a in ordered))
        listed = ", ".join(t.replace("_", " ") for t in types[: self.config.max_types_listed])
        if len(types) > self.config.max_types_listed:
            listed += f" (+{len(types) - self.config.max_types_listed} more)"

        return AlertPayload(
            severity=severity,
            title=f"{severity.value.upper()} anomalies on {symbol}",
            message=(
                f"{len(ordered)} anomal{'y' if len(ordered) == 1 else 'ies'} on {symbol}: "
                f"{listed}; top score {ordered[0].score:.2f}"
            ),
            symbol=symbol,
            anomaly_ids=[a.id for a in ordered],
            detected_at=max(a.detected_at for a in ordered),
        )
