"""
Configuration for the anomaly alert builder.

Settings are bounded so a burst of anomalies cannot produce an unbounded
number of notification payloads.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from src.anomaly.schema import AnomalySeverity


class AlertConfig(BaseModel):
    """
    Alert routing configuration.

    Notes:
    - min_severity: anomalies below this severity never produce alerts.
    - group_by_symbol: if True, one alert per symbol summarizes all of its
      qualifying anomalies; otherwise one alert per anomaly.
    - max_alerts: cap on payloads returned per build call.
    - max_types_listed: cap on anomaly types named in a grouped message.
    """

    min_severity: AnomalySeverity = AnomalySeverity.HIGH
    group_by_symbol: bool = True
    max_alerts: int = Field(20, ge=1)
    max_types_listed: int = Field(5, ge=1)
