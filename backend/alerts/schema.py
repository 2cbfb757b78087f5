"""
Schema for notification payloads handed to the host's dispatcher.
"""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from src.anomaly.schema import AnomalySeverity


class AlertPayload(BaseModel):
    """
    Notification payload.

    Required by the dispatcher:
    - severity, title, message, symbol

    Extra context:
    - anomaly_ids: anomalies summarized by this alert
    - detected_at: latest detection time among them
    """

    severity: AnomalySeverity
    title: str
    message: str
    symbol: str
    anomaly_ids: List[str] = Field(default_factory=list)
    detected_at: datetime
