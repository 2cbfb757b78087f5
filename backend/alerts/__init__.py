"""
Alert payload builder exports.
"""

from .builder import AlertBuilder
from .config import AlertConfig
from .schema import AlertPayload

__all__ = [
    "AlertBuilder",
    "AlertConfig",
    "AlertPayload",
]
