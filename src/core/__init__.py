"""
Core module: Configuration, logging, and exception handling.
"""

from .config import Config, DetectionConfig, SeverityThresholds, build_detection_config, config
from .exceptions import (
    AnomalyDetectionError,
    DataValidationError,
    ConfigurationError,
)

__all__ = [
    "Config",
    "DetectionConfig",
    "SeverityThresholds",
    "build_detection_config",
    "config",
    "AnomalyDetectionError",
    "DataValidationError",
    "ConfigurationError",
]
