"""
Custom exceptions for the Market Anomaly Sentinel.

These exceptions provide clear error semantics across the system.
Use them to distinguish between data issues and configuration errors.
Degenerate inputs (empty series, zero variance, short windows) are not
errors and never raise.
"""


class AnomalyDetectionError(Exception):
    """Base exception for anomaly detection failures."""
    pass


class DataValidationError(AnomalyDetectionError):
    """Raised when time series points fail validation."""
    pass


class ConfigurationError(AnomalyDetectionError):
    """Raised when detection configuration is invalid or malformed."""
    pass
