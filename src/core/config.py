"""
Application configuration for the Market Anomaly Sentinel.

Provides environment-aware settings with conservative defaults. All detection
thresholds are configurable to avoid hard-coded "magic numbers".
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class SeverityThresholds(BaseModel):
	"""
	Fractional score cut points for severity buckets.

	Scores below `low` map to LOW, [low, medium) to MEDIUM, [medium, high) to
	HIGH and anything at or above `high` to CRITICAL.
	"""

	low: float = Field(0.6, ge=0.0, le=1.0)
	medium: float = Field(0.75, ge=0.0, le=1.0)
	high: float = Field(0.9, ge=0.0, le=1.0)

	@model_validator(mode="after")
	def _check_order(self) -> "SeverityThresholds":
		if not (self.low <= self.medium <= self.high):
			raise ValueError(
				f"severity thresholds must be ordered low <= medium <= high, "
				f"got {self.low}/{self.medium}/{self.high}"
			)
		return self


class DetectionConfig(BaseModel):
	"""
	Detection thresholds shared by every detector.

	Notes:
	- Field names are snake_case; camelCase aliases are accepted so host
	  payloads such as {"zScoreThreshold": 2} validate unchanged.
	- isolation_contamination is the expected outlier fraction; a point is an
	  isolation anomaly when its score exceeds 1 - contamination.
	- cooldown_period_ms is keyed on symbol + anomaly type only.
	- seasonal_period, seasonal_z_threshold, cluster_count,
	  volatility_spike_multiplier and trend_noise_floor tune the individual
	  checks run by the orchestrator.
	"""

	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	z_score_threshold: float = Field(3.0, gt=0.0)
	iqr_multiplier: float = Field(1.5, ge=0.0)
	min_data_points: int = Field(30, ge=1)
	window_size: int = Field(20, ge=2)
	trend_window_size: int = Field(10, ge=2)
	volatility_window_size: int = Field(20, ge=2)
	isolation_contamination: float = Field(0.1, ge=0.0, le=1.0)
	min_cluster_size: int = Field(5, ge=1)
	pattern_history_length: int = Field(100, ge=1)
	behavior_change_threshold: float = Field(0.3, ge=-1.0, le=1.0)
	cooldown_period_ms: int = Field(60_000, ge=0)
	severity_thresholds: SeverityThresholds = SeverityThresholds()

	volatility_spike_multiplier: float = Field(2.0, gt=0.0)
	trend_noise_floor: float = Field(0.001, ge=0.0)
	seasonal_period: int = Field(24, ge=1)
	seasonal_z_threshold: float = Field(1.3, gt=0.0)
	cluster_count: int = Field(3, ge=1)

	def merged(
		self, overrides: Optional[Union["DetectionConfig", Mapping[str, Any]]] = None
	) -> "DetectionConfig":
		"""
		Return a copy of this config with `overrides` applied on top.

		Accepts a partial mapping (snake_case or camelCase keys) or another
		DetectionConfig, in which case only its explicitly set fields apply.
		severity_thresholds may itself be partial.
		"""
		if overrides is None:
			return self
		if isinstance(overrides, DetectionConfig):
			overrides = overrides.model_dump(exclude_unset=True)
		elif not isinstance(overrides, Mapping):
			raise ConfigurationError(
				f"Detection config overrides must be a mapping, got {type(overrides).__name__}"
			)

		names = _field_names()
		data: Dict[str, Any] = self.model_dump()
		for key, value in overrides.items():
			name = names.get(key)
			if name is None:
				raise ConfigurationError(f"Unknown detection setting: {key}")
			if name == "severity_thresholds":
				if isinstance(value, SeverityThresholds):
					value = value.model_dump()
				if not isinstance(value, Mapping):
					raise ConfigurationError("severity_thresholds must be a mapping")
				thresholds = dict(data["severity_thresholds"])
				thresholds.update(value)
				value = thresholds
			data[name] = value

		try:
			return DetectionConfig.model_validate(data)
		except ValidationError as exc:
			raise ConfigurationError(f"Invalid detection config: {exc}") from exc


def _field_names() -> Dict[str, str]:
	names: Dict[str, str] = {}
	for name in DetectionConfig.model_fields:
		names[name] = name
		names[to_camel(name)] = name
	return names


def build_detection_config(
	overrides: Optional[Union[DetectionConfig, Mapping[str, Any]]] = None,
) -> DetectionConfig:
	"""
	Merge partial overrides over the process-wide detection defaults.
	"""

	return config.detection.merged(overrides)


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.

	Nested detection defaults can be overridden with e.g.
	SENTINEL_DETECTION__Z_SCORE_THRESHOLD=2.5.
	"""

	model_config = SettingsConfigDict(
		env_prefix="SENTINEL_",
		env_file=".env",
		env_nested_delimiter="__",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	detection: DetectionConfig = DetectionConfig()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
