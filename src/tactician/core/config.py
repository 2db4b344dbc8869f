"""Configuration models for the Tactician learning engine.

Pydantic models for loading and validating YAML configuration. Every numeric
threshold used by the scoring code lives here so it can be tuned without
touching the algorithms.

Example YAML:
    data_dir: ~/.tactician
    tool_learning:
      decay_half_life_days: 7
      composite_weights:
        success: 0.4
        speed: 0.3
        accuracy: 0.2
        brevity: 0.1
    lifelong:
      pattern_epsilon: 0.05
    retention:
      max_age_days: 90
    logging:
      level: INFO
      format: console
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from tactician.core.errors import ConfigurationError
from tactician.utils.time import MS_PER_DAY

DEFAULT_DATA_DIR = Path.home() / ".tactician"


class CompositeWeights(BaseModel):
    """Blend weights for the group-comparison composite score.

    Success and speed must together outweigh accuracy and brevity, so a fast
    success always outranks a slow failure.
    """

    success: float = Field(default=0.35, ge=0.0, description="Weight of the binary success signal")
    speed: float = Field(default=0.25, ge=0.0, description="Weight of the group-relative speed score")
    accuracy: float = Field(default=0.25, ge=0.0, description="Weight of caller-assessed accuracy")
    brevity: float = Field(default=0.15, ge=0.0, description="Weight of caller-assessed brevity")

    @model_validator(mode="after")
    def _check_dominance(self) -> CompositeWeights:
        total = self.success + self.speed + self.accuracy + self.brevity
        if total <= 0:
            raise ValueError("composite weights must have a positive sum")
        if self.success <= 0:
            raise ValueError("success weight must be positive")
        if self.success + self.speed <= self.accuracy + self.brevity:
            raise ValueError(
                "success + speed weights must exceed accuracy + brevity weights"
            )
        return self


class ExperienceWeights(BaseModel):
    """Blend weights for scoring a single experience in the batch learner."""

    success: float = Field(default=0.35, ge=0.0)
    speed: float = Field(default=0.25, ge=0.0)
    error_rate: float = Field(default=0.25, ge=0.0)
    resource_efficiency: float = Field(default=0.15, ge=0.0)


class ToolLearningConfig(BaseModel):
    """Configuration for the decay-weighted telemetry store and its rankers."""

    max_records_per_context: int = Field(
        default=200,
        ge=1,
        description="Usage records kept per context; oldest evicted first.",
    )
    min_samples: int = Field(
        default=3,
        ge=1,
        description="Samples a tool needs before it is suggested for a context.",
    )
    high_confidence_samples: int = Field(
        default=20,
        ge=1,
        description="Samples at which a suggestion is labelled 'high' confidence.",
    )
    decay_half_life_days: float = Field(
        default=7.0,
        gt=0.0,
        description="Age at which an observation counts half as much as a fresh one.",
    )
    max_groups_per_context: int = Field(
        default=50,
        ge=1,
        description="Comparison groups kept per context; oldest evicted first.",
    )
    grpo_learning_rate: float = Field(
        default=0.1,
        gt=0.0,
        le=1.0,
        description="Step size applied to relative advantage when updating cumulative scores.",
    )
    grpo_neutral_score: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Starting cumulative score for a tool's first comparison.",
    )
    min_grpo_comparisons: int = Field(
        default=2,
        ge=1,
        description="Comparisons a tool needs before its cumulative score is trusted.",
    )
    grpo_blend_weight: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Share of the combined score taken from the cumulative comparison score "
        "when both signals are trusted.",
    )
    related_discount: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Multiplier applied to scores borrowed from related contexts.",
    )
    cold_start_floor: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Minimum combined score for a candidate with untrusted signals.",
    )
    default_suggestion_limit: int = Field(default=3, ge=1)
    default_min_score: float = Field(default=0.0, ge=0.0, le=1.0)
    flush_interval_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Delay before dirty telemetry is written to the backing store.",
    )
    composite_weights: CompositeWeights = Field(default_factory=CompositeWeights)

    @model_validator(mode="after")
    def _check_confidence_thresholds(self) -> ToolLearningConfig:
        if self.high_confidence_samples < self.min_samples:
            raise ValueError(
                f"high_confidence_samples ({self.high_confidence_samples}) must be "
                f">= min_samples ({self.min_samples})"
            )
        return self

    @property
    def half_life_ms(self) -> float:
        return self.decay_half_life_days * MS_PER_DAY


class LifelongLearningConfig(BaseModel):
    """Configuration for experience collection and batch pattern learning."""

    max_experiences: int = Field(
        default=1000,
        ge=1,
        description="Experiences kept in the store; oldest evicted first.",
    )
    max_log_entries: int = Field(default=200, ge=1)
    min_group_size: int = Field(
        default=2,
        ge=2,
        description="Experiences a (type, category) group needs before it is ranked.",
    )
    pattern_epsilon: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Margin by which the best composite must exceed the group mean "
        "for a pattern to be extracted.",
    )
    summary_lookback: int = Field(default=50, ge=1)
    experience_weights: ExperienceWeights = Field(default_factory=ExperienceWeights)


class RetentionConfig(BaseModel):
    """Configuration for age-based pruning."""

    max_age_days: float = Field(default=90.0, gt=0.0)
    prune_on_start: bool = Field(
        default=True,
        description="Prune stale telemetry and experiences when the engine initializes.",
    )
    prune_experiences: bool = Field(default=True)

    @property
    def max_age_ms(self) -> int:
        return int(self.max_age_days * MS_PER_DAY)


class LogConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    format: Literal["json", "console", "both"] = Field(
        default="console",
        description="json for structured, console for human-readable, "
        "both for console to stderr and JSON to file",
    )
    file_path: Path | None = Field(default=None)
    max_file_size_mb: int = Field(default=50, gt=0, le=1000)
    backup_count: int = Field(default=5, ge=0, le=100)
    include_timestamps: bool = Field(default=True)
    include_context: bool = Field(default=True)

    @model_validator(mode="after")
    def _check_file_path_required(self) -> LogConfig:
        if self.format == "both" and self.file_path is None:
            raise ValueError("file_path is required when format='both'")
        return self


class EngineConfig(BaseModel):
    """Top-level configuration for a LearningEngine."""

    data_dir: Path = Field(
        default=DEFAULT_DATA_DIR,
        description="Directory holding the JSON documents of the backing store.",
    )
    tool_learning: ToolLearningConfig = Field(default_factory=ToolLearningConfig)
    lifelong: LifelongLearningConfig = Field(default_factory=LifelongLearningConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    @field_validator("data_dir", mode="after")
    @classmethod
    def _expand_data_dir(cls, value: Path) -> Path:
        return value.expanduser()

    @classmethod
    def from_yaml(cls, path: Path) -> EngineConfig:
        """Load engine configuration from a YAML file.

        Raises:
            ConfigurationError: If the file cannot be read, parsed or validated.
        """
        try:
            with open(path) as f:
                text = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read config {path}: {e}") from e
        return cls.from_yaml_string(text)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> EngineConfig:
        """Load engine configuration from a YAML string.

        An empty document yields the defaults.
        """
        try:
            data = yaml.safe_load(yaml_str) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("Config root must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e


__all__ = [
    "CompositeWeights",
    "DEFAULT_DATA_DIR",
    "EngineConfig",
    "ExperienceWeights",
    "LifelongLearningConfig",
    "LogConfig",
    "RetentionConfig",
    "ToolLearningConfig",
]
