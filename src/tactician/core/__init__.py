"""Core configuration, errors, keys and logging."""

from tactician.core.config import (
    CompositeWeights,
    EngineConfig,
    ExperienceWeights,
    LifelongLearningConfig,
    LogConfig,
    RetentionConfig,
    ToolLearningConfig,
)
from tactician.core.errors import (
    ConfigurationError,
    InvalidGroupSizeError,
    StoreWriteError,
    TacticianError,
)
from tactician.core.keys import ContextKey, PatternKey, ScoreKey, build_context_key

__all__ = [
    "CompositeWeights",
    "ConfigurationError",
    "ContextKey",
    "EngineConfig",
    "ExperienceWeights",
    "InvalidGroupSizeError",
    "LifelongLearningConfig",
    "LogConfig",
    "PatternKey",
    "RetentionConfig",
    "ScoreKey",
    "StoreWriteError",
    "TacticianError",
    "ToolLearningConfig",
    "build_context_key",
]
