"""Tactician: adaptive tool selection and experience pattern learning."""

from tactician.core.config import EngineConfig
from tactician.core.errors import InvalidGroupSizeError, StoreWriteError, TacticianError
from tactician.core.keys import build_context_key
from tactician.learning.engine import LearningEngine

__version__ = "0.1.0"

__all__ = [
    "EngineConfig",
    "InvalidGroupSizeError",
    "LearningEngine",
    "StoreWriteError",
    "TacticianError",
    "__version__",
    "build_context_key",
]
