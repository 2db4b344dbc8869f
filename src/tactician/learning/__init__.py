"""Tool selection and experience pattern learning.

- tool_store: decay-weighted telemetry, group comparison, blended candidates
- experiences / batch / patterns: lifelong pattern extraction
- engine: facade wiring both halves to one document store
"""

from tactician.learning.batch import BatchLearner, BatchLearnResult, score_experience
from tactician.learning.engine import LearningEngine, RetentionReport, ShutdownReport
from tactician.learning.experiences import (
    Experience,
    ExperienceCollector,
    ExperienceStore,
    SessionFacts,
)
from tactician.learning.lifelong import LearningSummary, LifelongLearner
from tactician.learning.patterns import LearningLog, LearningLogEntry, Pattern, PatternStore
from tactician.learning.tool_store import GroupResult, ToolCandidate, ToolLearner
from tactician.learning.weighter import DecayWeighter, ToolSuggestion, decay_weight

__all__ = [
    "BatchLearnResult",
    "BatchLearner",
    "DecayWeighter",
    "Experience",
    "ExperienceCollector",
    "ExperienceStore",
    "GroupResult",
    "LearningEngine",
    "LearningLog",
    "LearningLogEntry",
    "LearningSummary",
    "LifelongLearner",
    "Pattern",
    "PatternStore",
    "RetentionReport",
    "SessionFacts",
    "ShutdownReport",
    "ToolCandidate",
    "ToolLearner",
    "ToolSuggestion",
    "decay_weight",
    "score_experience",
]
