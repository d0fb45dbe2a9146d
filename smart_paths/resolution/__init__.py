"""Path resolution: alias table, learned intents and the stage pipeline."""

from .aliases import AliasEntry, AliasMatch, MappingTable, build_default_aliases
from .learning import (
    LearningStore,
    InMemoryLearningStore,
    JsonLearningStore,
    FeedbackRecord,
    LearnedIntent,
)
from .stages import ResolutionStage, ResolveContext, StageResult, run_pipeline
from .resolver import PathResolver, ResolvedPath, ResolverMetrics

__all__ = [
    "AliasEntry",
    "AliasMatch",
    "MappingTable",
    "build_default_aliases",
    "LearningStore",
    "InMemoryLearningStore",
    "JsonLearningStore",
    "FeedbackRecord",
    "LearnedIntent",
    "ResolutionStage",
    "ResolveContext",
    "StageResult",
    "run_pipeline",
    "PathResolver",
    "ResolvedPath",
    "ResolverMetrics",
]
