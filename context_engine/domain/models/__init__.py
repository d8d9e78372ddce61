from .memory_state import (
    Partition,
    MemoryRecord,
    NewMemory,
    ScoredMemory,
    SimilarityQuery,
    RetrievalSource,
    RetrievalResult,
    LifecycleAction,
    TurnOutcome,
    SummarizationReport,
)
from .translation_state import (
    ExtractionLevel,
    WordTranslation,
    ExtractionResult,
    StoredWordTranslation,
    StoredMessageTranslation,
    MessageTranslations,
)
from .context_state import AgentProfile, AssembledContext, ChatTurnResult

__all__ = [
    "Partition",
    "MemoryRecord",
    "NewMemory",
    "ScoredMemory",
    "SimilarityQuery",
    "RetrievalSource",
    "RetrievalResult",
    "LifecycleAction",
    "TurnOutcome",
    "SummarizationReport",
    "ExtractionLevel",
    "WordTranslation",
    "ExtractionResult",
    "StoredWordTranslation",
    "StoredMessageTranslation",
    "MessageTranslations",
    "AgentProfile",
    "AssembledContext",
    "ChatTurnResult",
]
