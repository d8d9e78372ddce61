from .memory_repository import MemoryRepository
from .runtime_memory import RuntimeMemoryRepository
from .similarity_search import cosine_similarity, find_similar_memories, rank_candidates
from .vector_memory_store import MemoryStore
from .memory_extractor import MemoryExtractor, parse_insights
from .memory_summarizer import MemorySummarizer, group_similar
from .memory_lifecycle import MemoryLifecycle

__all__ = [
    "MemoryRepository",
    "RuntimeMemoryRepository",
    "cosine_similarity",
    "find_similar_memories",
    "rank_candidates",
    "MemoryStore",
    "MemoryExtractor",
    "parse_insights",
    "MemorySummarizer",
    "group_similar",
    "MemoryLifecycle",
]
