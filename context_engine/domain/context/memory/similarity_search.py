"""Cosine nearest-neighbour ranking over in-process candidates.

Pure functions, no state. Used by the memory store as the fallback when the
repository's native vector index cannot answer, and by the summarizer to
group related memories.
"""

import math
from typing import Iterable, List, Optional, Sequence, Tuple, TypeVar

from context_engine.domain.errors import DimensionMismatchError
from context_engine.domain.models import MemoryRecord, ScoredMemory

T = TypeVar("T")


def vector_norm(vector: Sequence[float]) -> float:
    return math.sqrt(sum(x * x for x in vector))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|); 0.0 when either vector has zero norm

    Raises:
        DimensionMismatchError: if the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(expected=len(a), actual=len(b))

    norm_a = vector_norm(a)
    norm_b = vector_norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    dot = sum(x * y for x, y in zip(a, b))
    return dot / (norm_a * norm_b)


def rank_candidates(
    query: Sequence[float],
    candidates: Iterable[Tuple[T, Optional[Sequence[float]]]],
    top_k: int,
    threshold: float
) -> List[Tuple[T, float]]:
    """Return up to top_k (candidate, similarity) pairs with similarity >= threshold.

    Ordered by similarity descending; equal scores keep candidate order.
    Candidates without a vector, or with a zero-norm vector, never match.
    A zero-norm query matches nothing.
    """
    if top_k <= 0:
        return []

    query_norm = vector_norm(query)
    scored: List[Tuple[T, float]] = []

    for candidate, vector in candidates:
        if vector is None:
            continue
        # Length is checked before the norm guards so bad data always surfaces
        if len(vector) != len(query):
            raise DimensionMismatchError(expected=len(query), actual=len(vector))
        if query_norm == 0.0 or vector_norm(vector) == 0.0:
            continue

        similarity = cosine_similarity(query, vector)
        if similarity >= threshold:
            scored.append((candidate, similarity))

    # sorted() is stable, reverse=True keeps insertion order among ties
    scored = sorted(scored, key=lambda pair: pair[1], reverse=True)
    return scored[:top_k]


def find_similar_memories(
    query: Sequence[float],
    memories: Iterable[MemoryRecord],
    top_k: int,
    threshold: float
) -> List[ScoredMemory]:
    """rank_candidates over memory records"""

    ranked = rank_candidates(
        query,
        ((memory, memory.embedding) for memory in memories),
        top_k=top_k,
        threshold=threshold
    )
    return [ScoredMemory(record=memory, similarity=score) for memory, score in ranked]
