from typing import Dict, List, Any, Optional, Sequence
import asyncio
import structlog

from context_engine.domain.errors import DimensionMismatchError, MissingEmbeddingError
from context_engine.domain.models import (
    MemoryRecord,
    NewMemory,
    Partition,
    RetrievalResult,
    RetrievalSource,
    SimilarityQuery,
)
from context_engine.infrastructure.config import EngineSettings, get_settings
from context_engine.infrastructure.observability.logging import engine_logger, metrics
from .memory_repository import MemoryRepository
from .similarity_search import find_similar_memories

logger = structlog.get_logger(__name__)


class MemoryStore:
    """Persistence and similarity search for partitioned memory records.

    find_similar() prefers the repository's native vector index and falls back
    to in-process ranking over the partition's most recent records. Neither
    failure reaches the caller: the worst case is an explicit unavailable
    result.
    """

    def __init__(self, repository: MemoryRepository, settings: Optional[EngineSettings] = None):
        self.repository = repository
        self.settings = settings or get_settings()

    async def find_similar(
        self,
        vector: Sequence[float],
        partition: Partition,
        top_k: Optional[int] = None,
        threshold: Optional[float] = None
    ) -> RetrievalResult:
        """Return up to top_k memories with similarity >= threshold"""

        query = SimilarityQuery(
            vector=list(vector),
            partition=partition,
            top_k=self.settings.max_similar_memories if top_k is None else top_k,
            threshold=self.settings.similarity_threshold if threshold is None else threshold
        )

        if query.top_k == 0:
            return RetrievalResult(memories=[], source=RetrievalSource.NATIVE)

        native_error: Optional[str] = None
        if self.repository.supports_native_search:
            try:
                self._check_dimension(query.vector)
                memories = await asyncio.wait_for(
                    self.repository.native_find_similar(query),
                    timeout=self.settings.native_search_timeout_seconds
                )
                return RetrievalResult(memories=memories[:query.top_k], source=RetrievalSource.NATIVE)
            except asyncio.TimeoutError:
                native_error = "native search timed out"
            except Exception as e:
                native_error = str(e) or type(e).__name__

            engine_logger.log_degradation(
                operation="memory.find_similar",
                fallback="in_process",
                error=native_error,
                **partition.log_fields()
            )
            metrics.increment_counter("memory.fallback")

        try:
            candidates = await self.repository.find_recent(
                partition, limit=self.settings.fallback_candidate_limit
            )
            memories = find_similar_memories(
                query.vector, candidates, top_k=query.top_k, threshold=query.threshold
            )
            logger.debug(
                "Fallback similarity search completed",
                candidates=len(candidates),
                matches=len(memories),
                **partition.log_fields()
            )
            return RetrievalResult(memories=memories, source=RetrievalSource.FALLBACK, error=native_error)
        except Exception as e:
            logger.warning(
                "Memory retrieval unavailable",
                native_error=native_error,
                error=str(e),
                **partition.log_fields()
            )
            metrics.increment_counter("memory.unavailable")
            return RetrievalResult.unavailable(error=str(e) or type(e).__name__)

    async def create(
        self,
        partition: Partition,
        key_point: str,
        context: Optional[Dict[str, Any]],
        vector: Optional[Sequence[float]]
    ) -> MemoryRecord:
        """Write one memory stamped with the next partition counter value

        Raises:
            MissingEmbeddingError: if vector is None or empty.
            DimensionMismatchError: if vector has the wrong dimension.
        """

        if not vector:
            raise MissingEmbeddingError("Cannot create a memory without an embedding")
        self._check_dimension(vector)

        record = await self.repository.insert(
            partition,
            NewMemory(key_point=key_point, context=context or {}, embedding=list(vector))
        )

        engine_logger.log_memory_event(
            "created",
            partition.agent_id,
            partition.user_id,
            {"memory_id": record.id, "update_count": record.update_count}
        )
        metrics.increment_counter("memory.created")
        return record

    async def replace_many(
        self,
        partition: Partition,
        retire_ids: List[int],
        replacements: List[NewMemory]
    ) -> List[MemoryRecord]:
        """Atomically retire memories and write their replacements"""

        for replacement in replacements:
            if not replacement.embedding:
                raise MissingEmbeddingError("Cannot write a replacement memory without an embedding")
            self._check_dimension(replacement.embedding)

        created = await self.repository.replace_many(partition, retire_ids, replacements)

        engine_logger.log_memory_event(
            "replaced",
            partition.agent_id,
            partition.user_id,
            {"retired_ids": list(retire_ids), "created_ids": [r.id for r in created]}
        )
        return created

    async def list_memories(self, partition: Partition, limit: Optional[int] = None) -> List[MemoryRecord]:
        """Most recent first"""
        return await self.repository.find_recent(partition, limit=limit)

    async def get(self, memory_id: int) -> Optional[MemoryRecord]:
        return await self.repository.get(memory_id)

    async def delete(self, memory_id: int) -> bool:
        deleted = await self.repository.delete(memory_id)
        logger.info("Memory deleted", memory_id=memory_id, deleted=deleted)
        return deleted

    async def delete_many(self, memory_ids: List[int]) -> int:
        if not memory_ids:
            return 0
        deleted = await self.repository.delete_many(list(memory_ids))
        logger.info("Memories deleted", requested=len(memory_ids), deleted=deleted)
        return deleted

    async def count(self, partition: Partition) -> int:
        return await self.repository.count(partition)

    async def get_update_count(self, partition: Partition) -> int:
        return await self.repository.get_update_count(partition)

    async def increment_update_count(self, partition: Partition) -> int:
        return await self.repository.increment_update_count(partition)

    async def reset_update_count(self, partition: Partition) -> None:
        await self.repository.reset_update_count(partition)
        logger.info("Update count reset", **partition.log_fields())

    def _check_dimension(self, vector: Sequence[float]):
        expected = self.settings.embedding_dimensions
        if len(vector) != expected:
            raise DimensionMismatchError(expected=expected, actual=len(vector))

