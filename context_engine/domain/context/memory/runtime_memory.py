from typing import Dict, List, Optional
import asyncio
from datetime import datetime
from collections import defaultdict

from context_engine.domain.errors import VectorStoreError
from context_engine.domain.models import (
    MemoryRecord,
    NewMemory,
    Partition,
    ScoredMemory,
    SimilarityQuery,
)
from .memory_repository import MemoryRepository


class RuntimeMemoryRepository(MemoryRepository):
    """In-process memory repository for development and tests.

    Has no vector index, so the store always ranks in-process. All mutations
    hold one lock, which makes insert() and replace_many() atomic.
    """

    def __init__(self):
        self.memories: Dict[int, MemoryRecord] = {}
        self.counters: Dict[Partition, int] = defaultdict(int)
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def native_find_similar(self, query: SimilarityQuery) -> List[ScoredMemory]:
        raise VectorStoreError("Runtime memory has no native vector index")

    async def find_recent(self, partition: Partition, limit: Optional[int] = None) -> List[MemoryRecord]:
        async with self._lock:
            records = self._partition_records(partition)

        records.sort(key=lambda m: (m.created_at, m.id), reverse=True)
        if limit is not None and limit > 0:
            records = records[:limit]
        return [record.model_copy(deep=True) for record in records]

    async def get(self, memory_id: int) -> Optional[MemoryRecord]:
        async with self._lock:
            record = self.memories.get(memory_id)
            return record.model_copy(deep=True) if record else None

    async def insert(self, partition: Partition, memory: NewMemory) -> MemoryRecord:
        async with self._lock:
            self.counters[partition] += 1
            return self._write(partition, memory, self.counters[partition])

    async def replace_many(
        self,
        partition: Partition,
        retire_ids: List[int],
        replacements: List[NewMemory]
    ) -> List[MemoryRecord]:
        async with self._lock:
            missing = [
                memory_id for memory_id in retire_ids
                if memory_id not in self.memories or self.memories[memory_id].partition != partition
            ]
            if missing:
                raise VectorStoreError(f"Memories no longer present in partition: {missing}")

            for memory_id in retire_ids:
                del self.memories[memory_id]

            current = self.counters[partition]
            return [self._write(partition, memory, current) for memory in replacements]

    async def delete(self, memory_id: int) -> bool:
        async with self._lock:
            return self.memories.pop(memory_id, None) is not None

    async def delete_many(self, memory_ids: List[int]) -> int:
        if not memory_ids:
            return 0
        async with self._lock:
            removed = 0
            for memory_id in memory_ids:
                if self.memories.pop(memory_id, None) is not None:
                    removed += 1
            return removed

    async def count(self, partition: Partition) -> int:
        async with self._lock:
            return len(self._partition_records(partition))

    async def get_update_count(self, partition: Partition) -> int:
        async with self._lock:
            return self.counters.get(partition, 0)

    async def increment_update_count(self, partition: Partition) -> int:
        async with self._lock:
            self.counters[partition] += 1
            return self.counters[partition]

    async def reset_update_count(self, partition: Partition) -> None:
        async with self._lock:
            self.counters[partition] = 0

    def _partition_records(self, partition: Partition) -> List[MemoryRecord]:
        return [m for m in self.memories.values() if m.partition == partition]

    def _write(self, partition: Partition, memory: NewMemory, update_count: int) -> MemoryRecord:
        """Caller must hold the lock"""
        now = datetime.utcnow()
        record = MemoryRecord(
            id=self._next_id,
            agent_id=partition.agent_id,
            user_id=partition.user_id,
            key_point=memory.key_point,
            context=dict(memory.context),
            embedding=list(memory.embedding),
            update_count=update_count,
            created_at=now,
            updated_at=now
        )
        self.memories[record.id] = record
        self._next_id += 1
        return record.model_copy(deep=True)
