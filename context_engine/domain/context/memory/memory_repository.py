from abc import ABC, abstractmethod
from typing import List, Optional

from context_engine.domain.models import (
    MemoryRecord,
    NewMemory,
    Partition,
    ScoredMemory,
    SimilarityQuery,
)


class MemoryRepository(ABC):
    """Storage port for memory records and the per-partition update counter.

    Implementations must make insert() and replace_many() atomic: insert()
    increments the partition counter and writes the record in one step, and
    replace_many() either retires every id and writes every replacement or
    changes nothing.
    """

    @property
    def supports_native_search(self) -> bool:
        """Whether native_find_similar is backed by a real vector index"""
        return False

    @abstractmethod
    async def native_find_similar(self, query: SimilarityQuery) -> List[ScoredMemory]:
        """Index-accelerated nearest-neighbour query scoped to one partition.

        Raises:
            VectorStoreError: when the backend cannot serve the query.
        """
        raise NotImplementedError

    @abstractmethod
    async def find_recent(self, partition: Partition, limit: Optional[int] = None) -> List[MemoryRecord]:
        """Most recent memories first, embeddings included"""
        raise NotImplementedError

    @abstractmethod
    async def get(self, memory_id: int) -> Optional[MemoryRecord]:
        raise NotImplementedError

    @abstractmethod
    async def insert(self, partition: Partition, memory: NewMemory) -> MemoryRecord:
        """Increment the partition counter and write a record stamped with the new value"""
        raise NotImplementedError

    @abstractmethod
    async def replace_many(
        self,
        partition: Partition,
        retire_ids: List[int],
        replacements: List[NewMemory]
    ) -> List[MemoryRecord]:
        """Atomically delete retire_ids and insert replacements.

        Replacements are stamped with the current counter value; the counter
        itself is not incremented.

        Raises:
            VectorStoreError: if any retire id no longer exists in the partition.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, memory_id: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def delete_many(self, memory_ids: List[int]) -> int:
        raise NotImplementedError

    @abstractmethod
    async def count(self, partition: Partition) -> int:
        raise NotImplementedError

    @abstractmethod
    async def get_update_count(self, partition: Partition) -> int:
        raise NotImplementedError

    @abstractmethod
    async def increment_update_count(self, partition: Partition) -> int:
        """Atomically add one to the partition counter and return the new value"""
        raise NotImplementedError

    @abstractmethod
    async def reset_update_count(self, partition: Partition) -> None:
        raise NotImplementedError
