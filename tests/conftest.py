from typing import Any, Dict, List, Optional, Union
import asyncio

import pytest
from langchain_core.messages import BaseMessage, SystemMessage

from context_engine.domain.context.memory import MemoryStore, RuntimeMemoryRepository
from context_engine.domain.context.memory.similarity_search import find_similar_memories
from context_engine.domain.context.prompts import (
    EXTRACTION_SYSTEM,
    SUMMARIZATION_SYSTEM,
    WORD_PARSING_SYSTEM,
)
from context_engine.domain.errors import VectorStoreError
from context_engine.domain.interfaces import Completer, Embedder
from context_engine.domain.models import Partition, ScoredMemory, SimilarityQuery
from context_engine.infrastructure.config import EngineSettings
from context_engine.infrastructure.observability.logging import metrics


class FakeEmbedder(Embedder):
    """Looks vectors up by exact text; unknown text gets a fixed default"""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default: Optional[List[float]] = None):
        self.vectors = dict(vectors or {})
        self.default = default if default is not None else [0.0, 0.0, 1.0]
        self.calls: List[str] = []
        self.error: Optional[Exception] = None
        self.delay: float = 0.0

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.vectors.get(text, self.default))


Reply = Union[str, Exception, List[Union[str, Exception]]]


class ScriptedCompleter(Completer):
    """Answers by prompt kind: extraction, summarization, word_parsing or chat.

    A route value is a reply string, an exception to raise, or a list consumed
    one entry per call (the last entry repeats).
    """

    def __init__(self, **routes: Reply):
        self.routes: Dict[str, Reply] = {"chat": "ok", "extraction": "", "summarization": "", "word_parsing": ""}
        self.routes.update(routes)
        self.calls: List[Dict[str, Any]] = []

    @staticmethod
    def kind(messages: List[BaseMessage]) -> str:
        first_system = next((m.content for m in messages if isinstance(m, SystemMessage)), None)
        if first_system == EXTRACTION_SYSTEM:
            return "extraction"
        if first_system == SUMMARIZATION_SYSTEM:
            return "summarization"
        if first_system == WORD_PARSING_SYSTEM:
            return "word_parsing"
        return "chat"

    def calls_of(self, kind: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["kind"] == kind]

    async def complete(self, messages: List[BaseMessage], params: Optional[Dict[str, Any]] = None) -> str:
        kind = self.kind(messages)
        self.calls.append({"kind": kind, "messages": list(messages), "params": dict(params or {})})

        reply = self.routes[kind]
        if isinstance(reply, list):
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class NativeMemoryRepository(RuntimeMemoryRepository):
    """Runtime repository that pretends to have a vector index"""

    def __init__(self):
        super().__init__()
        self.native_error: Optional[Exception] = None
        self.native_delay: float = 0.0
        self.native_calls = 0

    @property
    def supports_native_search(self) -> bool:
        return True

    async def native_find_similar(self, query: SimilarityQuery) -> List[ScoredMemory]:
        self.native_calls += 1
        if self.native_delay:
            await asyncio.sleep(self.native_delay)
        if self.native_error is not None:
            raise self.native_error
        records = await self.find_recent(query.partition)
        return find_similar_memories(query.vector, records, query.top_k, query.threshold)


class BrokenMemoryRepository(NativeMemoryRepository):
    """Every read path fails"""

    def __init__(self):
        super().__init__()
        self.native_error = VectorStoreError("index offline")

    async def find_recent(self, partition, limit=None):
        raise VectorStoreError("database offline")


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(
        embedding_dimensions=3,
        embedding_timeout_seconds=0.5,
        native_search_timeout_seconds=0.2,
        summarization_timeout_seconds=5.0,
        embed_current_time=False,
    )


@pytest.fixture
def partition() -> Partition:
    return Partition(agent_id=1, user_id="user-1")


@pytest.fixture
def repository() -> RuntimeMemoryRepository:
    return RuntimeMemoryRepository()


@pytest.fixture
def native_repository() -> NativeMemoryRepository:
    return NativeMemoryRepository()


@pytest.fixture
def store(repository, settings) -> MemoryStore:
    return MemoryStore(repository, settings)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def completer() -> ScriptedCompleter:
    return ScriptedCompleter()


@pytest.fixture
def broken_repository() -> BrokenMemoryRepository:
    return BrokenMemoryRepository()
