from typing import Dict, List, Any, Optional, Sequence
import asyncio
import structlog

from context_engine.domain.interfaces import Embedder
from context_engine.domain.models import (
    MemoryRecord,
    NewMemory,
    Partition,
    SummarizationReport,
)
from context_engine.infrastructure.config import EngineSettings, get_settings
from context_engine.infrastructure.observability.logging import engine_logger, metrics
from .memory_extractor import MemoryExtractor
from .similarity_search import cosine_similarity
from .vector_memory_store import MemoryStore

logger = structlog.get_logger(__name__)


def group_similar(memories: Sequence[MemoryRecord], threshold: float) -> List[List[MemoryRecord]]:
    """Greedy single-pass grouping by cosine similarity to each group's seed.

    Memories are taken in id order, so the same set always yields the same
    groups. A memory without an embedding forms its own group.
    """

    ordered = sorted(memories, key=lambda m: m.id)
    grouped: set = set()
    groups: List[List[MemoryRecord]] = []

    for i, seed in enumerate(ordered):
        if seed.id in grouped:
            continue
        group = [seed]
        grouped.add(seed.id)

        if seed.embedding:
            for candidate in ordered[i + 1:]:
                if candidate.id in grouped or not candidate.embedding:
                    continue
                if cosine_similarity(seed.embedding, candidate.embedding) >= threshold:
                    group.append(candidate)
                    grouped.add(candidate.id)

        groups.append(group)

    return groups


def summary_context(group: Sequence[MemoryRecord]) -> Dict[str, Any]:
    sessions = []
    for memory in group:
        session_id = memory.context.get("session_id")
        if session_id is not None and session_id not in sessions:
            sessions.append(session_id)
    return {
        "source": "summarization",
        "summarized_from": [m.id for m in group],
        "session_ids": sessions,
    }


class MemorySummarizer:
    """Compacts clusters of near-duplicate memories into single summaries"""

    def __init__(
        self,
        store: MemoryStore,
        extractor: MemoryExtractor,
        embedder: Embedder,
        settings: Optional[EngineSettings] = None
    ):
        self.store = store
        self.extractor = extractor
        self.embedder = embedder
        self.settings = settings or get_settings()

    async def run(self, partition: Partition) -> SummarizationReport:
        """Summarize every multi-member group in the partition, then reset its counter.

        A group that cannot be summarized is left untouched; the others still
        proceed.
        """

        report = SummarizationReport(partition=partition)

        with metrics.timed("summarization"):
            memories = await self.store.list_memories(
                partition, limit=self.settings.memory_summarization_limit
            )
            report.examined = len(memories)

            groups = group_similar(memories, self.settings.memory_grouping_threshold)
            report.groups = len(groups)

            for group in groups:
                if len(group) < 2:
                    continue
                try:
                    created = await self._summarize_group(partition, group)
                except Exception as e:
                    report.failed_groups += 1
                    logger.warning(
                        "Memory group summarization failed",
                        group_ids=[m.id for m in group],
                        error=str(e),
                        error_type=type(e).__name__,
                        **partition.log_fields()
                    )
                    continue

                if created is None:
                    report.failed_groups += 1
                    continue

                report.summarized_groups += 1
                report.retired_ids.extend(m.id for m in group)
                report.created_ids.append(created.id)

            await self.store.reset_update_count(partition)

        engine_logger.log_memory_event(
            "summarized",
            partition.agent_id,
            partition.user_id,
            report.model_dump(include={"examined", "groups", "summarized_groups", "failed_groups"})
        )
        return report

    async def _summarize_group(self, partition: Partition, group: List[MemoryRecord]) -> Optional[MemoryRecord]:
        summary = await self.extractor.summarize([m.key_point for m in group])
        if not summary:
            logger.warning(
                "Empty summary returned",
                group_ids=[m.id for m in group],
                **partition.log_fields()
            )
            return None

        vector = await asyncio.wait_for(
            self.embedder.embed(summary),
            timeout=self.settings.embedding_timeout_seconds
        )

        created = await self.store.replace_many(
            partition,
            [m.id for m in group],
            [NewMemory(key_point=summary, context=summary_context(group), embedding=vector)]
        )
        return created[0]
