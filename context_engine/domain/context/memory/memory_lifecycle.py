from typing import Dict, List, Any, Optional, Sequence, Set
import asyncio
import structlog

from context_engine.domain.interfaces import Completer, Embedder
from context_engine.domain.models import (
    LifecycleAction,
    MemoryRecord,
    Partition,
    SummarizationReport,
    TurnOutcome,
)
from context_engine.infrastructure.background import BackgroundTaskRunner
from context_engine.infrastructure.config import EngineSettings, get_settings
from .memory_extractor import MemoryExtractor, TranscriptEntry
from .memory_summarizer import MemorySummarizer
from .vector_memory_store import MemoryStore

logger = structlog.get_logger(__name__)


class MemoryLifecycle:
    """Decides when a conversation produces new memories and when to compact them.

    Extraction runs at conversation checkpoints (the first message and every
    memory_save_interval messages after). Whenever a new record's counter
    stamp lands on a multiple of memory_summarization_interval, a
    summarization pass is spawned in the background. Nothing here raises to
    the caller: a failed extraction is reported in the returned TurnOutcome.
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: Embedder,
        completer: Completer,
        settings: Optional[EngineSettings] = None,
        runner: Optional[BackgroundTaskRunner] = None
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.embedder = embedder
        self.extractor = MemoryExtractor(completer, self.settings)
        self.summarizer = MemorySummarizer(store, self.extractor, embedder, self.settings)
        self.runner = runner or BackgroundTaskRunner(
            default_timeout=self.settings.summarization_timeout_seconds
        )
        self._summarizing: Set[Partition] = set()

    def should_extract(self, message_count: int) -> bool:
        if message_count <= 0:
            return False
        return message_count == 1 or message_count % self.settings.memory_save_interval == 0

    def should_summarize(self, records: Sequence[MemoryRecord]) -> bool:
        interval = self.settings.memory_summarization_interval
        return any(r.update_count > 0 and r.update_count % interval == 0 for r in records)

    async def record_turn(
        self,
        partition: Partition,
        session_id: str,
        transcript: Sequence[TranscriptEntry],
        session_name: Optional[str] = None
    ) -> TurnOutcome:
        """Feed the updated transcript of a session into the lifecycle"""

        message_count = len(transcript)
        outcome = TurnOutcome(message_count=message_count)

        if not self.should_extract(message_count):
            return outcome

        context = {
            "session_id": session_id,
            "session_name": session_name,
            "message_count": message_count,
        }

        try:
            created = await self.extract_memories(partition, transcript, context)
        except Exception as e:
            logger.warning(
                "Memory extraction failed",
                session_id=session_id,
                message_count=message_count,
                error=str(e),
                error_type=type(e).__name__,
                **partition.log_fields()
            )
            outcome.action = LifecycleAction.EXTRACTION_FAILED
            return outcome

        outcome.action = LifecycleAction.EXTRACTED
        outcome.created = created

        if created and self.should_summarize(created):
            outcome.summarization_scheduled = self.schedule_summarization(partition)

        return outcome

    async def extract_memories(
        self,
        partition: Partition,
        transcript: Sequence[TranscriptEntry],
        context: Dict[str, Any]
    ) -> List[MemoryRecord]:
        """Extract insights and write each one; a failed insight is skipped.

        Raises whatever the completion call raises, so record_turn can report
        the failure.
        """

        insights = await self.extractor.extract_insights(transcript)
        created: List[MemoryRecord] = []

        for insight in insights:
            try:
                vector = await asyncio.wait_for(
                    self.embedder.embed(insight),
                    timeout=self.settings.embedding_timeout_seconds
                )
                record = await self.store.create(partition, insight, dict(context), vector)
            except asyncio.TimeoutError:
                logger.warning("Insight embedding timed out", insight=insight[:50], **partition.log_fields())
                continue
            except Exception as e:
                logger.warning(
                    "Failed to store insight",
                    insight=insight[:50],
                    error=str(e),
                    error_type=type(e).__name__,
                    **partition.log_fields()
                )
                continue
            created.append(record)

        logger.info(
            "Memories extracted",
            insights=len(insights),
            created=len(created),
            session_id=context.get("session_id"),
            **partition.log_fields()
        )
        return created

    def schedule_summarization(self, partition: Partition) -> bool:
        """Spawn a background summarization unless one is already running for the partition"""

        if partition in self._summarizing:
            logger.info("Summarization already in flight", **partition.log_fields())
            return False

        task = self.runner.spawn(
            "memory_summarization",
            lambda: self.summarizer.run(partition),
            timeout=self.settings.summarization_timeout_seconds,
            **partition.log_fields()
        )
        self._summarizing.add(partition)
        # Released on any completion, including cancellation before the job starts
        task.add_done_callback(lambda _: self._summarizing.discard(partition))
        return True

    async def summarize(self, partition: Partition) -> Optional[SummarizationReport]:
        """Run summarization inline; None when another pass holds the partition"""

        if partition in self._summarizing:
            logger.info("Summarization already in flight", **partition.log_fields())
            return None

        self._summarizing.add(partition)
        try:
            return await self.summarizer.run(partition)
        finally:
            self._summarizing.discard(partition)

    def is_summarizing(self, partition: Partition) -> bool:
        return partition in self._summarizing
