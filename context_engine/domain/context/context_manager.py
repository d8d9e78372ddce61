from typing import Dict, List, Any, Optional, Sequence
import asyncio
import structlog
from datetime import datetime
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from context_engine.domain.errors import EmbeddingError
from context_engine.domain.interfaces import Completer, Embedder, HistorySource, SystemConfigSource
from context_engine.domain.models import (
    AgentProfile,
    AssembledContext,
    ChatTurnResult,
    ExtractionResult,
    Partition,
    RetrievalResult,
    TurnOutcome,
)
from context_engine.domain.translation import (
    ResponseExtractor,
    TranslationRecorder,
    TranslationRepository,
    WordParser,
)
from context_engine.infrastructure.background import BackgroundTaskRunner
from context_engine.infrastructure.config import EngineSettings, get_settings
from context_engine.infrastructure.observability.logging import engine_logger, metrics
from .config_rules import config_rules
from .context_assembler import ContextAssembler, embed_current_time, merge_system_prompts, render_memory
from .memory.memory_lifecycle import MemoryLifecycle
from .memory.memory_repository import MemoryRepository
from .memory.vector_memory_store import MemoryStore
from .prompts import DEFAULT_SYSTEM_PROMPT, WORD_PARSING_INSTRUCTION
from .rule_parser import RuleParser

logger = structlog.get_logger(__name__)


class ContextManager:
    """Assembles context for each completion call and feeds replies back into memory"""

    def __init__(
        self,
        memory_repository: MemoryRepository,
        embedder: Embedder,
        completer: Completer,
        system_config: SystemConfigSource,
        history_source: Optional[HistorySource] = None,
        translation_repository: Optional[TranslationRepository] = None,
        settings: Optional[EngineSettings] = None,
        runner: Optional[BackgroundTaskRunner] = None
    ):
        self.settings = settings or get_settings()
        self.embedder = embedder
        self.completer = completer
        self.system_config = system_config
        self.history_source = history_source

        self.memory_store = MemoryStore(memory_repository, self.settings)
        self.lifecycle = MemoryLifecycle(
            self.memory_store, embedder, completer, self.settings, runner=runner
        )
        self.assembler = ContextAssembler(self.settings)
        self.response_extractor = ResponseExtractor()
        self.translation_recorder = (
            TranslationRecorder(translation_repository, WordParser(completer, self.settings.memory_temperature))
            if translation_repository is not None else None
        )

    async def retrieve_context(
        self,
        partition: Partition,
        history: Optional[Sequence[BaseMessage]],
        new_message: str,
        system_prompt: Optional[str] = None,
        agent_rules: Any = None,
        session_id: Optional[str] = None,
        profile: Optional[AgentProfile] = None
    ) -> AssembledContext:
        """Build the ordered message list for the next completion call.

        History, system rules and relevant memories are loaded concurrently.
        Losing any of them degrades the context but never fails the call.
        """

        with structlog.contextvars.bound_contextvars(session_id=session_id, **partition.log_fields()):
            logger.info("Building context", message_length=len(new_message))

            loaded_history, system_rules, retrieval = await asyncio.gather(
                self._load_history(history, session_id),
                self._load_system_rules(),
                self._retrieve_memories(partition, new_message)
            )

            stored_rules = RuleParser.parse(agent_rules)
            merged_agent_rules = RuleParser.merge_rules(stored_rules, config_rules(profile))

            with metrics.timed("assembly"):
                messages = self.assembler.assemble(
                    history=loaded_history,
                    new_message=new_message,
                    system_prompt=self.build_system_prompt(system_prompt, profile),
                    system_rules=system_rules,
                    agent_rules=merged_agent_rules,
                    memories=[render_memory(m.record) for m in retrieval.memories]
                )

            engine_logger.log_context_update(
                session_id,
                "assembled",
                "built",
                {
                    "messages": len(messages),
                    "system_rules": len(system_rules),
                    "agent_rules": len(merged_agent_rules),
                    "memories": len(retrieval.memories),
                    "retrieval_source": retrieval.source.value,
                }
            )

            return AssembledContext(messages=messages, history=loaded_history, retrieval=retrieval)

    def build_system_prompt(self, system_prompt: Optional[str], profile: Optional[AgentProfile] = None) -> Optional[str]:
        """Agent prompt, plus the word-parsing instruction for language assistants, stamped with the time"""

        prompt = system_prompt
        if profile is not None and profile.language_assistant:
            prompt = merge_system_prompts([system_prompt or DEFAULT_SYSTEM_PROMPT, WORD_PARSING_INSTRUCTION])

        if prompt and self.settings.embed_current_time:
            prompt = embed_current_time(prompt, datetime.utcnow(), at=self.settings.current_time_position)
        return prompt

    async def record_turn(
        self,
        partition: Partition,
        session_id: str,
        transcript: Sequence[Any],
        session_name: Optional[str] = None
    ) -> TurnOutcome:
        with structlog.contextvars.bound_contextvars(session_id=session_id, **partition.log_fields()):
            return await self.lifecycle.record_turn(partition, session_id, transcript, session_name)

    def extract_structured_reply(self, raw_reply: Optional[str]) -> ExtractionResult:
        return self.response_extractor.extract(raw_reply)

    async def respond(
        self,
        partition: Partition,
        session_id: str,
        new_message: str,
        system_prompt: Optional[str] = None,
        agent_rules: Any = None,
        history: Optional[Sequence[BaseMessage]] = None,
        profile: Optional[AgentProfile] = None,
        message_id: Optional[int] = None,
        session_name: Optional[str] = None,
        completion_params: Optional[Dict[str, Any]] = None
    ) -> ChatTurnResult:
        """One full chat turn: assemble, complete, extract, record.

        Only the completion call can fail the turn; its exception propagates
        unchanged.
        """

        context = await self.retrieve_context(
            partition,
            history,
            new_message,
            system_prompt=system_prompt,
            agent_rules=agent_rules,
            session_id=session_id,
            profile=profile
        )

        with metrics.timed("completion"):
            raw_reply = await self.completer.complete(context.messages, completion_params)

        language_assistant = profile is not None and profile.language_assistant
        if language_assistant:
            extraction = self.extract_structured_reply(raw_reply)
        else:
            extraction = ExtractionResult(cleaned_text=raw_reply)

        if language_assistant and message_id is not None and self.translation_recorder is not None:
            await self.translation_recorder.record(message_id, extraction)

        # Counted over the whole conversation, not the history_limit window
        transcript: List[BaseMessage] = [
            m for m in context.history if not isinstance(m, SystemMessage)
        ]
        transcript.append(HumanMessage(content=new_message))
        transcript.append(AIMessage(content=extraction.cleaned_text))

        turn = await self.record_turn(partition, session_id, transcript, session_name)

        return ChatTurnResult(
            reply=extraction.cleaned_text,
            raw_reply=raw_reply,
            context=context,
            extraction=extraction,
            turn=turn
        )

    async def shutdown(self, timeout: Optional[float] = None):
        """Wait for background summarization to finish"""
        await self.lifecycle.runner.drain(timeout)

    async def _load_history(
        self,
        history: Optional[Sequence[BaseMessage]],
        session_id: Optional[str]
    ) -> List[BaseMessage]:
        if history is not None:
            return list(history)
        if self.history_source is None or session_id is None:
            return []

        try:
            return list(await asyncio.wait_for(
                self.history_source.load(session_id),
                timeout=self.settings.history_load_timeout_seconds
            ))
        except Exception as e:
            engine_logger.log_degradation(
                operation="history.load",
                fallback="empty_history",
                error=str(e) or type(e).__name__,
                session_id=session_id
            )
            return []

    async def _load_system_rules(self) -> List[str]:
        try:
            raw = await self.system_config.get(self.settings.system_rules_key)
        except Exception as e:
            engine_logger.log_degradation(
                operation="system_rules.load",
                fallback="no_system_rules",
                error=str(e) or type(e).__name__
            )
            return []
        return RuleParser.parse(raw)

    async def _retrieve_memories(self, partition: Partition, new_message: str) -> RetrievalResult:
        if not new_message or not new_message.strip():
            return RetrievalResult(memories=[])

        with metrics.timed("retrieval"):
            try:
                vector = await asyncio.wait_for(
                    self.embedder.embed(new_message),
                    timeout=self.settings.embedding_timeout_seconds
                )
                if not vector:
                    raise EmbeddingError("Embedder returned an empty vector")
                if len(vector) != self.settings.embedding_dimensions:
                    raise EmbeddingError(
                        f"Embedding dimension {len(vector)} does not match "
                        f"configured {self.settings.embedding_dimensions}"
                    )
            except asyncio.TimeoutError:
                engine_logger.log_degradation(
                    operation="memory.embed",
                    fallback="no_memories",
                    error="embedding timed out",
                    **partition.log_fields()
                )
                return RetrievalResult.unavailable(error="embedding timed out")
            except Exception as e:
                engine_logger.log_degradation(
                    operation="memory.embed",
                    fallback="no_memories",
                    error=str(e) or type(e).__name__,
                    **partition.log_fields()
                )
                return RetrievalResult.unavailable(error=str(e) or type(e).__name__)

            return await self.memory_store.find_similar(vector, partition)
