from typing import List, Optional, Sequence
from datetime import datetime
import structlog
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from context_engine.domain.models import MemoryRecord
from context_engine.infrastructure.config import EngineSettings, get_settings
from .prompts import (
    AGENT_RULES_HEADER,
    PROMPT_SEPARATOR,
    SYSTEM_RULES_HEADER,
    current_time_line,
    memory_context_message,
)
from .rule_parser import RuleParser

logger = structlog.get_logger(__name__)


def merge_system_prompts(prompts: Sequence[Optional[str]], separator: str = PROMPT_SEPARATOR) -> str:
    """Join the non-empty prompts in priority order"""

    valid = [p.strip() for p in prompts if p is not None and p.strip()]
    if not valid:
        return ""
    return separator.join(valid)


def embed_current_time(prompt: Optional[str], now: datetime, at: str = "start") -> Optional[str]:
    """Prefix or suffix the prompt with the current time; empty prompts pass through"""

    if not prompt or not prompt.strip():
        return prompt

    line = current_time_line(now.isoformat())
    if at == "end":
        return f"{prompt.strip()}\n\n{line}"
    return f"{line}\n\n{prompt.strip()}"


def render_memory(memory: MemoryRecord) -> str:
    """`[Mon D, YYYY] key point` using the memory's creation date"""
    created = memory.created_at
    return f"[{created:%b} {created.day}, {created.year}] {memory.key_point}"


def _is_system(message: BaseMessage) -> bool:
    return isinstance(message, SystemMessage)


class ContextAssembler:
    """Builds the ordered message list for one completion call.

    Final order: system prompt, system rules, agent rules, memory context,
    history, new user message. Every system message is checked for an
    exact-text duplicate before insertion.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or get_settings()

    def assemble(
        self,
        history: Sequence[BaseMessage],
        new_message: str,
        system_prompt: Optional[str] = None,
        system_rules: Optional[Sequence[str]] = None,
        agent_rules: Optional[Sequence[str]] = None,
        memories: Optional[Sequence[str]] = None
    ) -> List[BaseMessage]:

        messages: List[BaseMessage] = list(self._limit_history(history))

        # Rules go after this index; -1 means "at the front"
        anchor = -1

        if system_prompt and system_prompt.strip():
            existing = self._index_of_system(messages, system_prompt)
            if existing is None:
                messages.insert(0, SystemMessage(content=system_prompt))
                anchor = 0
            else:
                anchor = existing

        system_rules_text = RuleParser.format_rules(system_rules or [], header=SYSTEM_RULES_HEADER)
        if system_rules_text:
            existing = self._index_of_system(messages, system_rules_text)
            if existing is None:
                anchor += 1
                messages.insert(anchor, SystemMessage(content=system_rules_text))
            else:
                anchor = max(anchor, existing)

        agent_rules_text = RuleParser.format_rules(agent_rules or [], header=AGENT_RULES_HEADER)
        if agent_rules_text:
            existing = self._index_of_system(messages, agent_rules_text)
            if existing is None:
                anchor += 1
                messages.insert(anchor, SystemMessage(content=agent_rules_text))

        memory_entries = [m for m in (memories or []) if m and m.strip()]
        if memory_entries:
            memory_text = memory_context_message(memory_entries)
            if self._index_of_system(messages, memory_text) is None:
                position = next(
                    (i for i, m in enumerate(messages) if not _is_system(m)),
                    len(messages)
                )
                messages.insert(position, SystemMessage(content=memory_text))

        messages.append(HumanMessage(content=new_message))

        logger.debug(
            "Context assembled",
            total_messages=len(messages),
            history_messages=len(history),
            system_rules=len(system_rules or []),
            agent_rules=len(agent_rules or []),
            memories=len(memory_entries)
        )
        return messages

    def _limit_history(self, history: Sequence[BaseMessage]) -> Sequence[BaseMessage]:
        limit = self.settings.history_limit
        if limit is not None and limit >= 0 and len(history) > limit:
            return history[len(history) - limit:]
        return history

    @staticmethod
    def _index_of_system(messages: Sequence[BaseMessage], text: str) -> Optional[int]:
        for i, message in enumerate(messages):
            if _is_system(message) and message.content == text:
                return i
        return None
