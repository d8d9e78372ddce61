from typing import Dict, List, Any, Optional, Sequence, Union
import re
import structlog
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from context_engine.domain.context.prompts import (
    EXTRACTION_SYSTEM,
    SUMMARIZATION_SYSTEM,
    extraction_user_prompt,
    summarization_user_prompt,
)
from context_engine.domain.interfaces import Completer
from context_engine.infrastructure.config import EngineSettings, get_settings

logger = structlog.get_logger(__name__)

TranscriptEntry = Union[BaseMessage, Dict[str, Any]]

_NUMBERING = re.compile(r"^\d+[.)]\s*")
_BULLET = re.compile(r"^[-•*]\s*")

_ROLE_NAMES = {"human": "user", "ai": "assistant", "system": "system"}


def message_role(message: TranscriptEntry) -> str:
    if isinstance(message, BaseMessage):
        return _ROLE_NAMES.get(message.type, message.type)
    return str(message.get("role", "user"))


def message_content(message: TranscriptEntry) -> str:
    if isinstance(message, BaseMessage):
        content = message.content
    else:
        content = message.get("content", "")
    return content if isinstance(content, str) else str(content)


def render_transcript(messages: Sequence[TranscriptEntry]) -> str:
    """`role: content` blocks separated by blank lines"""
    return "\n\n".join(f"{message_role(m)}: {message_content(m)}" for m in messages)


def parse_insights(response: str, max_insights: int, max_length: int) -> List[str]:
    """Turn a line-per-insight reply into clean insight strings.

    Blank lines are dropped, leading numbering and bullets are stripped, and
    lines longer than max_length are discarded rather than truncated.
    """

    insights: List[str] = []
    for line in response.splitlines():
        line = line.strip()
        if not line:
            continue
        line = _NUMBERING.sub("", line)
        line = _BULLET.sub("", line).strip()
        if not line or len(line) > max_length:
            continue
        insights.append(line)
        if len(insights) >= max_insights:
            break
    return insights


class MemoryExtractor:
    """Language-model calls that create and compress memory text"""

    def __init__(self, completer: Completer, settings: Optional[EngineSettings] = None):
        self.completer = completer
        self.settings = settings or get_settings()

    def _params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"temperature": self.settings.memory_temperature}
        if self.settings.memory_model:
            params["model"] = self.settings.memory_model
        return params

    async def extract_insights(self, transcript: Sequence[TranscriptEntry]) -> List[str]:
        """Derive up to max_key_insights_per_update insights from the recent transcript.

        Completion failures propagate; the lifecycle owns the error boundary.
        """

        if not transcript:
            logger.debug("No messages provided for extraction")
            return []

        recent = list(transcript)[-self.settings.memory_extraction_messages:]
        prompt = extraction_user_prompt(
            render_transcript(recent),
            self.settings.max_key_insights_per_update,
            self.settings.max_memory_length
        )

        response = await self.completer.complete(
            [SystemMessage(content=EXTRACTION_SYSTEM), HumanMessage(content=prompt)],
            self._params()
        )

        insights = parse_insights(
            response or "",
            self.settings.max_key_insights_per_update,
            self.settings.max_memory_length
        )

        if not insights:
            logger.warning(
                "No insights extracted",
                message_count=len(transcript),
                response_preview=(response or "")[:200]
            )
        else:
            logger.info("Extracted insights", count=len(insights), message_count=len(transcript))

        return insights

    async def summarize(self, key_points: Sequence[str]) -> Optional[str]:
        """Compress related key points into one memory, or None if the reply is unusable"""

        memories_text = "\n".join(f"{i}. {point}" for i, point in enumerate(key_points, start=1))
        prompt = summarization_user_prompt(memories_text, self.settings.max_memory_length)

        response = await self.completer.complete(
            [SystemMessage(content=SUMMARIZATION_SYSTEM), HumanMessage(content=prompt)],
            self._params()
        )

        summary = (response or "").strip()
        if not summary:
            return None

        limit = self.settings.max_memory_length
        if len(summary) > limit:
            summary = summary[:limit].rstrip()
        return summary
