from typing import Dict, Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from langchain_core.messages import BaseMessage, SystemMessage

from .memory_state import RetrievalResult, TurnOutcome
from .translation_state import ExtractionResult


class AgentProfile(BaseModel):
    """Per-agent configuration values that turn into behavior rules"""
    language: Optional[str] = Field(None, description="Language the agent must answer in")
    response_length: Optional[str] = Field(None, description="'adapt' or a fixed length such as 'short'")
    age: Optional[int] = None
    gender: Optional[str] = None
    personality: Optional[str] = None
    sentiment: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    language_assistant: bool = Field(default=False, description="Ask the model for word-level translations")


class AssembledContext(BaseModel):
    """Ordered messages built for one completion call"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    messages: List[BaseMessage] = Field(default_factory=list)
    history: List[BaseMessage] = Field(default_factory=list, description="Full loaded history, before history_limit")
    retrieval: RetrievalResult = Field(default_factory=RetrievalResult)

    @property
    def system_messages(self) -> List[str]:
        return [m.content for m in self.messages if isinstance(m, SystemMessage)]

    def to_dicts(self) -> List[Dict[str, Any]]:
        """Role/content pairs in the shape chat completion APIs expect"""
        roles = {"system": "system", "human": "user", "ai": "assistant"}
        return [{"role": roles.get(m.type, m.type), "content": m.content} for m in self.messages]


class ChatTurnResult(BaseModel):
    """Everything produced by one full chat turn"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    reply: str
    raw_reply: str
    context: AssembledContext
    extraction: ExtractionResult
    turn: Optional[TurnOutcome] = None
