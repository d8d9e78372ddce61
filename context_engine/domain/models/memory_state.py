from typing import Dict, Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from enum import Enum


class Partition(BaseModel):
    """The (agent, user) pair that scopes memories and the update counter"""
    model_config = ConfigDict(frozen=True)

    agent_id: int = Field(description="Owning agent identifier")
    user_id: str = Field(description="Owning user identifier")

    def log_fields(self) -> Dict[str, Any]:
        return {"agent_id": self.agent_id, "user_id": self.user_id}


class MemoryRecord(BaseModel):
    """A single extracted insight with its embedding"""
    id: int = Field(description="Unique memory identifier")
    agent_id: int
    user_id: str
    key_point: str = Field(description="Short text insight")
    context: Dict[str, Any] = Field(default_factory=dict, description="Opaque extraction metadata")
    embedding: Optional[List[float]] = Field(None, description="Embedding vector")
    update_count: int = Field(default=0, description="Partition counter value at creation time")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def partition(self) -> Partition:
        return Partition(agent_id=self.agent_id, user_id=self.user_id)


class NewMemory(BaseModel):
    """A memory about to be written; the repository assigns id and counter"""
    key_point: str
    context: Dict[str, Any] = Field(default_factory=dict)
    embedding: List[float]


class ScoredMemory(BaseModel):
    """A memory paired with its similarity to a query"""
    record: MemoryRecord
    similarity: float


class SimilarityQuery(BaseModel):
    """Nearest-neighbour query scoped to one partition"""
    vector: List[float]
    partition: Partition
    top_k: int = Field(default=5, ge=0)
    threshold: float = Field(default=0.5)


class RetrievalSource(str, Enum):
    """Which path served a similarity query"""
    NATIVE = "native"
    FALLBACK = "fallback"
    UNAVAILABLE = "unavailable"


class RetrievalResult(BaseModel):
    """Outcome of a similarity query, including the degraded case"""
    memories: List[ScoredMemory] = Field(default_factory=list)
    available: bool = True
    source: RetrievalSource = RetrievalSource.NATIVE
    error: Optional[str] = None

    @classmethod
    def unavailable(cls, error: str) -> "RetrievalResult":
        return cls(memories=[], available=False, source=RetrievalSource.UNAVAILABLE, error=error)

    @property
    def key_points(self) -> List[str]:
        return [m.record.key_point for m in self.memories]


class LifecycleAction(str, Enum):
    """What the lifecycle did for a recorded turn"""
    SKIPPED = "skipped"
    EXTRACTED = "extracted"
    EXTRACTION_FAILED = "extraction_failed"


class TurnOutcome(BaseModel):
    """Result of recording one conversation turn"""
    message_count: int
    action: LifecycleAction = LifecycleAction.SKIPPED
    created: List[MemoryRecord] = Field(default_factory=list)
    summarization_scheduled: bool = False


class SummarizationReport(BaseModel):
    """Result of one summarization pass over a partition"""
    partition: Partition
    examined: int = 0
    groups: int = 0
    summarized_groups: int = 0
    retired_ids: List[int] = Field(default_factory=list)
    created_ids: List[int] = Field(default_factory=list)
    failed_groups: int = 0
