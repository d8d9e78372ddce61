from typing import Literal, Optional
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Tunables for memory retrieval, lifecycle and prompt assembly.

    Loaded from CONTEXT_ENGINE_* environment variables; DATABASE_URL and
    LOG_LEVEL are accepted when the prefixed names are unset.
    """

    model_config = SettingsConfigDict(
        env_prefix="CONTEXT_ENGINE_",
        env_ignore_empty=True,
        str_strip_whitespace=True,
        extra="ignore"
    )

    # Embeddings
    embedding_dimensions: int = Field(default=1536, gt=0)
    embedding_timeout_seconds: float = Field(default=5.0, gt=0)

    # Retrieval
    max_similar_memories: int = Field(default=5, ge=0)
    similarity_threshold: float = Field(default=0.5)
    native_search_timeout_seconds: float = Field(default=2.0, gt=0)
    fallback_candidate_limit: int = Field(default=100, gt=0)

    # Lifecycle
    memory_save_interval: int = Field(default=10, gt=0)
    memory_summarization_interval: int = Field(default=10, gt=0)
    max_key_insights_per_update: int = Field(default=5, gt=0)
    max_memory_length: int = Field(default=200, gt=0)
    memory_extraction_messages: int = Field(default=20, gt=0)
    memory_summarization_limit: int = Field(default=100, gt=0)
    memory_grouping_threshold: float = Field(default=0.85)
    summarization_timeout_seconds: float = Field(default=120.0, gt=0)
    memory_model: Optional[str] = Field(None, description="Model override for extraction and summarization calls")
    memory_temperature: float = Field(default=0.3)

    # Assembly
    history_limit: Optional[int] = Field(None, description="Keep only the most recent N history messages")
    system_rules_key: str = "behavior_rules"
    embed_current_time: bool = Field(default=True, description="Stamp the system prompt with the current time")
    current_time_position: Literal["start", "end"] = "start"
    history_load_timeout_seconds: float = Field(default=5.0, gt=0)

    # Infrastructure
    database_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CONTEXT_ENGINE_DATABASE_URL", "DATABASE_URL")
    )
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("CONTEXT_ENGINE_LOG_LEVEL", "LOG_LEVEL")
    )
    log_format: str = "json"
    service_name: str = "context-engine"


_settings: Optional[EngineSettings] = None


def get_settings() -> EngineSettings:
    """Process-wide settings, loaded from the environment on first use"""
    global _settings
    if _settings is None:
        _settings = EngineSettings()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
