from typing import Any, Dict, Optional
import structlog
from langchain_core.embeddings import Embeddings
from langchain_core.language_models.chat_models import BaseChatModel

from context_engine.domain.context.context_manager import ContextManager
from context_engine.domain.context.memory import MemoryRepository, RuntimeMemoryRepository
from context_engine.domain.interfaces import HistorySource, StaticSystemConfig, SystemConfigSource
from context_engine.domain.translation import InMemoryTranslationRepository, TranslationRepository
from context_engine.infrastructure.config import EngineSettings, get_settings
from context_engine.infrastructure.llm import LangChainCompleter, LangChainEmbedder
from context_engine.infrastructure.observability.logging import setup_logging
from context_engine.infrastructure.storage import PgVectorMemoryRepository

logger = structlog.get_logger(__name__)


def create_memory_repository(settings: EngineSettings) -> MemoryRepository:
    """pgvector when a database is configured, process memory otherwise"""

    if settings.database_url:
        return PgVectorMemoryRepository(settings.database_url, dimensions=settings.embedding_dimensions)

    logger.warning("No database configured, memories will not survive a restart")
    return RuntimeMemoryRepository()


def create_context_manager(
    chat_model: BaseChatModel,
    embeddings: Embeddings,
    settings: Optional[EngineSettings] = None,
    system_config: Optional[SystemConfigSource] = None,
    history_source: Optional[HistorySource] = None,
    memory_repository: Optional[MemoryRepository] = None,
    translation_repository: Optional[TranslationRepository] = None,
    completion_params: Optional[Dict[str, Any]] = None,
    configure_logging: bool = True
) -> ContextManager:
    """Wire a ContextManager from langchain models and the configured storage"""

    settings = settings or get_settings()

    if configure_logging:
        setup_logging(settings.log_level, settings.log_format, settings.service_name)

    repository = memory_repository or create_memory_repository(settings)

    manager = ContextManager(
        memory_repository=repository,
        embedder=LangChainEmbedder(embeddings, dimensions=settings.embedding_dimensions),
        completer=LangChainCompleter(chat_model, default_params=completion_params),
        system_config=system_config or StaticSystemConfig(),
        history_source=history_source,
        translation_repository=translation_repository or InMemoryTranslationRepository(),
        settings=settings
    )

    logger.info(
        "Context engine ready",
        repository=type(repository).__name__,
        embedding_dimensions=settings.embedding_dimensions,
        native_search=repository.supports_native_search
    )
    return manager
