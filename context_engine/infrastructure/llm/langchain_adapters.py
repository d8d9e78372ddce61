from typing import Any, Dict, List, Optional
import structlog
from langchain_core.embeddings import Embeddings
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage

from context_engine.domain.errors import EmbeddingError
from context_engine.domain.interfaces import Completer, Embedder

logger = structlog.get_logger(__name__)


def message_text(content: Any) -> str:
    """Flatten a message content payload (str or list of parts) into text"""

    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content or "")


class LangChainCompleter(Completer):
    """Completer backed by any langchain chat model"""

    def __init__(self, chat_model: BaseChatModel, default_params: Optional[Dict[str, Any]] = None):
        self.chat_model = chat_model
        self.default_params = dict(default_params or {})

    async def complete(self, messages: List[BaseMessage], params: Optional[Dict[str, Any]] = None) -> str:
        call_params = {**self.default_params, **(params or {})}
        model = self.chat_model.bind(**call_params) if call_params else self.chat_model

        logger.debug("Calling chat model", messages=len(messages), params=sorted(call_params))
        result = await model.ainvoke(messages)
        return message_text(result.content)


class LangChainEmbedder(Embedder):
    """Embedder backed by any langchain Embeddings implementation"""

    def __init__(self, embeddings: Embeddings, dimensions: int = 1536):
        self.embeddings = embeddings
        self.dimensions = dimensions

    async def embed(self, text: str) -> List[float]:
        try:
            vector = await self.embeddings.aembed_query(text)
        except Exception as e:
            raise EmbeddingError(f"Embedding provider failed: {e}") from e

        if not vector:
            raise EmbeddingError("Embedding provider returned an empty vector")

        if len(vector) != self.dimensions:
            logger.warning(
                "Embedding dimension mismatch",
                expected=self.dimensions,
                actual=len(vector)
            )
            raise EmbeddingError(
                f"Embedding dimension {len(vector)} does not match expected {self.dimensions}"
            )

        return [float(x) for x in vector]
