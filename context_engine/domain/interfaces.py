from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from langchain_core.messages import BaseMessage


class Embedder(ABC):
    """Turns text into a fixed-dimension vector"""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """
        Raises:
            EmbeddingError: when the provider fails or returns an unusable vector.
        """
        raise NotImplementedError


class Completer(ABC):
    """Opaque language-model completion call"""

    @abstractmethod
    async def complete(self, messages: List[BaseMessage], params: Optional[Dict[str, Any]] = None) -> str:
        """Return the model's reply text.

        params may carry `model`, `temperature` and `max_tokens`; unknown keys
        are passed through to the provider.
        """
        raise NotImplementedError


class SystemConfigSource(ABC):
    """Key/value lookup for platform-wide configuration"""

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the raw stored value for key, or None when unset"""
        raise NotImplementedError


class HistorySource(ABC):
    """Loads the stored conversation of a session, oldest first"""

    @abstractmethod
    async def load(self, session_id: str) -> List[BaseMessage]:
        raise NotImplementedError


class StaticSystemConfig(SystemConfigSource):
    """SystemConfigSource over a plain mapping"""

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self.values: Dict[str, Any] = dict(values or {})

    async def get(self, key: str) -> Any:
        return self.values.get(key)

    def set(self, key: str, value: Any):
        self.values[key] = value
