from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence
import asyncio
from collections import defaultdict

from context_engine.domain.models import (
    MessageTranslations,
    StoredMessageTranslation,
    StoredWordTranslation,
    WordTranslation,
)


class TranslationRepository(ABC):
    """Storage port for per-message word translations and full translations"""

    @abstractmethod
    async def save_words(
        self,
        message_id: int,
        words: Sequence[WordTranslation],
        sentence_contexts: Optional[Dict[str, str]] = None
    ) -> List[StoredWordTranslation]:
        raise NotImplementedError

    @abstractmethod
    async def save_full_translation(self, message_id: int, translation: str) -> StoredMessageTranslation:
        """Create or replace the full translation of a message"""
        raise NotImplementedError

    @abstractmethod
    async def has_words(self, message_id: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def find_by_message_id(self, message_id: int) -> MessageTranslations:
        raise NotImplementedError

    @abstractmethod
    async def find_by_message_ids(self, message_ids: Sequence[int]) -> Dict[int, MessageTranslations]:
        """Translations for each requested message; messages without any are omitted"""
        raise NotImplementedError


class InMemoryTranslationRepository(TranslationRepository):
    """Process-local translation storage"""

    def __init__(self):
        self.words: Dict[int, List[StoredWordTranslation]] = defaultdict(list)
        self.full_translations: Dict[int, StoredMessageTranslation] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def save_words(
        self,
        message_id: int,
        words: Sequence[WordTranslation],
        sentence_contexts: Optional[Dict[str, str]] = None
    ) -> List[StoredWordTranslation]:
        contexts = sentence_contexts or {}
        async with self._lock:
            stored = []
            for word in words:
                record = StoredWordTranslation(
                    id=self._next_id,
                    message_id=message_id,
                    original_word=word.original_word,
                    translation=word.translation,
                    sentence_context=contexts.get(word.original_word)
                )
                self._next_id += 1
                self.words[message_id].append(record)
                stored.append(record)
            return stored

    async def save_full_translation(self, message_id: int, translation: str) -> StoredMessageTranslation:
        async with self._lock:
            record = StoredMessageTranslation(message_id=message_id, translation=translation)
            self.full_translations[message_id] = record
            return record

    async def has_words(self, message_id: int) -> bool:
        async with self._lock:
            return bool(self.words.get(message_id))

    async def find_by_message_id(self, message_id: int) -> MessageTranslations:
        async with self._lock:
            return self._collect(message_id)

    async def find_by_message_ids(self, message_ids: Sequence[int]) -> Dict[int, MessageTranslations]:
        async with self._lock:
            found = {}
            for message_id in message_ids:
                if self.words.get(message_id) or message_id in self.full_translations:
                    found[message_id] = self._collect(message_id)
            return found

    def _collect(self, message_id: int) -> MessageTranslations:
        full = self.full_translations.get(message_id)
        return MessageTranslations(
            message_id=message_id,
            full_translation=full.translation if full else None,
            words=[w.model_copy() for w in self.words.get(message_id, [])]
        )
