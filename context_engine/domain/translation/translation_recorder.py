from typing import List, Optional, Sequence
import structlog

from context_engine.domain.models import (
    ExtractionLevel,
    ExtractionResult,
    StoredWordTranslation,
    WordTranslation,
)
from context_engine.infrastructure.observability.logging import metrics
from .translation_repository import TranslationRepository
from .word_parser import WordParser, sentence_context_map, split_into_sentences

logger = structlog.get_logger(__name__)


class TranslationRecorder:
    """Persists whatever structured translation data a reply yielded.

    full: words with translations, the full translation and sentence context.
    words_only: words with empty translations and sentence context.
    none: a best-effort word split of the reply text.
    Recording never raises; a failed write is logged and dropped.
    """

    def __init__(self, repository: TranslationRepository, word_parser: Optional[WordParser] = None):
        self.repository = repository
        self.word_parser = word_parser or WordParser()

    async def record(self, message_id: int, extraction: ExtractionResult) -> List[StoredWordTranslation]:
        try:
            if extraction.level == ExtractionLevel.FULL:
                return await self._record_full(message_id, extraction)

            metrics.increment_counter("translation.degraded", tags={"level": extraction.level.value})

            if extraction.level == ExtractionLevel.WORDS_ONLY:
                return await self._save_words(message_id, extraction.cleaned_text, extraction.words)

            words = await self.word_parser.parse(extraction.cleaned_text)
            return await self._save_words(message_id, extraction.cleaned_text, words)

        except Exception as e:
            logger.warning(
                "Failed to record translations",
                message_id=message_id,
                level=extraction.level.value,
                error=str(e),
                error_type=type(e).__name__
            )
            return []

    async def _record_full(self, message_id: int, extraction: ExtractionResult) -> List[StoredWordTranslation]:
        stored = await self._save_words(message_id, extraction.cleaned_text, extraction.words)
        if extraction.full_translation:
            await self.repository.save_full_translation(message_id, extraction.full_translation)
        logger.info("Recorded translations", message_id=message_id, words=len(stored))
        return stored

    async def _save_words(
        self,
        message_id: int,
        text: str,
        words: Sequence[WordTranslation]
    ) -> List[StoredWordTranslation]:
        if not words:
            return []

        if await self.repository.has_words(message_id):
            logger.debug("Words already stored for message", message_id=message_id)
            return []

        contexts = sentence_context_map(split_into_sentences(text), words)
        return await self.repository.save_words(message_id, words, contexts)
