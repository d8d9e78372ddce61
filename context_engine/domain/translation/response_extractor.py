from typing import Any, Dict, List, Optional, Tuple
import json
import re
import structlog

from context_engine.domain.models import ExtractionLevel, ExtractionResult, WordTranslation

logger = structlog.get_logger(__name__)

# A JSON object mentioning "words" that runs to the end of the reply
TRAILING_BLOCK = re.compile(r'\n\s*\{[\s\S]*"words"[\s\S]*\}\s*$')
_BLOCK_START = re.compile(r"\n\s*\{")


class ResponseExtractor:
    """Splits a model reply into display text and its trailing translation block"""

    def extract(self, raw_reply: Optional[str]) -> ExtractionResult:
        reply = raw_reply or ""

        found = self._locate_block(reply)
        if found is None:
            logger.debug("No translation block found in reply", reply_length=len(reply))
            return ExtractionResult(cleaned_text=reply, level=ExtractionLevel.NONE)

        start, payload = found
        words = payload.get("words")
        if not isinstance(words, list):
            logger.warning("Translation block has no words list")
            return ExtractionResult(cleaned_text=reply, level=ExtractionLevel.NONE)

        full_translation = payload.get("fullTranslation")

        if isinstance(full_translation, str) and full_translation.strip():
            parsed = self._complete_words(words)
            logger.debug("Extracted translation block", words=len(parsed))
            return ExtractionResult(
                cleaned_text=reply[:start].strip(),
                full_translation=full_translation,
                words=parsed,
                succeeded=True,
                level=ExtractionLevel.FULL
            )

        logger.warning("Translation block missing fullTranslation", words=len(words))
        return ExtractionResult(
            cleaned_text=reply,
            words=self._bare_words(words),
            succeeded=False,
            level=ExtractionLevel.WORDS_ONLY
        )

    def _locate_block(self, reply: str) -> Optional[Tuple[int, Dict[str, Any]]]:
        """(start offset, decoded object) of the trailing block, or None.

        Candidate starts are tried left to right so that a brace inside the
        prose before the block does not hide it.
        """

        if not TRAILING_BLOCK.search(reply):
            return None

        for match in _BLOCK_START.finditer(reply):
            candidate = reply[match.start():]
            if not TRAILING_BLOCK.match(candidate):
                continue
            try:
                decoded = json.loads(candidate.strip())
            except ValueError:
                continue
            if isinstance(decoded, dict):
                return match.start(), decoded

        logger.warning("Translation block is not valid JSON")
        return None

    @staticmethod
    def _complete_words(words: List[Any]) -> List[WordTranslation]:
        """Entries with a non-empty string word and translation"""
        result = []
        for entry in words:
            if not isinstance(entry, dict):
                continue
            original = entry.get("originalWord")
            translation = entry.get("translation")
            if isinstance(original, str) and original and isinstance(translation, str) and translation:
                result.append(WordTranslation(original_word=original, translation=translation))
        return result

    @staticmethod
    def _bare_words(words: List[Any]) -> List[WordTranslation]:
        """Entries with a non-empty string word; translations are discarded"""
        result = []
        for entry in words:
            if not isinstance(entry, dict):
                continue
            original = entry.get("originalWord")
            if isinstance(original, str) and original.strip():
                result.append(WordTranslation(original_word=original, translation=""))
        return result


def extract_structured_reply(raw_reply: Optional[str]) -> ExtractionResult:
    return ResponseExtractor().extract(raw_reply)

