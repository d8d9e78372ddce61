from typing import Dict, List, Optional, Sequence
import json
import re
import structlog
from langchain_core.messages import HumanMessage, SystemMessage

from context_engine.domain.context.prompts import WORD_PARSING_SYSTEM, word_parsing_user_prompt
from context_engine.domain.errors import ExtractionError
from context_engine.domain.interfaces import Completer
from context_engine.domain.models import WordTranslation

logger = structlog.get_logger(__name__)

SENTENCE_END = re.compile(r"([.!?。！？]+\s*)")

# Han ideographs and Japanese kana; scripts written without spaces
_CJK = "\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff"
_TOKEN = re.compile(rf"[{_CJK}]|[^\W_{_CJK}]+(?:['’\-][^\W_{_CJK}]+)*")
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def split_into_sentences(text: str) -> List[str]:
    """Split on sentence-ending punctuation, keeping it on its sentence"""

    parts = SENTENCE_END.split(text or "")
    sentences = []
    for i in range(0, len(parts), 2):
        ending = parts[i + 1] if i + 1 < len(parts) else ""
        sentence = (parts[i] + ending).strip()
        if sentence:
            sentences.append(sentence)
    return sentences


def sentence_context_map(sentences: Sequence[str], words: Sequence[WordTranslation]) -> Dict[str, str]:
    """Map each word to the first sentence containing it; unmatched words are absent"""

    contexts: Dict[str, str] = {}
    for word in words:
        if word.original_word in contexts:
            continue
        for sentence in sentences:
            if word.original_word in sentence:
                contexts[word.original_word] = sentence
                break
    return contexts


def tokenize(text: str) -> List[WordTranslation]:
    """Local fallback tokenizer: word runs, or single characters for CJK text.

    Duplicates are dropped, first occurrence wins.
    """

    seen = set()
    words = []
    for token in _TOKEN.findall(text or ""):
        if token in seen:
            continue
        seen.add(token)
        words.append(WordTranslation(original_word=token))
    return words


def decode_word_list(response: Optional[str]) -> List[WordTranslation]:
    """Words from a {"words": [{"originalWord": ...}]} reply, optionally code-fenced.

    Raises:
        ExtractionError: the reply is empty, not JSON, or has no words list.
    """

    payload = _CODE_FENCE.sub("", (response or "").strip())
    if not payload:
        raise ExtractionError("Empty word parsing reply")

    try:
        parsed = json.loads(payload)
    except ValueError as e:
        raise ExtractionError(f"Word parsing reply is not valid JSON: {e}") from e

    entries = parsed.get("words") if isinstance(parsed, dict) else None
    if not isinstance(entries, list):
        raise ExtractionError("Word parsing reply has no words list")

    words = []
    for entry in entries:
        original = entry.get("originalWord") if isinstance(entry, dict) else None
        if isinstance(original, str) and original.strip():
            words.append(WordTranslation(original_word=original, translation=""))
    return words


class WordParser:
    """Recovers the word list of a reply when the model did not supply one"""

    def __init__(self, completer: Optional[Completer] = None, temperature: float = 0.3):
        self.completer = completer
        self.temperature = temperature

    async def parse(self, text: str) -> List[WordTranslation]:
        """Model-based parse first, local tokenizer when that yields nothing"""

        words = await self.parse_with_model(text)
        if words:
            return words

        words = tokenize(text)
        logger.debug("Used local tokenizer for word parsing", words=len(words))
        return words

    async def parse_with_model(self, text: str) -> List[WordTranslation]:
        """Ask the model for a {"words": [...]} object; [] on any failure"""

        if self.completer is None or not text or not text.strip():
            return []

        try:
            response = await self.completer.complete(
                [
                    SystemMessage(content=WORD_PARSING_SYSTEM),
                    HumanMessage(content=word_parsing_user_prompt(text)),
                ],
                {"temperature": self.temperature}
            )
        except Exception as e:
            logger.warning("Word parsing call failed", error=str(e), error_type=type(e).__name__)
            return []

        try:
            return decode_word_list(response)
        except ExtractionError as e:
            logger.warning("Unusable word parsing reply", error=str(e), response_preview=(response or "")[:100])
            return []
