from .response_extractor import ResponseExtractor, extract_structured_reply
from .word_parser import WordParser, decode_word_list, split_into_sentences, sentence_context_map, tokenize
from .translation_repository import TranslationRepository, InMemoryTranslationRepository
from .translation_recorder import TranslationRecorder

__all__ = [
    "ResponseExtractor",
    "extract_structured_reply",
    "WordParser",
    "decode_word_list",
    "split_into_sentences",
    "sentence_context_map",
    "tokenize",
    "TranslationRepository",
    "InMemoryTranslationRepository",
    "TranslationRecorder",
]
