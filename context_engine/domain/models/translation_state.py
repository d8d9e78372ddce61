from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum


class ExtractionLevel(str, Enum):
    """How much structured data was recovered from a reply"""
    FULL = "full"
    WORDS_ONLY = "words_only"
    NONE = "none"


class WordTranslation(BaseModel):
    """A word or token of a reply with its English translation"""
    original_word: str = Field(description="Word or token as it appears in the reply")
    translation: str = Field(default="", description="Translation in context, empty until requested")


class ExtractionResult(BaseModel):
    """Structured data recovered from one model reply"""
    cleaned_text: str
    full_translation: Optional[str] = None
    words: List[WordTranslation] = Field(default_factory=list)
    succeeded: bool = False
    level: ExtractionLevel = ExtractionLevel.NONE


class StoredWordTranslation(BaseModel):
    """A persisted word translation for a message"""
    id: int
    message_id: int
    original_word: str
    translation: str = ""
    sentence_context: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class StoredMessageTranslation(BaseModel):
    """A persisted full translation for a message"""
    message_id: int
    translation: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class MessageTranslations(BaseModel):
    """Everything persisted for one message"""
    message_id: int
    full_translation: Optional[str] = None
    words: List[StoredWordTranslation] = Field(default_factory=list)
