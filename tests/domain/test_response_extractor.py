import json

from context_engine.domain.models import ExtractionLevel
from context_engine.domain.translation import ResponseExtractor, extract_structured_reply


def block(**payload):
    return "\n" + json.dumps(payload, ensure_ascii=False, indent=2)


class TestFullExtraction:

    def test_splits_reply_and_block(self):
        raw = "你好，世界！" + block(
            words=[
                {"originalWord": "你好", "translation": "hello"},
                {"originalWord": "世界", "translation": "world"},
            ],
            fullTranslation="Hello, world!"
        )

        result = extract_structured_reply(raw)

        assert result.level == ExtractionLevel.FULL
        assert result.succeeded is True
        assert result.cleaned_text == "你好，世界！"
        assert result.full_translation == "Hello, world!"
        assert [(w.original_word, w.translation) for w in result.words] == [("你好", "hello"), ("世界", "world")]

    def test_incomplete_entries_are_dropped(self):
        raw = "Bonjour" + block(
            words=[
                {"originalWord": "Bonjour", "translation": "Hello"},
                {"originalWord": "", "translation": "nothing"},
                {"originalWord": "seul"},
                {"translation": "orphan"},
                "not an object",
            ],
            fullTranslation="Hello"
        )

        result = ResponseExtractor().extract(raw)

        assert result.level == ExtractionLevel.FULL
        assert [w.original_word for w in result.words] == ["Bonjour"]

    def test_brace_line_in_prose_does_not_hide_block(self):
        raw = "Try this:\n{not json} inside the answer" + block(
            words=[{"originalWord": "Try", "translation": "Try"}],
            fullTranslation="Try this"
        )

        result = ResponseExtractor().extract(raw)

        assert result.level == ExtractionLevel.FULL
        assert result.cleaned_text == "Try this:\n{not json} inside the answer"

    def test_surrounding_whitespace_trimmed(self):
        raw = "  Hola  \n\n   " + json.dumps({"words": [], "fullTranslation": "Hi"}) + "  \n"

        result = ResponseExtractor().extract(raw)

        assert result.level == ExtractionLevel.FULL
        assert result.cleaned_text == "Hola"
        assert result.words == []


class TestDegradedExtraction:

    def test_missing_full_translation_is_words_only(self):
        raw = "Ciao mondo" + block(words=[
            {"originalWord": "Ciao", "translation": "Hi"},
            {"originalWord": "  "},
            {"originalWord": "mondo"},
        ])

        result = ResponseExtractor().extract(raw)

        assert result.level == ExtractionLevel.WORDS_ONLY
        assert result.succeeded is False
        assert result.cleaned_text == raw
        assert result.full_translation is None
        assert [(w.original_word, w.translation) for w in result.words] == [("Ciao", ""), ("mondo", "")]

    def test_blank_full_translation_is_words_only(self):
        raw = "Ciao" + block(words=[{"originalWord": "Ciao", "translation": "Hi"}], fullTranslation="  ")
        result = ResponseExtractor().extract(raw)

        assert result.level == ExtractionLevel.WORDS_ONLY
        assert result.cleaned_text == raw

    def test_prose_brace_before_words_only_block_keeps_reply(self):
        raw = "Try this:\n{not json} inside the answer" + block(words=[{"originalWord": "Try", "translation": "Try"}])

        result = ResponseExtractor().extract(raw)

        assert result.level == ExtractionLevel.WORDS_ONLY
        assert result.succeeded is False
        assert result.cleaned_text == raw
        assert [w.original_word for w in result.words] == ["Try"]

    def test_unterminated_block_returns_original(self):
        raw = "你好\n{invalid"

        result = ResponseExtractor().extract(raw)

        assert result.level == ExtractionLevel.NONE
        assert result.cleaned_text == raw
        assert result.words == []

    def test_invalid_json_returns_original(self):
        raw = 'Hello\n{"words": [oops], "fullTranslation": "x"}'

        result = ResponseExtractor().extract(raw)

        assert result.level == ExtractionLevel.NONE
        assert result.cleaned_text == raw

    def test_words_not_a_list_returns_original(self):
        raw = "Hello" + block(words="Hello", fullTranslation="Hello")

        result = ResponseExtractor().extract(raw)

        assert result.level == ExtractionLevel.NONE
        assert result.cleaned_text == raw

    def test_plain_reply(self):
        result = ResponseExtractor().extract("Just text, no block.")
        assert result.level == ExtractionLevel.NONE
        assert result.cleaned_text == "Just text, no block."

    def test_none_reply(self):
        result = ResponseExtractor().extract(None)
        assert result.cleaned_text == ""
        assert result.level == ExtractionLevel.NONE
