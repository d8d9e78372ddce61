import pytest

from context_engine.domain.errors import ExtractionError
from context_engine.domain.models import WordTranslation
from context_engine.domain.translation import (
    WordParser,
    decode_word_list,
    sentence_context_map,
    split_into_sentences,
    tokenize,
)


class TestSentences:

    def test_keeps_ending_punctuation(self):
        assert split_into_sentences("Hello world. How are you?  Fine!") == [
            "Hello world.",
            "How are you?",
            "Fine!",
        ]

    def test_cjk_punctuation(self):
        assert split_into_sentences("你好。今天天气很好！") == ["你好。", "今天天气很好！"]

    def test_trailing_fragment_and_empty(self):
        assert split_into_sentences("Done. and then") == ["Done.", "and then"]
        assert split_into_sentences("") == []

    def test_context_map_uses_first_containing_sentence(self):
        sentences = ["I like tea.", "Tea is hot.", "I like coffee."]
        words = [WordTranslation(original_word="like"), WordTranslation(original_word="coffee"),
                 WordTranslation(original_word="absent")]

        assert sentence_context_map(sentences, words) == {
            "like": "I like tea.",
            "coffee": "I like coffee.",
        }


class TestTokenize:

    def test_cjk_characters_are_single_tokens(self):
        assert [w.original_word for w in tokenize("你好，世界！你好")] == ["你", "好", "世", "界"]

    def test_word_runs_keep_apostrophes_and_hyphens(self):
        words = [w.original_word for w in tokenize("Don't stop-now, friend. friend!")]
        assert words == ["Don't", "stop-now", "friend"]

    def test_mixed_script(self):
        assert [w.original_word for w in tokenize("我 love 猫")] == ["我", "love", "猫"]

    def test_translations_empty(self):
        assert all(w.translation == "" for w in tokenize("a b c"))


class TestWordParser:

    async def test_model_result_preferred(self, completer):
        completer.routes["word_parsing"] = '```json\n{"words": [{"originalWord": "你好"}, {"originalWord": ""}]}\n```'
        parser = WordParser(completer)

        words = await parser.parse("你好")

        assert [w.original_word for w in words] == ["你好"]
        assert completer.calls_of("word_parsing")[0]["params"] == {"temperature": 0.3}

    async def test_invalid_model_reply_falls_back_to_tokenizer(self, completer):
        completer.routes["word_parsing"] = "sorry, I cannot"
        parser = WordParser(completer)

        words = await parser.parse("你好")

        assert [w.original_word for w in words] == ["你", "好"]

    async def test_model_error_falls_back_to_tokenizer(self, completer):
        completer.routes["word_parsing"] = TimeoutError("slow")
        parser = WordParser(completer)

        assert [w.original_word for w in await parser.parse("hi there")] == ["hi", "there"]

    async def test_without_completer_only_tokenizes(self):
        parser = WordParser()
        assert await parser.parse_with_model("text") == []
        assert [w.original_word for w in await parser.parse("text")] == ["text"]


class TestDecodeWordList:

    def test_plain_and_fenced_json(self):
        assert [w.original_word for w in decode_word_list('{"words": [{"originalWord": "a"}]}')] == ["a"]
        assert [w.original_word for w in decode_word_list('```\n{"words": [{"originalWord": "b"}]}\n```')] == ["b"]

    @pytest.mark.parametrize("reply", [None, "", "not json", '["a"]', '{"words": "a"}'])
    def test_unusable_reply_raises(self, reply):
        with pytest.raises(ExtractionError):
            decode_word_list(reply)
