import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from context_engine.domain.context.memory import MemoryExtractor, parse_insights
from context_engine.domain.context.memory.memory_extractor import render_transcript


class TestParseInsights:

    def test_strips_numbering_and_bullets(self):
        response = "1. User likes tea\n2) Lives in Oslo\n- Works nights\n• Has a cat\n* Plays chess"

        assert parse_insights(response, 10, 200) == [
            "User likes tea",
            "Lives in Oslo",
            "Works nights",
            "Has a cat",
            "Plays chess",
        ]

    def test_drops_blank_and_overlong_lines(self):
        response = "\n\nshort fact\n   \n" + "x" * 201 + "\nanother fact\n"

        assert parse_insights(response, 10, 200) == ["short fact", "another fact"]

    def test_caps_number_of_insights(self):
        response = "\n".join(f"fact {i}" for i in range(10))
        assert parse_insights(response, 3, 200) == ["fact 0", "fact 1", "fact 2"]

    def test_line_of_only_bullet_is_dropped(self):
        assert parse_insights("-\n1.\nreal", 5, 200) == ["real"]

    def test_empty_response(self):
        assert parse_insights("", 5, 200) == []


def test_render_transcript_accepts_messages_and_dicts():
    transcript = [
        HumanMessage(content="hello"),
        AIMessage(content="hi there"),
        {"role": "user", "content": "how are you"},
    ]

    assert render_transcript(transcript) == "user: hello\n\nassistant: hi there\n\nuser: how are you"


class TestExtractor:

    async def test_extract_sends_system_and_user_prompt(self, completer, settings):
        completer.routes["extraction"] = "1. likes tea"
        extractor = MemoryExtractor(completer, settings)

        insights = await extractor.extract_insights([{"role": "user", "content": "I love tea"}])

        assert insights == ["likes tea"]
        call = completer.calls_of("extraction")[0]
        assert isinstance(call["messages"][0], SystemMessage)
        assert "user: I love tea" in call["messages"][1].content
        assert f"max {settings.max_memory_length} characters" in call["messages"][1].content
        assert call["params"] == {"temperature": settings.memory_temperature}

    async def test_empty_transcript_skips_model(self, completer, settings):
        extractor = MemoryExtractor(completer, settings)

        assert await extractor.extract_insights([]) == []
        assert completer.calls == []

    async def test_completion_errors_propagate(self, completer, settings):
        completer.routes["extraction"] = ConnectionError("reset by peer")
        extractor = MemoryExtractor(completer, settings)

        with pytest.raises(ConnectionError):
            await extractor.extract_insights([{"role": "user", "content": "hi"}])

    async def test_summarize_numbers_points(self, completer, settings):
        completer.routes["summarization"] = "  merged  "
        extractor = MemoryExtractor(completer, settings)

        summary = await extractor.summarize(["likes tea", "drinks tea"])

        assert summary == "merged"
        prompt = completer.calls_of("summarization")[0]["messages"][1].content
        assert "1. likes tea\n2. drinks tea" in prompt

    async def test_summary_truncated_to_max_length(self, completer, settings):
        completer.routes["summarization"] = "y" * 500
        extractor = MemoryExtractor(completer, settings)

        summary = await extractor.summarize(["a", "b"])

        assert len(summary) == settings.max_memory_length

    async def test_blank_summary_is_none(self, completer, settings):
        completer.routes["summarization"] = "\n"
        extractor = MemoryExtractor(completer, settings)

        assert await extractor.summarize(["a", "b"]) is None
