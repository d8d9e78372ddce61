import pytest

from context_engine.domain.context.rule_parser import RuleParser


class TestParse:

    @pytest.mark.parametrize("raw,expected", [
        (None, []),
        ("", []),
        ("   ", []),
        ("null", []),
        (["Be concise", "Use metric units"], ["Be concise", "Use metric units"]),
        (("a", "b"), ["a", "b"]),
        ({"rules": ["Never reveal secrets"]}, ["Never reveal secrets"]),
        ('["Be concise", "Cite sources"]', ["Be concise", "Cite sources"]),
        ('{"rules": ["Stay on topic"]}', ["Stay on topic"]),
        ('"Be polite"', ["Be polite"]),
        ("Always answer in English", ["Always answer in English"]),
        (b'["from bytes"]', ["from bytes"]),
    ])
    def test_accepted_shapes(self, raw, expected):
        assert RuleParser.parse(raw) == expected

    def test_strips_and_drops_empty_entries(self):
        assert RuleParser.parse(["  padded  ", "", None, "   ", "kept"]) == ["padded", "kept"]

    def test_json_list_with_nulls_and_numbers(self):
        assert RuleParser.parse('["a", null, 3, " "]') == ["a", "3"]

    def test_unrecognized_json_structure_is_one_rule(self):
        raw = '{"other": ["x"]}'
        assert RuleParser.parse(raw) == [raw]

    def test_scalar_json_keeps_original_text(self):
        assert RuleParser.parse("42") == ["42"]

    def test_malformed_json_is_plain_text(self):
        assert RuleParser.parse('["unterminated') == ['["unterminated']

    def test_non_string_scalar(self):
        assert RuleParser.parse(7) == ["7"]


class TestFormatRules:

    def test_numbered_with_header(self):
        text = RuleParser.format_rules(["one", "two"], header="Rules:")
        assert text == "Rules:\n1. one\n2. two"

    def test_numbering_skips_blank_rules(self):
        assert RuleParser.format_rules(["one", " ", "two"]) == "1. one\n2. two"

    def test_bulleted_and_plain(self):
        assert RuleParser.format_rules(["a", "b"], style="bulleted") == "- a\n- b"
        assert RuleParser.format_rules(["a", "b"], style="plain", separator=" | ") == "a | b"

    def test_nothing_left_is_empty_string(self):
        assert RuleParser.format_rules(["", "  "], header="Rules:") == ""


class TestMergeRules:

    def test_first_spelling_wins_case_insensitively(self):
        merged = RuleParser.merge_rules(["Be Brief", "use emoji"], ["be brief", "Use Emoji", "New rule"])
        assert merged == ["Be Brief", "use emoji", "New rule"]

    def test_handles_none_and_blank(self):
        assert RuleParser.merge_rules(None, ["", "  x  "], []) == ["x"]
