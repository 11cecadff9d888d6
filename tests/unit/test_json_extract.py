"""
Unit tests for tolerant JSON extraction from LLM replies.
"""

import pytest

from leedz_bridge.core.json_extract import (
    extract_from_code_fence,
    extract_json_string,
    find_first_json_block,
    parse_json_reply,
)


class TestExtraction:
    """The documented extraction ladder."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ('{"a":1}', '{"a":1}'),
            ('```json\n{"a":1}\n```', '{"a":1}'),
            ('Sure! {"a":{"b":2}} done', '{"a":{"b":2}}'),
            ("no json here", None),
            ("", None),
            ('```\n[1,2]\n```', "[1,2]"),
        ],
    )
    def test_examples(self, text, expected):
        assert extract_json_string(text) == expected

    def test_none_input(self):
        assert extract_json_string(None) is None

    def test_pure_json_with_whitespace(self):
        assert extract_json_string('  \n {"a": 1}\n') == '{"a": 1}'

    def test_json_fence_preferred_over_generic(self):
        text = 'Plan:\n```\n{"x": 0}\n```\nAnswer:\n```json\n{"x": 1}\n```'
        assert extract_from_code_fence(text) == '{"x": 1}'

    def test_fence_without_json_falls_through(self):
        text = '```\nprint("hi")\n```\nthen {"ok": true}'
        assert extract_json_string(text) == '{"ok": true}'

    def test_array_block(self):
        assert find_first_json_block("list: [1, [2, 3]] end") == "[1, [2, 3]]"

    def test_unbalanced_block(self):
        assert find_first_json_block('start {"a": 1') is None


class TestStringAwareness:
    """Brackets inside string values do not end a block."""

    def test_closing_brace_in_string(self):
        text = 'Here: {"description": "use } carefully", "n": 1} thanks'
        assert extract_json_string(text) == '{"description": "use } carefully", "n": 1}'

    def test_escaped_quote_in_string(self):
        text = 'Result {"q": "say \\"}\\" now"} trailing'
        assert find_first_json_block(text) == '{"q": "say \\"}\\" now"}'


class TestParse:
    def test_parse_from_prose(self):
        reply = 'I will list clients.\n{"actionable": true, "method": "GET", "endpoint": "/clients"}'
        assert parse_json_reply(reply) == {"actionable": True, "method": "GET", "endpoint": "/clients"}

    def test_parse_invalid_json_returns_none(self):
        assert parse_json_reply("{'single': 'quotes'}") is None

    def test_parse_nothing_returns_none(self):
        assert parse_json_reply("I cannot help with that.") is None
