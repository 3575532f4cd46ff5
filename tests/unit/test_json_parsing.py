"""Unit tests for tolerant JSON parsing of model output."""

from __future__ import annotations

import pytest

from src.utils.errors import MalformedOutputError
from src.utils.json_parsing import parse_json_payload, strip_code_fences


class TestStripCodeFences:
    def test_json_fence(self) -> None:
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_fence_with_preamble(self) -> None:
        raw = 'Here you go:\n```\n[1, 2]\n```\nEnjoy.'
        assert strip_code_fences(raw) == "[1, 2]"

    def test_unterminated_fence(self) -> None:
        assert strip_code_fences('```json\n{"a": 1}') == '{"a": 1}'

    @pytest.mark.parametrize("tag", ["JSON", "Json"])
    def test_language_tag_any_case(self, tag: str) -> None:
        assert strip_code_fences(f'```{tag}\n{{"a": 1}}\n```') == '{"a": 1}'
        assert strip_code_fences(f'```{tag}\n{{"a": 1}}') == '{"a": 1}'

    def test_no_fence(self) -> None:
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


class TestParseJsonPayload:
    def test_parses_fenced_object(self) -> None:
        assert parse_json_payload('```json\n{"name": "Tomato"}\n```') == {"name": "Tomato"}
        assert parse_json_payload('```JSON\n[{"title": "Soil"}]\n```', list) == [{"title": "Soil"}]

    def test_expected_type_enforced(self) -> None:
        with pytest.raises(MalformedOutputError, match="Expected crop names to be list"):
            parse_json_payload('{"name": "Tomato"}', expected_type=list, label="crop names")

    def test_tuple_of_types(self) -> None:
        assert parse_json_payload("[1]", expected_type=(dict, list)) == [1]

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_answer(self, raw: str | None) -> None:
        with pytest.raises(MalformedOutputError, match="Empty"):
            parse_json_payload(raw)

    def test_truncated_json(self) -> None:
        with pytest.raises(MalformedOutputError, match="Invalid JSON"):
            parse_json_payload('[{"name": "Tomato"')
