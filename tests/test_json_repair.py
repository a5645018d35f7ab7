"""Tests for truncated JSON recovery."""
import json

from studygen.generation.json_repair import extract_items, parse_items, recover_json


class TestRecoverJson:
    def test_valid_json_is_returned_unchanged(self):
        payload = {"questions": [{"text": "Q1"}]}
        assert recover_json(json.dumps(payload)) == payload

    def test_markdown_fences_and_preamble_are_stripped(self):
        assert recover_json('```json\n{"questions": []}\n```') == {"questions": []}
        assert recover_json('Here you go: {"questions": []}') == {"questions": []}

    def test_trailing_text_after_root_is_ignored(self):
        assert recover_json('{"questions": []} hope this helps!') == {"questions": []}

    def test_truncated_inside_string_value(self):
        text = (
            '{"questions": [{"text": "Q1", "type": "true-false"}, '
            '{"text": "Q2", "explanation": "Because of'
        )
        result = recover_json(text)
        assert result["questions"][0] == {"text": "Q1", "type": "true-false"}
        assert result["questions"][1] == {"text": "Q2"}

    def test_truncated_inside_key(self):
        text = '{"questions": [{"text": "Q1"}, {"te'
        assert recover_json(text) == {"questions": [{"text": "Q1"}]}

    def test_truncated_after_colon(self):
        text = '{"questions": [{"text": "Q1", "type":'
        assert recover_json(text) == {"questions": [{"text": "Q1"}]}

    def test_trailing_comma_is_dropped(self):
        text = '{"questions": [{"text": "Q1"},'
        assert recover_json(text) == {"questions": [{"text": "Q1"}]}

    def test_open_containers_are_closed(self):
        assert recover_json("[1, 2, 3") == [1, 2, 3]
        assert recover_json('{"a": {"b": [1, {"c": 2}') == {"a": {"b": [1, {"c": 2}]}}

    def test_brackets_and_quotes_inside_strings_are_not_structure(self):
        text = r'{"questions": [{"text": "say \"hi\" {x} [y]", "type": "mult'
        result = recover_json(text)
        assert result == {"questions": [{"text": 'say "hi" {x} [y]'}]}

    def test_unrecoverable_input_returns_none(self):
        assert recover_json("no json here") is None
        assert recover_json("") is None
        assert recover_json('{"a": tru') is None


class TestParseItems:
    TRUNCATED = '{"questions": [{"text": "Q1"}, {"text": "Q2"}, {"text": "Q'

    def test_repair_only_when_allowed(self):
        assert parse_items(self.TRUNCATED, "questions", allow_repair=False) is None
        items = parse_items(self.TRUNCATED, "questions", allow_repair=True)
        assert [i["text"] for i in items] == ["Q1", "Q2"]

    def test_unparseable_text_returns_none(self):
        assert parse_items("the model refused", "questions") is None

    def test_extract_items_accepts_common_shapes(self):
        assert extract_items([{"a": 1}], "questions") == [{"a": 1}]
        assert extract_items({"questions": [1]}, "questions") == [1]
        assert extract_items({"items": [2]}, "questions") == [2]
        assert extract_items({"questions": "oops"}, "questions") == []
        assert extract_items(42, "questions") == []
