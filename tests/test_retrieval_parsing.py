"""Tests for Responses API payload parsing."""

import json

import pytest

from autofill_core.exceptions import InvalidModelOutputError
from autofill_core.models import FieldDescriptor
from autofill_core.retrieval.parsing import (
    answers_for,
    clean_answer,
    extract_output_text,
    parse_answer_object,
    strip_code_fences,
)
from autofill_core.retrieval.prompts import SYSTEM_INSTRUCTION, build_payload


class TestExtractOutputText:

    def test_output_text(self):
        assert extract_output_text({"output_text": '  {"a": "1"} '}) == '{"a": "1"}'

    def test_first_nonempty_content_chunk(self):
        data = {
            "output": [
                {"type": "file_search_call"},
                {"content": [{"type": "output_text", "text": "  "}]},
                {"content": [{"type": "output_text", "text": '{"a": "x"}'}]},
            ]
        }
        assert extract_output_text(data) == '{"a": "x"}'

    def test_nothing(self):
        assert extract_output_text({"output": []}) == ""
        assert extract_output_text(None) == ""


class TestParseAnswerObject:

    def test_plain_json(self):
        assert parse_answer_object('{"aff-1": "Ada"}') == {"aff-1": "Ada"}

    def test_code_fence(self):
        text = '```json\n{"aff-1": "Ada"}\n```'
        assert strip_code_fences(text) == '{"aff-1": "Ada"}'
        assert parse_answer_object(text) == {"aff-1": "Ada"}

    def test_outermost_braces(self):
        text = 'Here you go: {"aff-1": {"nested": 1}, "aff-2": "B"} hope that helps'
        assert parse_answer_object(text) == {"aff-1": {"nested": 1}, "aff-2": "B"}

    @pytest.mark.parametrize("text", ["", "NOT_FOUND", "[1, 2]", "{broken", '"just a string"'])
    def test_invalid(self, text):
        with pytest.raises(InvalidModelOutputError):
            parse_answer_object(text)


class TestCleanAnswer:

    @pytest.mark.parametrize("raw, expected", [
        ("  Ada Lovelace ", "Ada Lovelace"),
        ('"Quoted"', "Quoted"),
        ("NOT_FOUND", None),
        ("not_found", None),
        ('"NOT_FOUND"', None),
        ("", None),
        ("   ", None),
        (None, None),
        (42, "42"),
        (True, "true"),
        ({"a": 1}, None),
    ])
    def test_values(self, raw, expected):
        assert clean_answer(raw) == expected

    def test_answers_for_ignores_unknown_keys(self):
        parsed = {"aff-1": "Ada", "aff-2": "NOT_FOUND", "aff-9": "stray"}
        assert answers_for(["aff-1", "aff-2", "aff-3"], parsed) == {"aff-1": "Ada"}


class TestBuildPayload:

    def test_shape(self):
        fields = [
            FieldDescriptor(uid="aff-t-1", tag="input", type="text", label="First name"),
            FieldDescriptor(uid="aff-t-2", tag="select", type="select-one", label="Country",
                            options=["Canada"]),
        ]
        payload = build_payload("gpt-4.1-mini", "vs_1", fields)

        assert payload["model"] == "gpt-4.1-mini"
        assert payload["temperature"] == 0
        assert payload["tools"] == [{"type": "file_search", "vector_store_ids": ["vs_1"]}]
        assert payload["input"][0]["content"][0]["text"] == SYSTEM_INSTRUCTION
        assert "NOT_FOUND" in SYSTEM_INSTRUCTION

        user_text = payload["input"][1]["content"][0]["text"]
        context = json.loads(user_text.split("Target form fields: ", 1)[1].split("\n", 1)[0])
        assert list(context) == ["aff-t-1", "aff-t-2"]
        assert context["aff-t-2"]["options"] == ["Canada"]
        assert context["aff-t-1"]["options"] == []
        assert "uid" not in context["aff-t-1"]
