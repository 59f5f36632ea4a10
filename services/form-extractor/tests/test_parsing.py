"""Tests for JSON recovery from noisy model output."""

import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from errors import ExtractionParseError
from parsing import parse_extraction, try_parse_json


class TestTryParseJSON:
    def test_direct_json(self):
        raw = '{"fields": [], "formTitle": "Intake"}'
        assert try_parse_json(raw) == {"fields": [], "formTitle": "Intake"}

    def test_markdown_fence(self, mock_markdown_response: str):
        result = try_parse_json(mock_markdown_response)
        assert result is not None
        assert result["formTitle"] == "Membership Application"

    def test_preamble_text(self):
        raw = 'Here is the extracted data:\n\n{"fields": [{"label": "Name"}]}\nHope this helps!'
        result = try_parse_json(raw)
        assert result == {"fields": [{"label": "Name"}]}

    def test_nested_objects_use_outermost_braces(self):
        raw = 'Result: {"fields": [{"label": "A", "boundingBox": {"x": 0.1, "y": 0.2, "width": 0.3, "height": 0.1}}]}'
        result = try_parse_json(raw)
        assert result is not None
        assert result["fields"][0]["boundingBox"]["x"] == 0.1

    def test_escaped_quotes_recovered(self):
        raw = 'Output: {\\"fields\\": [{\\"label\\": \\"Name\\"}], \\"formTitle\\": \\"Form\\"}'
        result = try_parse_json(raw)
        assert result is not None
        assert result["formTitle"] == "Form"

    def test_think_block_stripped(self):
        raw = '<think>\nThe form shows {"wrong": "data"}.\n</think>\n{"formTitle": "Right"}'
        result = try_parse_json(raw)
        assert result == {"formTitle": "Right"}

    def test_whitespace_padded(self):
        assert try_parse_json('  \n  {"key": "value"}  \n  ') == {"key": "value"}

    def test_not_json(self):
        assert try_parse_json("This is just plain text with no JSON at all.") is None

    def test_array_not_dict(self):
        assert try_parse_json("[1, 2, 3]") is None

    def test_empty_string(self):
        assert try_parse_json("") is None

    def test_truncated_json(self):
        assert try_parse_json('{"fields": [{"label": "Name", "value": "Ma') is None

    def test_failure_log_omits_form_content(self, caplog):
        raw = 'Result: {"fields": [{"label": "Date of Birth", "value": "1990-01-15"'
        with caplog.at_level(logging.WARNING, logger="parsing"):
            assert try_parse_json(raw + "}, oops}") is None
        assert caplog.records
        assert "1990-01-15" not in caplog.text
        assert "Date of Birth" not in caplog.text


class TestParseExtraction:
    def test_fields_and_title(self, mock_form_response: str):
        result = parse_extraction(mock_form_response)
        assert result.form_title == "Membership Application"
        assert [f.label for f in result.fields] == ["Full Name", "Date of Birth"]
        assert result.fields[0].bounding_box is not None
        assert result.fields[0].bounding_box.width == 0.5

    def test_missing_fields_is_empty(self):
        result = parse_extraction('{"formTitle": "Blank"}')
        assert result.fields == []

    def test_fields_not_a_list_fails(self):
        with pytest.raises(ExtractionParseError):
            parse_extraction('{"fields": "none"}')

    def test_unparseable_fails(self):
        with pytest.raises(ExtractionParseError, match="Could not parse"):
            parse_extraction("I could not read this form.")

    def test_lenient_values(self):
        raw = (
            '{"fields": [{"label": "Age", "value": 42, "confidence": "0.7"},'
            ' {"label": "Agree", "value": true, "type": "checkbox"},'
            ' {"label": "Box", "boundingBox": {"x": "bad"}}, "junk"]}'
        )
        result = parse_extraction(raw)
        assert len(result.fields) == 3
        assert result.fields[0].value == "42"
        assert result.fields[0].confidence == 0.7
        assert result.fields[1].value == "checked"
        assert result.fields[2].bounding_box is None

    def test_bounding_box_clamped(self):
        raw = '{"fields": [{"label": "A", "boundingBox": {"x": -0.2, "y": 0.9, "width": 1.5, "height": 0.3}}]}'
        box = parse_extraction(raw).fields[0].bounding_box
        assert box.x == 0.0
        assert box.y == 0.9
        assert box.width == 1.0
        assert box.height == pytest.approx(0.1)

    def test_blank_title_is_none(self):
        assert parse_extraction('{"fields": [], "formTitle": "  "}').form_title is None
