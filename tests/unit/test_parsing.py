"""Tests for lenient JSON extraction from model answers."""

from circuitiq_core.core.parsing import (
    MAX_CANDIDATES,
    Parsed,
    Unparsable,
    extract_json_array,
    extract_json_object,
)


class TestExtractJsonArray:
    """First well-formed array wins, prose and fences are ignored."""

    def test_array_embedded_in_prose(self):
        text = 'Sure! Here you go: [{"id":"CB1","name":"Breaker","type":"breaker"}] Hope that helps'
        result = extract_json_array(text)
        assert isinstance(result, Parsed)
        assert result.value == [{"id": "CB1", "name": "Breaker", "type": "breaker"}]

    def test_array_in_code_fence(self):
        text = '```json\n[{"id": "K1"}, {"id": "K2"}]\n```'
        result = extract_json_array(text)
        assert isinstance(result, Parsed)
        assert [c["id"] for c in result.value] == ["K1", "K2"]

    def test_skips_malformed_bracket_before_real_array(self):
        text = 'Components [see below]: [{"id": "F1"}]'
        result = extract_json_array(text)
        assert isinstance(result, Parsed)
        assert result.value == [{"id": "F1"}]

    def test_trailing_brackets_do_not_break_first_array(self):
        text = '[1, 2] and also [3]'
        assert extract_json_array(text) == Parsed([1, 2])

    def test_no_array_is_unparsable(self):
        result = extract_json_array("I cannot see the diagram")
        assert isinstance(result, Unparsable)
        assert result.excerpt == "I cannot see the diagram"

    def test_empty_text_is_unparsable(self):
        assert isinstance(extract_json_array(""), Unparsable)
        assert isinstance(extract_json_array("   \n"), Unparsable)

    def test_truncated_array_is_unparsable(self):
        assert isinstance(extract_json_array('[{"id": "CB1", "name": "Bre'), Unparsable)


class TestExtractJsonObject:
    """Objects are located the same way as arrays."""

    def test_object_embedded_in_prose(self):
        text = 'Here is the trace: {"from": "CB1", "to": "K1", "path": []} done.'
        result = extract_json_object(text)
        assert isinstance(result, Parsed)
        assert result.value["path"] == []

    def test_nested_object_returns_outermost(self):
        text = '{"description": "relay", "specifications": {"coil": "28V"}}'
        result = extract_json_object(text)
        assert result.value["specifications"] == {"coil": "28V"}

    def test_array_is_not_an_object(self):
        result = extract_json_object('[1, 2, 3]')
        assert isinstance(result, Unparsable)

    def test_long_excerpt_is_truncated(self):
        result = extract_json_object("x" * 1000)
        assert isinstance(result, Unparsable)
        assert len(result.excerpt) < 300
        assert result.excerpt.endswith("...")


class TestDegenerateAnswers:
    """Runaway or bracket-heavy output never raises."""

    def test_deep_nesting_is_unparsable(self):
        assert isinstance(extract_json_array("[" * 5000), Unparsable)
        assert isinstance(extract_json_object('{"a":' * 5000), Unparsable)

    def test_candidate_positions_are_capped(self):
        text = "[x " * (MAX_CANDIDATES + 10) + "[1]"
        assert isinstance(extract_json_array(text), Unparsable)

    def test_array_within_cap_is_found(self):
        text = "[x " * (MAX_CANDIDATES - 1) + "[1]"
        assert extract_json_array(text) == Parsed([1])
