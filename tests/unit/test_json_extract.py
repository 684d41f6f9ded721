"""
Unit tests for pipeline/json_extract.py
"""
import json

from pipeline.json_extract import extract_json_array, parse_proposed_changes


CHANGES = '[{"original": "Hola", "changes": "Buenas", "reason": "Tone"}]'


class TestExtractJsonArray:
    """Fenced block first, then balanced spans left to right."""

    def test_empty_input(self):
        assert extract_json_array("") == ""
        assert extract_json_array("   \n") == ""

    def test_fenced_json_block(self):
        text = f"Here you go:\n```json\n{CHANGES}\n```\nLet me know."
        assert extract_json_array(text) == CHANGES

    def test_fenced_block_without_language(self):
        text = f"```\n{CHANGES}\n```"
        assert extract_json_array(text) == CHANGES

    def test_bare_array_in_prose(self):
        text = f"I found one issue: {CHANGES} That's all."
        assert extract_json_array(text) == CHANGES

    def test_nested_arrays_use_balanced_scan(self):
        nested = '[{"original": "a", "changes": "b", "reason": "c", "tags": [1, [2, 3]]}]'
        result = extract_json_array(f"Result: {nested} -- done")
        assert json.loads(result) == json.loads(nested)

    def test_brackets_inside_strings_do_not_end_the_array(self):
        tricky = '[{"original": "see [1]", "changes": "see ]2[", "reason": "quote \\" ] inside"}]'
        result = extract_json_array(f"Changes: {tricky}")
        assert result == tricky
        assert json.loads(result)[0]["changes"] == "see ]2["

    def test_invalid_fenced_block_falls_through(self):
        text = 'Before ["ok"] then\n```json\n[oops]\n```'
        assert extract_json_array(text) == '["ok"]'

    def test_bracketed_label_before_the_array(self):
        changes = '[{"original": "a", "changes": "b", "reason": "c"}]'
        assert extract_json_array(f"Changes for [fr]: {changes}") == changes

    def test_several_labels_before_the_array(self):
        text = f"[fr] [step 1] proposed:\n{CHANGES}\n[end]"
        assert extract_json_array(text) == CHANGES

    def test_unclosed_bracket_before_the_array(self):
        text = f"Note [see below: {CHANGES}"
        assert extract_json_array(text) == CHANGES

    def test_label_span_is_skipped_whole(self):
        """Arrays nested in a span that is not JSON are not picked out of it."""
        text = f"[see [1] above] {CHANGES}"
        assert extract_json_array(text) == CHANGES

    def test_unclosed_array_returns_text(self):
        text = 'Note [unclosed and here: ["x"'
        assert extract_json_array(text) == text

    def test_no_json_returns_text_unchanged(self):
        text = "The translation is already perfect."
        assert extract_json_array(text) == text

    def test_empty_array(self):
        assert extract_json_array("No changes: []") == "[]"


class TestParseProposedChanges:

    def test_returns_parsed_list(self):
        parsed = parse_proposed_changes(f"```json\n{CHANGES}\n```")
        assert parsed == [{"original": "Hola", "changes": "Buenas", "reason": "Tone"}]

    def test_language_label_in_reply(self):
        parsed = parse_proposed_changes(f"Proposed changes for [es]:\n{CHANGES}")
        assert parsed == [{"original": "Hola", "changes": "Buenas", "reason": "Tone"}]

    def test_returns_raw_text_on_failure(self):
        text = "I would rewrite the second sentence."
        assert parse_proposed_changes(text) == text

    def test_empty_text(self):
        assert parse_proposed_changes("") == ""
