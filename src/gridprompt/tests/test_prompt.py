"""Tests for prompt rendering."""

from gridprompt.prompt import (
    extract_variables,
    missing_variables,
    render_prompt,
    value_to_text,
)
from gridprompt.schema import SCHEMA_HEADER


class TestRenderPrompt:
    """Test placeholder substitution."""

    def test_substitutes_all_occurrences(self):
        """Every occurrence of a placeholder is replaced."""
        prompt = render_prompt("{{name}} and {{name}} in {{city}}", {"name": "Ann", "city": "Kyoto"})
        assert prompt == "Ann and Ann in Kyoto"

    def test_unknown_placeholder_left_verbatim(self):
        """Placeholders without a matching column stay as written."""
        prompt = render_prompt("Hello {{name}}, {{missing}}", {"name": "Ann"})
        assert prompt == "Hello Ann, {{missing}}"

    def test_values_not_rescanned(self):
        """Inserted values containing placeholders are not expanded."""
        prompt = render_prompt("{{a}} / {{b}}", {"a": "{{b}}", "b": "X"})
        assert prompt == "{{b}} / X"

    def test_whitespace_and_spaced_names(self):
        """Padded placeholders and column names with spaces resolve."""
        row = {"Company Name": "Acme", "id": "7"}
        assert render_prompt("{{ Company Name }} #{{id}}", row) == "Acme #7"

    def test_extra_braces_kept_around_value(self):
        """Braces outside a placeholder are literal text."""
        assert render_prompt("{{{name}}}", {"name": "Ann"}) == "{Ann}"
        assert render_prompt("{{{{name}}}}", {"name": "Ann"}) == "{{Ann}}"

    def test_non_string_values(self):
        """Numbers and booleans are rendered as text."""
        assert render_prompt("{{n}} {{f}} {{ok}}", {"n": 3, "f": 1.5, "ok": True}) == "3 1.5 true"

    def test_schema_appended_with_header(self):
        """Non-empty schema text follows the body after the header."""
        prompt = render_prompt("Describe {{x}}", {"x": "it"}, '{\n  "a": string\n}')
        assert prompt == f'Describe it\n\n{SCHEMA_HEADER}\n{{\n  "a": string\n}}'
        assert SCHEMA_HEADER == (
            "[Output schema]\nPlease output in the following JSON structure:"
        )

    def test_empty_schema_omits_header(self):
        """No schema block when the schema text is empty."""
        assert render_prompt("Q {{x}}", {"x": 1}, "") == "Q 1"

    def test_value_to_text(self):
        """Structured values are rendered as compact JSON."""
        assert value_to_text("raw") == "raw"
        assert value_to_text(False) == "false"
        assert value_to_text(None) == ""
        assert value_to_text({"a": [1, 2]}) == '{"a":[1,2]}'


class TestTemplateVariables:
    """Test placeholder extraction helpers."""

    def test_extract_variables(self):
        assert extract_variables("{{a}} {{ b }} {{a}} plain") == {"a", "b"}

    def test_missing_variables(self):
        """Placeholders not covered by the given columns are reported sorted."""
        assert missing_variables("{{z}} {{a}} {{name}}", ["name"]) == ["a", "z"]
        assert missing_variables("{{name}}", ["name", "other"]) == []
