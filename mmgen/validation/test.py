"""Unit tests for validation module."""

import json

import pytest
from pydantic import ValidationError

from .lib import (
    DIAGRAM_KEYWORDS,
    Diagnostic,
    ValidationResult,
    format_linter_output,
    is_valid,
    validate,
    validation_context,
)


def _lines_and_messages(result: ValidationResult) -> list[tuple[int | None, str]]:
    return [(d.line, d.message) for d in result.diagnostics]


class TestValidate:
    """Tests for validate function."""

    @pytest.mark.unit
    def test_valid_flowchart(self):
        """Well-formed flowchart passes validation."""
        result = validate('graph TD\n  A["Start"] --> B(Process)\n  B --> C{Done?}\n')
        assert result.is_valid
        assert result.diagnostics == ()

    @pytest.mark.unit
    def test_class_block_spanning_lines(self):
        """A class body opened on one line and closed later is balanced."""
        result = validate("classDiagram\n  class A {\n    +foo()\n  }\n")
        assert result.is_valid

    @pytest.mark.unit
    def test_unbalanced_parenthesis_inside_class_block(self):
        """Only the line with the broken parenthesis is reported."""
        result = validate("classDiagram\n  class A {\n    +foo(\n  }\n")
        assert not result.is_valid
        assert _lines_and_messages(result) == [(3, "Mismatched parentheses")]
        assert result.diagnostics[0].offending_text == "+foo("

    @pytest.mark.unit
    def test_empty_diagram(self):
        """Empty and whitespace-only input is rejected at line 0."""
        for artifact in ("", "   \n\n", "```mermaid\n```"):
            result = validate(artifact)
            assert _lines_and_messages(result) == [(0, "empty diagram")]

    @pytest.mark.unit
    def test_comment_only_is_empty(self):
        result = validate("%% just a comment\n")
        assert _lines_and_messages(result) == [(0, "empty diagram")]

    @pytest.mark.unit
    def test_missing_header(self):
        """First meaningful line must name a diagram type."""
        result = validate("A --> B\n")
        assert _lines_and_messages(result) == [
            (1, "Invalid or missing diagram type declaration")
        ]
        assert result.diagnostics[0].offending_text == "A --> B"

    @pytest.mark.unit
    def test_header_after_comments_and_blank_lines(self):
        """Leading comments and blank lines do not count as the header."""
        result = validate("\n%% generated\n\nsequenceDiagram\n  Alice->>Bob: hi\n")
        assert result.is_valid

    @pytest.mark.unit
    def test_header_prefix_must_be_whole_word(self):
        result = validate("graphTD\n  A-->B")
        assert not result.is_valid

    @pytest.mark.unit
    @pytest.mark.parametrize("keyword", DIAGRAM_KEYWORDS)
    def test_all_keywords_accepted(self, keyword):
        assert validate(f"{keyword}\n").is_valid

    @pytest.mark.unit
    def test_unclosed_quotes(self):
        result = validate('graph TD\n  A["Start] --> B\n')
        assert (2, "Unclosed quotes") in _lines_and_messages(result)

    @pytest.mark.unit
    def test_square_brackets(self):
        result = validate("graph TD\n  A[Start --> B\n")
        assert _lines_and_messages(result) == [(2, "Mismatched square brackets")]

    @pytest.mark.unit
    def test_multiple_violations_on_one_line(self):
        """One diagnostic per violation type per line."""
        result = validate("graph TD\n  A[x( --> B\n")
        assert _lines_and_messages(result) == [
            (2, "Mismatched square brackets"),
            (2, "Mismatched parentheses"),
        ]

    @pytest.mark.unit
    def test_brackets_inside_quotes_ignored(self):
        result = validate('graph TD\n  A["items[0"] --> B\n')
        assert result.is_valid

    @pytest.mark.unit
    def test_stray_closing_brace(self):
        result = validate("classDiagram\n  class A\n  }\n")
        assert _lines_and_messages(result) == [(3, "Mismatched curly braces")]

    @pytest.mark.unit
    def test_unclosed_block_reported_on_opening_line(self):
        result = validate("classDiagram\n  class A {\n    +foo()\n")
        assert _lines_and_messages(result) == [(2, "Mismatched curly braces")]

    @pytest.mark.unit
    def test_er_cardinality_is_not_a_brace(self):
        """erDiagram crow's-foot markers do not open blocks."""
        result = validate(
            "erDiagram\n"
            "  CUSTOMER ||--o{ ORDER : places\n"
            "  ORDER ||--|{ LINE_ITEM : contains\n"
            "  CUSTOMER {\n    string name\n  }\n"
        )
        assert result.is_valid

    @pytest.mark.unit
    def test_asymmetric_node_shape(self):
        """The > opener of an asymmetric flowchart node is not a bracket."""
        assert validate("flowchart LR\n  A>Asymmetric] --> B").is_valid
        assert validate("graph TD\n  A --> B>Flag]\n  B -- yes --> C").is_valid

    @pytest.mark.unit
    def test_asymmetric_node_extra_bracket(self):
        result = validate("flowchart LR\n  A>Asym]] --> B")
        assert _lines_and_messages(result) == [(2, "Mismatched square brackets")]

    @pytest.mark.unit
    def test_sequence_message_text_is_free_form(self):
        """Brackets in sequence message text are not balanced."""
        result = validate(
            "sequenceDiagram\n"
            "  A->>B: smile :)\n"
            "  Note right of B: see [docs\n"
            "  B-->>A: ok"
        )
        assert result.is_valid

    @pytest.mark.unit
    def test_sequence_participant_brackets_checked(self):
        result = validate("sequenceDiagram\n  A->>B(: hi")
        assert _lines_and_messages(result) == [(2, "Mismatched parentheses")]

    @pytest.mark.unit
    def test_sequence_message_quotes_checked(self):
        result = validate('sequenceDiagram\n  A->>B: "hi')
        assert _lines_and_messages(result) == [(2, "Unclosed quotes")]

    @pytest.mark.unit
    def test_comment_lines_skipped(self):
        result = validate("graph TD\n  %% A[broken\n  A --> B\n")
        assert result.is_valid

    @pytest.mark.unit
    def test_front_matter_skipped(self):
        result = validate("---\ntitle: Orders (draft\n---\nflowchart LR\n  A --> B\n")
        assert result.is_valid

    @pytest.mark.unit
    def test_fence_stripped_but_preserved(self):
        """Fences are ignored for checks but kept in raw_artifact."""
        artifact = "```mermaid\npie\n  \"a\" : 1\n```"
        result = validate(artifact)
        assert result.is_valid
        assert result.raw_artifact == artifact
        assert result.content == 'pie\n  "a" : 1'

    @pytest.mark.unit
    def test_line_numbers_relative_to_unfenced_text(self):
        result = validate("```mermaid\ngraph TD\n  A( --> B\n```")
        assert _lines_and_messages(result) == [(2, "Mismatched parentheses")]

    @pytest.mark.unit
    def test_is_valid_matches_diagnostics(self):
        """is_valid is true exactly when there are no diagnostics."""
        samples = [
            "",
            "graph TD",
            "graph TD\n  A(",
            "nonsense",
            "classDiagram\n  class A {\n  }",
            'sequenceDiagram\n  A->>B: "hi',
        ]
        for artifact in samples:
            result = validate(artifact)
            assert result.is_valid == (len(result.diagnostics) == 0)
            assert is_valid(artifact) == result.is_valid

    @pytest.mark.unit
    def test_result_is_immutable(self):
        result = validate("graph TD")
        with pytest.raises(ValidationError):
            result.raw_artifact = "changed"


class TestDiagnostic:
    """Tests for Diagnostic formatting."""

    @pytest.mark.unit
    def test_str_with_line(self):
        assert str(Diagnostic(line=4, message="Unclosed quotes")) == (
            "line 4: Unclosed quotes"
        )

    @pytest.mark.unit
    def test_str_without_line(self):
        assert str(Diagnostic(line=0, message="empty diagram")) == "empty diagram"

    @pytest.mark.unit
    def test_summary(self):
        result = validate("graph TD\n  A( --> B[\n")
        assert result.summary() == (
            "line 2: Mismatched square brackets; line 2: Mismatched parentheses"
        )
        assert validate("pie").summary() == "valid"


class TestFormatting:
    """Tests for linter output and prompt context rendering."""

    @pytest.mark.unit
    def test_valid_output(self):
        assert format_linter_output(validate("pie")) == "Mermaid diagram syntax is valid."

    @pytest.mark.unit
    def test_invalid_output(self):
        output = format_linter_output(validate("graph TD\n  A[x --> B"))
        assert output.startswith("Mermaid diagram syntax validation failed:")
        assert "Line 2: Mismatched square brackets\n  A[x --> B" in output

    @pytest.mark.unit
    def test_line_zero_has_no_prefix(self):
        output = format_linter_output(validate(""))
        assert "empty diagram" in output
        assert "Line 0" not in output

    @pytest.mark.unit
    def test_validation_context_is_json(self):
        """Context JSON carries validity, diagnostics and the artifact."""
        data = json.loads(validation_context(validate("graph TD\n  A(")))
        assert data["is_valid"] is False
        assert data["diagnostics"][0]["line"] == 2
        assert data["diagnostics"][0]["message"] == "Mismatched parentheses"
        assert data["raw_artifact"] == "graph TD\n  A("
