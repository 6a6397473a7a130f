"""Mermaid syntax validation.

A heuristic linter for Mermaid diagram text. It does not parse the full
grammar; it catches the structural mistakes language models most often
make (missing diagram header, unbalanced brackets, stray quotes) and
reports them as line-numbered diagnostics that can be fed back into a
repair prompt.

Rules, applied to the text with any surrounding ```mermaid fence removed:
    - Empty input yields a single ``empty diagram`` diagnostic at line 0.
    - The first non-blank, non-comment line must start with a known
      diagram keyword.
    - Every non-comment line must have an even number of ``"`` and
      balanced ``[]`` and ``()``.
    - ``{``/``}`` must balance across lines; block openers such as
      ``class A {`` are closed on a later line.
    - Bracket checks skip free-form text: quoted strings, ER cardinality
      markers, the ``>`` opener of a flowchart asymmetric node
      (``A>label]``) and sequence message text after the ``:``.

``%%`` comment lines and YAML front matter (``---`` ... ``---``) are ignored.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..diagram import strip_fence

DIAGRAM_KEYWORDS: tuple[str, ...] = (
    "graph",
    "flowchart",
    "sequenceDiagram",
    "classDiagram",
    "classDiagram-v2",
    "stateDiagram",
    "stateDiagram-v2",
    "erDiagram",
    "journey",
    "gantt",
    "pie",
    "requirementDiagram",
    "gitGraph",
    "mindmap",
    "timeline",
    "quadrantChart",
)

EMPTY_DIAGRAM = "empty diagram"
INVALID_HEADER = "Invalid or missing diagram type declaration"
UNCLOSED_QUOTES = "Unclosed quotes"
MISMATCHED_SQUARE = "Mismatched square brackets"
MISMATCHED_PARENS = "Mismatched parentheses"
MISMATCHED_CURLY = "Mismatched curly braces"

_HEADER_RE = re.compile(
    r"^(?:" + "|".join(re.escape(k) for k in DIAGRAM_KEYWORDS) + r")(?=[\s:;]|$)"
)
_QUOTED_RE = re.compile(r'"[^"]*"')
# erDiagram cardinality markers such as ||--o{ and }|..|{
_ER_CARDINALITY_RE = re.compile(r"[|}o]{1,2}(?:--|\.\.)[|{o]{1,2}")
# flowchart asymmetric node shape: id>label]
_ASYMMETRIC_RE = re.compile(r"(?<=\w)>[^\]]*\]")


class Diagnostic(BaseModel):
    """A single syntax problem.

    Attributes:
        line: 1-based line number in the unfenced diagram, 0 for whole-diagram
            problems, None if unknown.
        message: Human-readable problem description.
        offending_text: The trimmed line that triggered the diagnostic.
    """

    model_config = ConfigDict(frozen=True)

    line: int | None = Field(default=None, description="1-based line number")
    message: str = Field(..., description="Problem description")
    offending_text: str | None = Field(default=None, description="Trimmed line text")

    def __str__(self) -> str:
        if self.line:
            return f"line {self.line}: {self.message}"
        return self.message


class ValidationResult(BaseModel):
    """Outcome of validating one artifact.

    ``is_valid`` is derived from ``diagnostics`` and cannot disagree with it.
    """

    model_config = ConfigDict(frozen=True)

    diagnostics: tuple[Diagnostic, ...] = Field(default=())
    raw_artifact: str = Field(default="", description="Input exactly as given")

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.diagnostics

    @property
    def content(self) -> str:
        """The artifact with its fence removed."""
        return strip_fence(self.raw_artifact)

    def summary(self) -> str:
        """One-line summary of the diagnostics."""
        if self.is_valid:
            return "valid"
        return "; ".join(str(d) for d in self.diagnostics)


def _front_matter_end(lines: list[str]) -> int:
    """Index of the first line after a leading ``---`` block, or 0."""
    first = next((i for i, line in enumerate(lines) if line.strip()), None)
    if first is None or lines[first].strip() != "---":
        return 0
    for i in range(first + 1, len(lines)):
        if lines[i].strip() == "---":
            return i + 1
    return 0


def _is_skipped(text: str) -> bool:
    return not text or text.startswith("%%")


def validate(artifact: str) -> ValidationResult:
    """Validate Mermaid diagram text.

    Pure function: no I/O, no external tools.

    Args:
        artifact: Diagram text, optionally wrapped in a ```mermaid fence.

    Returns:
        ValidationResult whose ``raw_artifact`` is ``artifact`` unchanged.

    Example:
        >>> result = validate("classDiagram\\n  class A {\\n    +foo(\\n  }\\n")
        >>> [(d.line, d.message) for d in result.diagnostics]
        [(3, 'Mismatched parentheses')]
    """
    content = strip_fence(artifact)
    if not content.strip():
        return ValidationResult(
            diagnostics=(Diagnostic(line=0, message=EMPTY_DIAGRAM),),
            raw_artifact=artifact,
        )

    lines = content.split("\n")
    start = _front_matter_end(lines)
    diagnostics: list[Diagnostic] = []

    header_index = next(
        (i for i in range(start, len(lines)) if not _is_skipped(lines[i].strip())),
        None,
    )
    if header_index is None:
        return ValidationResult(
            diagnostics=(Diagnostic(line=0, message=EMPTY_DIAGRAM),),
            raw_artifact=artifact,
        )

    header = lines[header_index].strip()
    if not _HEADER_RE.match(header):
        diagnostics.append(
            Diagnostic(line=header_index + 1, message=INVALID_HEADER, offending_text=header)
        )
    is_er = header.startswith("erDiagram")
    is_flowchart = header.startswith(("graph", "flowchart"))
    is_sequence = header.startswith("sequenceDiagram")

    open_braces: list[int] = []
    brace_lines: set[int] = set()
    texts: dict[int, str] = {}

    for index in range(start, len(lines)):
        text = lines[index].strip()
        if _is_skipped(text):
            continue
        number = index + 1
        texts[number] = text

        if text.count('"') % 2:
            diagnostics.append(
                Diagnostic(line=number, message=UNCLOSED_QUOTES, offending_text=text)
            )

        code = _QUOTED_RE.sub("", text)
        if is_er:
            code = _ER_CARDINALITY_RE.sub("", code)
        elif is_flowchart:
            code = _ASYMMETRIC_RE.sub("", code)
        elif is_sequence and index != header_index:
            # message and note text after the colon is free-form
            code = code.split(":", 1)[0]

        if code.count("[") != code.count("]"):
            diagnostics.append(
                Diagnostic(line=number, message=MISMATCHED_SQUARE, offending_text=text)
            )
        if code.count("(") != code.count(")"):
            diagnostics.append(
                Diagnostic(line=number, message=MISMATCHED_PARENS, offending_text=text)
            )

        for char in code:
            if char == "{":
                open_braces.append(number)
            elif char == "}":
                if open_braces:
                    open_braces.pop()
                else:
                    brace_lines.add(number)

    brace_lines.update(open_braces)
    diagnostics.extend(
        Diagnostic(line=number, message=MISMATCHED_CURLY, offending_text=texts[number])
        for number in brace_lines
    )
    diagnostics.sort(key=lambda d: d.line or 0)

    return ValidationResult(diagnostics=tuple(diagnostics), raw_artifact=artifact)


def is_valid(artifact: str) -> bool:
    """Convenience check for diagram validity."""
    return validate(artifact).is_valid


def format_linter_output(result: ValidationResult) -> str:
    """Render a validation result as human-readable linter output.

    Example:
        >>> print(format_linter_output(validate("graph TD\\n  A[x --> B")))
        Mermaid diagram syntax validation failed:
        <BLANKLINE>
        Line 2: Mismatched square brackets
          A[x --> B
        <BLANKLINE>
    """
    if result.is_valid:
        return "Mermaid diagram syntax is valid."

    out = ["Mermaid diagram syntax validation failed:", ""]
    for diagnostic in result.diagnostics:
        if diagnostic.line:
            out.append(f"Line {diagnostic.line}: {diagnostic.message}")
            if diagnostic.offending_text:
                out.append(f"  {diagnostic.offending_text}")
        else:
            out.append(diagnostic.message)
    return "\n".join(out) + "\n"


def validation_context(result: ValidationResult) -> str:
    """Serialize a validation result as JSON for inclusion in a prompt."""
    return result.model_dump_json(indent=2, exclude_none=True)


__all__ = [
    "DIAGRAM_KEYWORDS",
    "Diagnostic",
    "ValidationResult",
    "format_linter_output",
    "is_valid",
    "validate",
    "validation_context",
]
