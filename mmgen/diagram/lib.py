"""Mermaid diagram text utilities.

Helpers for the text that flows between the model and the validator:
fencing, cleanup of model output, splitting project maps into component
sections and merging per-component class diagrams.
"""

import re
from collections.abc import Iterable, Mapping
from enum import Enum

FENCE_OPEN = "```mermaid"
FENCE_CLOSE = "```"

COMPONENT_TYPES: tuple[str, ...] = ("service", "repository", "adapter", "model", "config")

RELATIONSHIP_ARROWS: tuple[str, ...] = ("-->", "<--", "--o", "--*", "..>", "<..")

_HEADER_KEYWORDS = ("classDiagram", "sequenceDiagram", "flowchart", "graph")

_OPEN_FENCE_RE = re.compile(r"^```[ \t]*(?:mermaid)?[ \t]*$", re.IGNORECASE)
_SECTION_MARKER_RE = re.compile(r"^%+\s*([A-Za-z_]+)\s+components?\b", re.IGNORECASE)


class DiagramKind(str, Enum):
    """Kinds of diagram the generator can be asked for."""

    BASIC = "basic"
    SEQUENCE = "sequence"
    CLASS = "class"
    FLOWCHART = "flowchart"
    PROJECT = "project"
    CONFIG = "config"
    ADAPTERS = "adapters"

    @classmethod
    def parse(cls, value: "str | DiagramKind") -> "DiagramKind":
        """Map a user-supplied name to a kind. Unknown names become BASIC."""
        if isinstance(value, DiagramKind):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.BASIC

    @property
    def is_project_kind(self) -> bool:
        """Whether the kind is supported for whole-project maps."""
        return self in PROJECT_KINDS


PROJECT_KINDS = frozenset(
    {DiagramKind.SEQUENCE, DiagramKind.CLASS, DiagramKind.CONFIG, DiagramKind.ADAPTERS}
)

# Component types read for each single-request project map
PROJECT_COMPONENTS: dict[DiagramKind, tuple[str, ...]] = {
    DiagramKind.SEQUENCE: ("service", "repository", "adapter"),
    DiagramKind.CONFIG: ("config",),
    DiagramKind.ADAPTERS: ("adapter",),
}


def strip_fence(text: str) -> str:
    """Remove a surrounding ```mermaid / ``` fence pair, if present.

    Only the outermost fence is removed. Text without a fence is returned
    with surrounding whitespace trimmed.

    Example:
        >>> strip_fence("```mermaid\\ngraph TD\\n  A-->B\\n```")
        'graph TD\\n  A-->B'
    """
    body = text.strip()
    lines = body.split("\n")
    if len(lines) >= 2 and _OPEN_FENCE_RE.match(lines[0].strip()):
        lines = lines[1:]
        if lines and lines[-1].strip() == FENCE_CLOSE:
            lines = lines[:-1]
        return "\n".join(lines).strip("\n")
    return body


def wrap_fence(diagram: str) -> str:
    """Wrap diagram text in a ```mermaid fence.

    Already fenced input is not double-wrapped.
    """
    return f"{FENCE_OPEN}\n{strip_fence(diagram)}\n{FENCE_CLOSE}"


def _is_percent_comment(line: str) -> bool:
    return line.strip().startswith("%")


def clean_diagram_output(diagram: str) -> str:
    """Tidy raw model output.

    When the model answers with several fenced ```mermaid blocks, their
    bodies are merged under the first diagram header found and repeated
    headers are dropped. Lines starting with ``%`` are removed in all cases.
    """
    lines = diagram.split("\n")

    if FENCE_OPEN not in diagram:
        kept = [line for line in lines if not _is_percent_comment(line)]
        return "\n".join(kept).strip()

    merged: list[str] = []
    header = ""
    in_block = False
    for line in lines:
        if _is_percent_comment(line):
            continue
        if FENCE_OPEN in line:
            in_block = True
            continue
        if line.startswith(FENCE_CLOSE) and in_block:
            in_block = False
            merged.append("")
            continue
        if not in_block:
            continue

        stripped = line.strip()
        if not header and stripped.startswith(_HEADER_KEYWORDS):
            header = stripped
            continue
        if header and stripped == header:
            continue
        merged.append(line)

    body = "\n".join(merged).strip("\n")
    if header:
        return f"{header}\n{body}".rstrip()
    return body.rstrip()


def _singular(name: str) -> str:
    if name.endswith("ies"):
        return name[:-3] + "y"
    return name.removesuffix("s")


def extract_component_sections(diagram: str) -> dict[str, str]:
    """Split a combined project map into per-component sections.

    Sections start at comment markers such as ``%% SERVICE components``;
    the key is the lower-cased singular component name (``service``).
    Lines before the first marker are ignored, and a relationships marker
    closes the current section.
    """
    sections: dict[str, str] = {}
    current = ""
    content: list[str] = []

    for line in diagram.split("\n"):
        stripped = line.strip()
        marker = _SECTION_MARKER_RE.match(stripped)
        closes = stripped.startswith("%") and "relationship" in stripped.lower()
        if marker or closes:
            if current and content:
                sections[current] = "\n".join(content) + "\n"
            content = []
            current = _singular(marker.group(1).lower()) if marker else ""
            continue
        if current:
            content.append(line)

    if current and content:
        sections[current] = "\n".join(content) + "\n"
    return sections


def extract_relationship_lines(text: str) -> list[str]:
    """Keep only class-diagram relationship lines from model output."""
    found = []
    for line in strip_fence(text).split("\n"):
        stripped = line.strip()
        if stripped.startswith("%"):
            continue
        if any(arrow in stripped for arrow in RELATIONSHIP_ARROWS):
            found.append(stripped)
    return found


def _drop_header(diagram: str) -> list[str]:
    lines = strip_fence(diagram).split("\n")
    for index, line in enumerate(lines):
        if not line.strip():
            continue
        if line.strip().startswith("classDiagram"):
            return lines[index + 1 :]
        break
    return lines


def combine_class_diagrams(
    diagrams: Mapping[str, str],
    relationships: Iterable[str] = (),
) -> str:
    """Merge per-component class diagrams into one ``classDiagram``.

    Each component body is placed under a ``%% TYPE components`` marker in
    mapping order; cross-component relationship lines, if any, follow
    under their own marker.

    Args:
        diagrams: Component type to class diagram text (fenced or not).
        relationships: Relationship lines to append.

    Returns:
        Combined diagram text (unfenced).
    """
    out = ["classDiagram"]
    for component, diagram in diagrams.items():
        body = [line for line in _drop_header(diagram) if line.strip()]
        if not body:
            continue
        out.append(f"  %% {component.upper()} components")
        out.extend(body)
        out.append("")

    relationship_lines = [line for line in relationships if line.strip()]
    if relationship_lines:
        out.append("  %% Cross-component relationships")
        out.extend(f"  {line.strip()}" for line in relationship_lines)

    return "\n".join(out).rstrip() + "\n"


__all__ = [
    "COMPONENT_TYPES",
    "FENCE_CLOSE",
    "FENCE_OPEN",
    "PROJECT_COMPONENTS",
    "PROJECT_KINDS",
    "RELATIONSHIP_ARROWS",
    "DiagramKind",
    "clean_diagram_output",
    "combine_class_diagrams",
    "extract_component_sections",
    "extract_relationship_lines",
    "strip_fence",
    "wrap_fence",
]
