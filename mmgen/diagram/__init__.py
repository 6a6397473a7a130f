"""Mermaid diagram kinds and text utilities."""

from .lib import (
    COMPONENT_TYPES,
    FENCE_CLOSE,
    FENCE_OPEN,
    PROJECT_COMPONENTS,
    PROJECT_KINDS,
    RELATIONSHIP_ARROWS,
    DiagramKind,
    clean_diagram_output,
    combine_class_diagrams,
    extract_component_sections,
    extract_relationship_lines,
    strip_fence,
    wrap_fence,
)

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
