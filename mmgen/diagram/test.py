"""Tests for Mermaid diagram text utilities."""

import pytest

from .lib import (
    DiagramKind,
    clean_diagram_output,
    combine_class_diagrams,
    extract_component_sections,
    extract_relationship_lines,
    strip_fence,
    wrap_fence,
)


class TestDiagramKind:
    """Tests for DiagramKind parsing."""

    @pytest.mark.unit
    def test_parse_known(self):
        assert DiagramKind.parse("Sequence") is DiagramKind.SEQUENCE
        assert DiagramKind.parse(DiagramKind.CLASS) is DiagramKind.CLASS

    @pytest.mark.unit
    def test_parse_unknown_falls_back_to_basic(self):
        assert DiagramKind.parse("mindmap") is DiagramKind.BASIC

    @pytest.mark.unit
    def test_project_kinds(self):
        """Only sequence, class, config and adapters map whole projects."""
        assert DiagramKind.CLASS.is_project_kind
        assert DiagramKind.ADAPTERS.is_project_kind
        assert not DiagramKind.FLOWCHART.is_project_kind


class TestFences:
    """Tests for fence stripping and wrapping."""

    @pytest.mark.unit
    def test_strip_mermaid_fence(self):
        assert strip_fence("```mermaid\ngraph TD\n  A-->B\n```") == "graph TD\n  A-->B"

    @pytest.mark.unit
    def test_strip_bare_fence(self):
        assert strip_fence("```\npie\n```\n") == "pie"

    @pytest.mark.unit
    def test_strip_without_fence(self):
        assert strip_fence("  graph TD\n  A-->B\n") == "graph TD\n  A-->B"

    @pytest.mark.unit
    def test_wrap_does_not_double_wrap(self):
        """Wrapping fenced text yields a single fence pair."""
        wrapped = wrap_fence("```mermaid\ngraph TD\n```")
        assert wrapped == "```mermaid\ngraph TD\n```"
        assert wrap_fence("graph TD") == wrapped


class TestCleanDiagramOutput:
    """Tests for clean_diagram_output."""

    @pytest.mark.unit
    def test_merges_fenced_blocks(self):
        """Multiple fenced blocks merge under a single header."""
        raw = (
            "Here you go:\n"
            "```mermaid\nclassDiagram\n  class A\n```\n"
            "```mermaid\nclassDiagram\n  class B\n```\n"
        )
        assert clean_diagram_output(raw) == "classDiagram\n  class A\n\n  class B"

    @pytest.mark.unit
    def test_drops_percent_lines(self):
        raw = "graph TD\n%% note\n  A-->B\n"
        assert clean_diagram_output(raw) == "graph TD\n  A-->B"


class TestComponentSections:
    """Tests for combining and splitting component class diagrams."""

    @pytest.fixture
    def combined(self):
        return combine_class_diagrams(
            {
                "service": "classDiagram\n  class OrderService",
                "model": "```mermaid\nclassDiagram\n  class Order\n```",
                "config": "classDiagram\n",
            },
            ["OrderService --> Order : creates", ""],
        )

    @pytest.mark.unit
    def test_combined_layout(self, combined):
        """Header once, one marker per non-empty component, then relationships."""
        lines = combined.splitlines()
        assert lines[0] == "classDiagram"
        assert combined.count("classDiagram") == 1
        assert "  %% SERVICE components" in lines
        assert "  %% MODEL components" in lines
        assert "  %% CONFIG components" not in lines
        assert lines[-2:] == [
            "  %% Cross-component relationships",
            "  OrderService --> Order : creates",
        ]

    @pytest.mark.unit
    def test_sections_round_trip(self, combined):
        """Sections come back keyed by singular component type."""
        sections = extract_component_sections(combined)
        assert set(sections) == {"service", "model"}
        assert "class OrderService" in sections["service"]
        assert "class Order" in sections["model"]
        assert "-->" not in sections["model"]

    @pytest.mark.unit
    def test_plural_markers(self):
        diagram = "classDiagram\n% REPOSITORIES components\n  class Repo\n"
        sections = extract_component_sections(diagram)
        assert list(sections) == ["repository"]
        assert sections["repository"].strip() == "class Repo"

    @pytest.mark.unit
    def test_no_relationships_marker_without_lines(self):
        combined = combine_class_diagrams({"model": "classDiagram\n  class A"})
        assert "relationships" not in combined


class TestExtractRelationshipLines:
    """Tests for extract_relationship_lines."""

    @pytest.mark.unit
    def test_keeps_only_arrows(self):
        text = (
            "```mermaid\nclassDiagram\n"
            "  Service --> Repository : uses\n"
            "  class Service\n"
            "  Adapter ..> Config\n"
            "  %% Model --o Thing\n"
            "  Order --* Item\n```"
        )
        assert extract_relationship_lines(text) == [
            "Service --> Repository : uses",
            "Adapter ..> Config",
            "Order --* Item",
        ]
