"""Tests for PromptBuilder module."""

import pytest

from ..diagram import DiagramKind
from ..validation import validate
from .lib import ONLY_DIAGRAM, PromptBuilder, PromptConfig, PromptContext

SAMPLE_CODE = "type OrderService struct{}\n\nfunc (s *OrderService) Place() error { return nil }"


class TestPromptConfig:
    """Tests for PromptConfig dataclass."""

    @pytest.mark.unit
    def test_default_config(self):
        config = PromptConfig()
        assert config.language == "go"
        assert config.max_source_chars == 200_000


class TestPromptBuilder:
    """Tests for generation prompts."""

    @pytest.mark.unit
    def test_build_embeds_code_and_instruction(self):
        """Generation prompt carries the code block and output instruction."""
        prompt = PromptBuilder().build(SAMPLE_CODE, DiagramKind.SEQUENCE)
        assert "sequence diagram" in prompt
        assert f"```go\n{SAMPLE_CODE}\n```" in prompt
        assert prompt.endswith(ONLY_DIAGRAM)

    @pytest.mark.unit
    @pytest.mark.parametrize("kind", list(DiagramKind))
    def test_every_kind_has_a_prompt(self, kind):
        assert "Mermaid" in PromptBuilder().build(SAMPLE_CODE, kind)

    @pytest.mark.unit
    def test_unknown_kind_uses_basic(self):
        builder = PromptBuilder()
        assert builder.build(SAMPLE_CODE, "bogus") == builder.build(
            SAMPLE_CODE, DiagramKind.BASIC
        )

    @pytest.mark.unit
    def test_build_with_context(self):
        """Context records kind and source size."""
        prompt, context = PromptBuilder().build_with_context(SAMPLE_CODE, "class")
        assert isinstance(context, PromptContext)
        assert context.kind is DiagramKind.CLASS
        assert context.source_chars == len(SAMPLE_CODE)
        assert not context.truncated
        assert context.total_tokens_estimate == len(prompt) // 4

    @pytest.mark.unit
    def test_long_source_truncated(self):
        builder = PromptBuilder(PromptConfig(max_source_chars=10))
        _, context = builder.build_with_context("x" * 50)
        assert context.truncated

    @pytest.mark.unit
    def test_custom_language(self):
        prompt = PromptBuilder(PromptConfig(language="python")).build("pass")
        assert "```python\npass\n```" in prompt

    @pytest.mark.unit
    def test_component_prompt(self):
        prompt = PromptBuilder().build_component_prompt(
            SAMPLE_CODE, "service", "orders", "class"
        )
        assert "class Mermaid diagram for the service 'orders'" in prompt

    @pytest.mark.unit
    def test_project_prompt_specific_and_fallback(self):
        builder = PromptBuilder()
        assert "interactions between all components" in builder.build_project_prompt(
            SAMPLE_CODE, DiagramKind.SEQUENCE
        )
        assert "overall architecture" in builder.build_project_prompt(
            SAMPLE_CODE, DiagramKind.FLOWCHART
        )

    @pytest.mark.unit
    def test_component_class_prompt(self):
        prompt = PromptBuilder().build_component_class_prompt(SAMPLE_CODE, "repository")
        assert "'repository' components" in prompt


class TestRepairPrompts:
    """Tests for repair, explanation and relationship prompts."""

    @pytest.fixture
    def broken(self):
        return validate("```mermaid\ngraph TD\n  A( --> B\n```")

    @pytest.mark.unit
    def test_first_attempt_has_no_retry_info(self, broken):
        prompt = PromptBuilder().build_repair_prompt(broken.raw_artifact, broken, 1, 3)
        assert "fix attempt" not in prompt
        assert "Mismatched parentheses" in prompt
        assert "graph TD\n  A( --> B" in prompt
        assert "```mermaid" not in prompt

    @pytest.mark.unit
    def test_retry_info_on_later_attempts(self, broken):
        prompt = PromptBuilder().build_repair_prompt(broken.raw_artifact, broken, 2, 3)
        assert "This is fix attempt 2/3. Previous attempts still had errors." in prompt

    @pytest.mark.unit
    def test_explanation_prompt(self, broken):
        prompt = PromptBuilder().build_explanation_prompt(broken)
        assert "Explain the following errors" in prompt
        assert "graph TD\n  A( --> B" in prompt

    @pytest.mark.unit
    def test_relationship_prompt_lists_components(self):
        prompt = PromptBuilder().build_relationship_prompt(
            {"service": "classDiagram\n  class S", "model": "classDiagram\n  class M"}
        )
        assert "(service, model)" in prompt
        assert "%% service components\nclassDiagram\n  class S" in prompt
