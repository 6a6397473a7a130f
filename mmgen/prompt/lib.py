"""PromptBuilder for Mermaid generation, repair and explanation prompts.

Every request sent to the text model is built here, so that the wording
lives in one place and the engine only deals in prompt strings.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from ..diagram import DiagramKind, strip_fence
from ..validation import ValidationResult, validation_context

ONLY_DIAGRAM = (
    "Provide only the Mermaid diagram syntax without any explanation "
    "or markdown formatting."
)

_KIND_INSTRUCTIONS: dict[DiagramKind, str] = {
    DiagramKind.BASIC: (
        "Please create a basic Mermaid diagram that shows the main components "
        "and their relationships from this code:"
    ),
    DiagramKind.SEQUENCE: (
        "Please create a Mermaid sequence diagram that shows the flow of "
        "execution and method calls from this code:"
    ),
    DiagramKind.CLASS: (
        "Please create a Mermaid class diagram that shows the type definitions, "
        "their fields, methods, and relationships from this code:"
    ),
    DiagramKind.FLOWCHART: (
        "Please create a Mermaid flowchart diagram that shows the control flow "
        "from this code:"
    ),
    DiagramKind.PROJECT: (
        "Please create a Mermaid diagram that shows the overall project "
        "architecture based on this code. Include all major components and "
        "their relationships:"
    ),
    DiagramKind.CONFIG: (
        "Please create a Mermaid diagram that shows how configuration is "
        "structured and used throughout the application based on this code:"
    ),
    DiagramKind.ADAPTERS: (
        "Please create a Mermaid diagram that shows all inbound and outbound "
        "communications in the application, focusing on adapter components "
        "and their interactions with external systems:"
    ),
}

_PROJECT_INSTRUCTIONS: dict[DiagramKind, str] = {
    DiagramKind.SEQUENCE: (
        "Please create a sequence diagram showing the interactions between all "
        "components (services, repositories, adapters) in this project. Focus "
        "on the flow of calls between different components and how they "
        "interact:"
    ),
    DiagramKind.CONFIG: (
        "Please create a diagram showing how configuration is structured and "
        "accessed throughout the application. Show config types and how other "
        "components interact with them:"
    ),
    DiagramKind.ADAPTERS: (
        "Please create a diagram showing all inbound and outbound "
        "communications in the application. Focus on adapter components and "
        "how they interact with external systems and internal components:"
    ),
}


@dataclass
class PromptConfig:
    """Configuration for prompt building.

    Attributes:
        language: Code fence language tag for embedded source.
        max_source_chars: Source longer than this is truncated.
    """

    language: str = "go"
    max_source_chars: int = 200_000


@dataclass
class PromptContext:
    """Context for a generated prompt.

    Tracks what went into the prompt for debugging/analysis.

    Attributes:
        kind: Diagram kind requested.
        source_chars: Characters of source code embedded.
        truncated: Whether the source had to be shortened.
        total_tokens_estimate: Rough token count estimate.
    """

    kind: DiagramKind
    source_chars: int = 0
    truncated: bool = False
    total_tokens_estimate: int = 0


class PromptBuilder:
    """Builds the prompts sent to the text generation backend.

    Example:
        >>> builder = PromptBuilder()
        >>> prompt = builder.build(code, DiagramKind.SEQUENCE)
        >>> repair = builder.build_repair_prompt(diagram, validation, 2, 3)
    """

    def __init__(self, config: PromptConfig | None = None):
        self._config = config or PromptConfig()

    def build(self, code: str, kind: DiagramKind | str = DiagramKind.BASIC) -> str:
        """Build a diagram generation prompt for a single source unit."""
        prompt, _ = self.build_with_context(code, kind)
        return prompt

    def build_with_context(
        self, code: str, kind: DiagramKind | str = DiagramKind.BASIC
    ) -> tuple[str, PromptContext]:
        """Build a generation prompt and return context metadata.

        Args:
            code: Source code to diagram.
            kind: Diagram kind; unknown names fall back to basic.

        Returns:
            Tuple of (prompt_string, PromptContext).
        """
        kind = DiagramKind.parse(kind)
        source, truncated = self._clip(code)
        prompt = self._compose(_KIND_INSTRUCTIONS[kind], source)
        context = PromptContext(
            kind=kind,
            source_chars=len(source),
            truncated=truncated,
            total_tokens_estimate=len(prompt) // 4,  # Rough estimate
        )
        return prompt, context

    def build_component_prompt(
        self,
        code: str,
        component_type: str,
        component_name: str,
        kind: DiagramKind | str = DiagramKind.CLASS,
    ) -> str:
        """Prompt for one named component (e.g. service ``orders``)."""
        kind = DiagramKind.parse(kind)
        instruction = (
            f"Please create a {kind.value} Mermaid diagram for the "
            f"{component_type} '{component_name}' from this code:"
        )
        return self._compose(instruction, self._clip(code)[0])

    def build_project_prompt(self, code: str, kind: DiagramKind | str) -> str:
        """Prompt for a whole-project map built from one request."""
        kind = DiagramKind.parse(kind)
        instruction = _PROJECT_INSTRUCTIONS.get(
            kind,
            "Please create a diagram showing the overall architecture of this "
            "project based on the following code:",
        )
        return self._compose(instruction, self._clip(code)[0])

    def build_component_class_prompt(self, code: str, component_type: str) -> str:
        """Prompt for the class diagram of every component of one type."""
        instruction = (
            f"Please create a class diagram for the '{component_type}' "
            "components in this project. Show their types, interfaces, "
            "methods, and relationships:"
        )
        return self._compose(instruction, self._clip(code)[0])

    def build_relationship_prompt(self, diagrams: Mapping[str, str]) -> str:
        """Prompt asking for relationships between per-component diagrams."""
        types = ", ".join(diagrams) or "none"
        sections = "\n\n".join(
            f"%% {component} components\n{strip_fence(diagram)}"
            for component, diagram in diagrams.items()
        )
        return (
            "Based on the following component definitions, please generate "
            f"only the relationships between different component types ({types}). "
            "Return only Mermaid class diagram relationship syntax "
            "(e.g., 'ClassA --> ClassB : uses'):\n\n"
            f"{sections}\n"
        )

    def build_repair_prompt(
        self,
        artifact: str,
        validation: ValidationResult,
        attempt: int = 1,
        max_attempts: int = 1,
    ) -> str:
        """Prompt asking the model to fix a diagram that failed validation.

        Args:
            artifact: The diagram to fix.
            validation: Its validation result (diagnostics are embedded as JSON).
            attempt: 1-based repair attempt number.
            max_attempts: Repair budget; quoted back to the model on retries.
        """
        retry_info = ""
        if attempt > 1:
            retry_info = (
                f"\nThis is fix attempt {attempt}/{max_attempts}. "
                "Previous attempts still had errors."
            )
        return (
            "You are a Mermaid diagram syntax expert. Fix the following Mermaid "
            "diagram that has syntax errors.\n"
            f"Here are the errors identified by the validator:{retry_info}\n\n"
            f"{validation_context(validation)}\n\n"
            "Here is the diagram to fix:\n\n"
            f"{strip_fence(artifact)}\n\n"
            "Please provide a complete, fixed version of the diagram that "
            "resolves all syntax errors.\n"
            "Only respond with the corrected Mermaid diagram code, without any "
            "explanations or markdown formatting.\n"
        )

    def build_explanation_prompt(self, validation: ValidationResult) -> str:
        """Prompt asking for a friendly explanation of validation errors."""
        return (
            "You are a Mermaid diagram syntax expert. Explain the following "
            "errors in a Mermaid diagram in a clear, user-friendly way.\n"
            "Here are the errors identified by the validator:\n\n"
            f"{validation_context(validation)}\n\n"
            "Here is the diagram with errors:\n\n"
            f"{validation.content}\n\n"
            "Please provide a detailed explanation of what's wrong with the "
            "diagram and how to fix each error.\n"
            "Use a friendly, educational tone as if you're teaching someone "
            "about Mermaid syntax.\n"
        )

    def _clip(self, code: str) -> tuple[str, bool]:
        limit = self._config.max_source_chars
        if len(code) <= limit:
            return code, False
        return code[:limit] + "\n// ... truncated ...", True

    def _compose(self, instruction: str, code: str) -> str:
        return (
            f"{instruction}\n\n"
            f"```{self._config.language}\n{code}\n```\n\n"
            f"{ONLY_DIAGRAM}"
        )


__all__ = [
    "ONLY_DIAGRAM",
    "PromptBuilder",
    "PromptConfig",
    "PromptContext",
]
