"""LLM module test fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from mmgen.llm.backend.base import GenerationResult, LLMBackend

if TYPE_CHECKING:
    from mmgen.llm.backend.base import GenerationConfig


# =============================================================================
# Mock LLM Backend
# =============================================================================


class MockLLMBackend(LLMBackend):
    """Mock LLM backend for testing without API keys.

    Provides deterministic Mermaid responses based on prompt keywords for
    testing the full generation pipeline through `BackendTextClient`.
    """

    MOCK_SEQUENCE = """```mermaid
sequenceDiagram
  participant Handler
  participant OrderService
  Handler->>OrderService: Create(order)
  OrderService-->>Handler: id
```"""

    MOCK_CLASS = """```mermaid
classDiagram
  class OrderService {
    +Create(order Order) error
  }
```"""

    MOCK_FLOWCHART = """```mermaid
flowchart TD
  A[Receive request] --> B{Valid?}
  B -->|yes| C(Store)
  B -->|no| D(Reject)
```"""

    MOCK_FIXED = "graph TD\n  A[Fixed] --> B"

    def __init__(self):
        self.prompts: list[str] = []

    @property
    def model_name(self) -> str:
        """Return mock model name."""
        return "mock-model-v1"

    @property
    def provider(self) -> str:
        """Return mock provider name."""
        return "mock"

    @property
    def context_window(self) -> int:
        """Return mock context window size."""
        return 4096

    def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        """Generate mock response based on prompt keywords.

        Args:
            prompt: User prompt.
            system_prompt: Optional system prompt (ignored).
            config: Generation config (ignored).

        Returns:
            Mock GenerationResult with a Mermaid diagram.
        """
        self.prompts.append(prompt)
        query = prompt.lower()

        if "fix the following" in query:
            content = self.MOCK_FIXED
        elif "sequence diagram" in query:
            content = self.MOCK_SEQUENCE
        elif "class diagram" in query:
            content = self.MOCK_CLASS
        else:
            content = self.MOCK_FLOWCHART

        return GenerationResult(
            content=content,
            finish_reason="stop",
            model=self.model_name,
            usage={"total_tokens": 100},
        )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_llm_backend() -> MockLLMBackend:
    """Create a mock LLM backend for testing.

    Returns:
        MockLLMBackend instance.
    """
    return MockLLMBackend()


@pytest.fixture
def mock_api_key() -> str:
    """Provide a mock API key for testing."""
    return "test-api-key-12345"
