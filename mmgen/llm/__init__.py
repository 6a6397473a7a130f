"""LLM integration layer for diagram generation.

This module provides multi-provider LLM support and the engine that turns
model output into validated Mermaid diagrams.

Main components:
- GenerationOrchestrator: Concurrent generate/validate/repair jobs
- RepairLoop: Validate -> repair -> re-validate convergence loop
- RetryController: Exponential backoff on rate limiting
- LLMBackend: Abstract interface for LLM providers
- create_llm_backend: Factory function for creating backends

Supported providers:
- Anthropic (Claude 4.5, Claude 3.7)
- OpenAI (GPT-4.1)
- Ollama (local models)

Example:
    >>> from mmgen.llm import BackendTextClient, GenerationOrchestrator, GenerationJob
    >>> client = BackendTextClient(create_llm_backend())
    >>> batch = await GenerationOrchestrator(client).generate_all(
    ...     [GenerationJob("main.go", code)]
    ... )

    >>> # With specific model
    >>> from mmgen.llm import create_llm_backend, LLMModel
    >>> backend = create_llm_backend(LLMModel.GPT_4_1_MINI)
"""

from .backend import (
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OPENAI_MODEL,
    AuthenticationError,
    BackendTextClient,
    CancellationError,
    ContextLengthError,
    GenerationConfig,
    GenerationResult,
    InvalidResponseError,
    LLMBackend,
    LLMError,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    PermanentBackendError,
    RateLimitError,
    RetryExhaustedError,
    TextGenerationClient,
    TransientBackendError,
    create_llm_backend,
    get_llm_spec,
)
from .generator import (
    BatchResult,
    GenerationJob,
    GenerationOrchestrator,
    GenerationStats,
    JobResult,
    PartialBatchFailure,
    RepairLoop,
    RepairOutcome,
    RepairState,
    RetryConfig,
    RetryController,
    ValidationExhaustedError,
)

__all__ = [
    # Main API
    "GenerationOrchestrator",
    "RepairLoop",
    "RetryController",
    "create_llm_backend",
    # Generator types
    "GenerationJob",
    "JobResult",
    "BatchResult",
    "GenerationStats",
    "RepairOutcome",
    "RepairState",
    "RetryConfig",
    # Backend types
    "LLMBackend",
    "TextGenerationClient",
    "BackendTextClient",
    "GenerationConfig",
    "GenerationResult",
    # Model specification
    "LLMProviderType",
    "LLMSpec",
    "LLMModel",
    "get_llm_spec",
    # Defaults
    "DEFAULT_MODEL",
    "DEFAULT_ANTHROPIC_MODEL",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_OLLAMA_MODEL",
    # Exceptions
    "LLMError",
    "TransientBackendError",
    "RateLimitError",
    "PermanentBackendError",
    "AuthenticationError",
    "ContextLengthError",
    "InvalidResponseError",
    "RetryExhaustedError",
    "CancellationError",
    "ValidationExhaustedError",
    "PartialBatchFailure",
]
