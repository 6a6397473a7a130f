"""LLM backend implementations.

Provides the abstract base class, the error taxonomy, concrete providers
(Anthropic, OpenAI, Ollama) and the async `BackendTextClient` adapter.
"""

from .base import (
    RATE_LIMIT_STATUS,
    AuthenticationError,
    CancellationError,
    ContextLengthError,
    GenerationConfig,
    GenerationResult,
    InvalidResponseError,
    LLMBackend,
    LLMError,
    PermanentBackendError,
    RateLimitError,
    RetryExhaustedError,
    TextGenerationClient,
    TransientBackendError,
    error_from_status,
)
from .client import BackendTextClient
from .factory import create_llm_backend
from .model_spec import (
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OPENAI_MODEL,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    get_default_model,
    get_llm_spec,
)

__all__ = [
    # Base classes and types
    "LLMBackend",
    "TextGenerationClient",
    "BackendTextClient",
    "GenerationConfig",
    "GenerationResult",
    # Exceptions
    "LLMError",
    "TransientBackendError",
    "RateLimitError",
    "PermanentBackendError",
    "ContextLengthError",
    "InvalidResponseError",
    "AuthenticationError",
    "RetryExhaustedError",
    "CancellationError",
    "RATE_LIMIT_STATUS",
    "error_from_status",
    # Model specification
    "LLMProviderType",
    "LLMSpec",
    "LLMModel",
    "get_llm_spec",
    "get_default_model",
    # Defaults
    "DEFAULT_MODEL",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_ANTHROPIC_MODEL",
    "DEFAULT_OLLAMA_MODEL",
    # Factory
    "create_llm_backend",
]
