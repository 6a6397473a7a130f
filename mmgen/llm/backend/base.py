"""Abstract base class and error taxonomy for LLM backends.

Defines the interface that all LLM provider implementations must follow,
the async `TextGenerationClient` boundary consumed by the generation
engine, and the exceptions that flow across it.

Backends classify provider failures by HTTP status code rather than by
matching error text: a 429 becomes `RateLimitError` (transient, retried by
`RetryController`), everything else a `PermanentBackendError` subclass.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

RATE_LIMIT_STATUS = 429


@dataclass
class GenerationConfig:
    """Configuration for LLM text generation.

    Attributes:
        temperature: Sampling temperature (0.0-2.0). Lower = more deterministic.
        max_tokens: Maximum tokens to generate in response.
        stop_sequences: Optional sequences that stop generation.
        top_p: Nucleus sampling parameter (0.0-1.0).
        seed: Optional seed for reproducible generation.
    """

    temperature: float = 0.2
    max_tokens: int = 4096
    stop_sequences: list[str] = field(default_factory=list)
    top_p: float = 1.0
    seed: int | None = None


@dataclass
class GenerationResult:
    """Result from LLM text generation.

    Attributes:
        content: Generated text content.
        finish_reason: Why generation stopped ('stop', 'length', 'end_turn').
        usage: Token usage dict (prompt_tokens, completion_tokens, total_tokens).
        model: Model identifier that was used.
        raw_response: Provider-specific raw response for debugging.
    """

    content: str
    finish_reason: str
    usage: dict[str, int]
    model: str
    raw_response: Any = None


class LLMBackend(ABC):
    """Abstract interface for synchronous LLM text generation backends.

    Implementations may use external APIs (Anthropic, OpenAI) or local
    models (Ollama). The generation engine does not call backends directly;
    it goes through `BackendTextClient`, which runs them off the event loop.

    Example:
        >>> backend = AnthropicBackend(model="claude-sonnet-4-5")
        >>> result = backend.generate("Create a class diagram for this code")
        >>> print(result.content)
    """

    @abstractmethod
    def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        """Generate text from a prompt.

        Args:
            prompt: User prompt text.
            system_prompt: Optional system instruction for context.
            config: Generation configuration options.

        Returns:
            GenerationResult with generated content and metadata.

        Raises:
            RateLimitError: If the provider answered with a rate-limit status.
            PermanentBackendError: For every other provider failure.
        """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model identifier.

        Returns:
            String model name (e.g., 'claude-sonnet-4-5', 'gpt-4.1-mini').
        """

    @property
    @abstractmethod
    def provider(self) -> str:
        """Get the provider identifier.

        Returns:
            String provider name (e.g., 'anthropic', 'openai').
        """

    @property
    def name(self) -> str:
        """Get backend identifier for logging.

        Returns:
            String in format 'provider:model'.
        """
        return f"{self.provider}:{self.model_name}"

    @property
    @abstractmethod
    def context_window(self) -> int:
        """Get maximum context window size in tokens."""


@runtime_checkable
class TextGenerationClient(Protocol):
    """Stateless async request/response text completion."""

    async def generate(self, prompt: str) -> str:
        """Return the model's completion for a single prompt."""
        ...


# =============================================================================
# Exceptions
# =============================================================================


class LLMError(Exception):
    """Base exception for LLM backend errors.

    Attributes:
        status_code: HTTP status reported by the provider, if any.
    """

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientBackendError(LLMError):
    """Temporary backend overload. Eligible for retry with backoff."""


class RateLimitError(TransientBackendError):
    """Raised when API rate limit is exceeded.

    Attributes:
        retry_after: Suggested wait time in seconds before retry.
    """

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        *,
        status_code: int | None = RATE_LIMIT_STATUS,
    ):
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class PermanentBackendError(LLMError):
    """Non-retryable backend failure (bad request, auth, server error)."""


class AuthenticationError(PermanentBackendError):
    """Raised when API authentication fails (invalid or missing key)."""


class ContextLengthError(PermanentBackendError):
    """Raised when prompt exceeds the model's context window."""


class InvalidResponseError(PermanentBackendError):
    """Raised when the response is missing or has an unexpected shape."""


class RetryExhaustedError(LLMError):
    """Raised when a transient failure persisted for every allowed attempt.

    Attributes:
        attempts: Number of attempts made.
        last_error: The final underlying error.
    """

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        super().__init__(
            f"{operation} failed after {attempts} attempts: {last_error}",
            status_code=getattr(last_error, "status_code", None),
        )
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


class CancellationError(asyncio.CancelledError):
    """Raised when a backoff sleep or worker is cancelled but the awaiting task is not."""


def error_from_status(
    status_code: int | None,
    message: str,
    *,
    retry_after: float | None = None,
) -> LLMError:
    """Map a provider status code onto the backend error taxonomy.

    Args:
        status_code: HTTP status from the provider, or None if unknown.
        message: Error description.
        retry_after: Server-suggested delay for rate limits.

    Returns:
        The matching LLMError subclass instance (not raised).
    """
    if status_code == RATE_LIMIT_STATUS:
        return RateLimitError(message, retry_after=retry_after)
    if status_code in (401, 403):
        return AuthenticationError(message, status_code=status_code)
    if status_code == 413:
        return ContextLengthError(message, status_code=status_code)
    return PermanentBackendError(message, status_code=status_code)


def retry_after_seconds(error: Exception) -> float | None:
    """Read the retry-after header from a provider SDK error, if present."""
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


__all__ = [
    "LLMBackend",
    "TextGenerationClient",
    "GenerationConfig",
    "GenerationResult",
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
    "retry_after_seconds",
]
