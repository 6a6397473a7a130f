"""Anthropic Claude backend implementation.

Supports Claude 4.5 and Claude 3.7 models via the Anthropic API.
"""

import logging
from typing import Any

from ...config import EnvVar, get_environment
from .base import (
    AuthenticationError,
    GenerationConfig,
    GenerationResult,
    InvalidResponseError,
    LLMBackend,
    error_from_status,
    retry_after_seconds,
)
from .model_spec import DEFAULT_ANTHROPIC_MODEL, get_llm_spec

logger = logging.getLogger(__name__)


class AnthropicBackend(LLMBackend):
    """Anthropic Claude backend.

    This is the default backend. The SDK's own retry loop is disabled
    (``max_retries=0``) so rate limiting surfaces as `RateLimitError` and is
    handled by `RetryController`.

    Environment:
        ANTHROPIC_API_KEY: API key (required if not passed to constructor).

    Example:
        >>> backend = AnthropicBackend()
        >>> result = backend.generate("Create a Mermaid class diagram for ...")
        >>> print(result.content)
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_ANTHROPIC_MODEL.spec.name,
        timeout: float = 120.0,
        max_retries: int = 0,
    ):
        """Initialize Anthropic backend.

        Args:
            api_key: Anthropic API key. Falls back to ANTHROPIC_API_KEY env var.
            model: Model name (claude-sonnet-4-5, claude-haiku-4-5, etc.).
            timeout: Request timeout in seconds.
            max_retries: SDK-level retries. Keep at 0 to let the engine retry.

        Raises:
            AuthenticationError: If no API key available.
        """
        self._api_key = api_key or get_environment(EnvVar.ANTHROPIC_API_KEY)
        if not self._api_key:
            raise AuthenticationError(
                "Anthropic API key required. Set ANTHROPIC_API_KEY environment "
                "variable or pass api_key parameter."
            )

        self._spec = get_llm_spec(model)
        self._timeout = timeout
        self._max_retries = max_retries
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize Anthropic client.

        Raises:
            ImportError: If anthropic package not installed.
        """
        if self._client is None:
            try:
                import anthropic

                self._client = anthropic.Anthropic(
                    api_key=self._api_key,
                    timeout=self._timeout,
                    max_retries=self._max_retries,
                )
            except ImportError as e:
                raise ImportError(
                    "anthropic package required. Install with: pip install anthropic"
                ) from e
        return self._client

    @property
    def model_name(self) -> str:
        return self._spec.name

    @property
    def provider(self) -> str:
        return "anthropic"

    @property
    def context_window(self) -> int:
        return self._spec.context_window

    def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        """Generate text using the Anthropic Messages API.

        Raises:
            RateLimitError: On HTTP 429.
            PermanentBackendError: For any other API failure.
            InvalidResponseError: If the response carries no text block.
        """
        config = config or GenerationConfig()
        client = self._get_client()

        kwargs: dict[str, Any] = {
            "model": self._spec.name,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
        }

        if system_prompt:
            kwargs["system"] = system_prompt

        if config.stop_sequences:
            kwargs["stop_sequences"] = config.stop_sequences

        try:
            response = client.messages.create(**kwargs)
        except Exception as e:
            self._handle_error(e)
            raise

        text_blocks = [
            block.text for block in response.content if getattr(block, "text", None)
        ]
        if not text_blocks:
            raise InvalidResponseError("Anthropic response contained no text")

        return GenerationResult(
            content="".join(text_blocks),
            finish_reason=response.stop_reason or "unknown",
            usage={
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": (
                    response.usage.input_tokens + response.usage.output_tokens
                ),
            },
            model=response.model,
            raw_response=response,
        )

    def _handle_error(self, error: Exception) -> None:
        """Convert provider errors to the backend error taxonomy.

        Raises:
            RateLimitError: For status 429.
            PermanentBackendError: For everything else.
        """
        status_code = getattr(error, "status_code", None)
        logger.debug("Anthropic call failed (status=%s): %s", status_code, error)
        raise error_from_status(
            status_code, str(error), retry_after=retry_after_seconds(error)
        ) from error


__all__ = ["AnthropicBackend"]
