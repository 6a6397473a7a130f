"""OpenAI GPT backend implementation.

Supports GPT-4.1 models via the OpenAI Chat Completions API.
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
from .model_spec import DEFAULT_OPENAI_MODEL, get_llm_spec

logger = logging.getLogger(__name__)


class OpenAIBackend(LLMBackend):
    """OpenAI GPT backend.

    Environment:
        OPENAI_API_KEY: API key (required if not passed to constructor).

    Example:
        >>> backend = OpenAIBackend(model="gpt-4.1")
        >>> result = backend.generate("Create a Mermaid flowchart for ...")
        >>> print(result.content)
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_OPENAI_MODEL.spec.name,
        base_url: str | None = None,
        timeout: float = 120.0,
        max_retries: int = 0,
    ):
        """Initialize OpenAI backend.

        Args:
            api_key: OpenAI API key. Falls back to OPENAI_API_KEY env var.
            model: Model name (gpt-4.1, gpt-4.1-mini).
            base_url: Optional custom API endpoint.
            timeout: Request timeout in seconds.
            max_retries: SDK-level retries. Keep at 0 to let the engine retry.

        Raises:
            AuthenticationError: If no API key available.
        """
        self._api_key = api_key or get_environment(EnvVar.OPENAI_API_KEY)
        if not self._api_key:
            raise AuthenticationError(
                "OpenAI API key required. Set OPENAI_API_KEY environment "
                "variable or pass api_key parameter."
            )

        self._spec = get_llm_spec(model)
        self._base_url = base_url
        self._timeout = timeout
        self._max_retries = max_retries
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize OpenAI client.

        Raises:
            ImportError: If openai package not installed.
        """
        if self._client is None:
            try:
                from openai import OpenAI

                self._client = OpenAI(
                    api_key=self._api_key,
                    base_url=self._base_url,
                    timeout=self._timeout,
                    max_retries=self._max_retries,
                )
            except ImportError as e:
                raise ImportError(
                    "openai package required. Install with: pip install openai"
                ) from e
        return self._client

    @property
    def model_name(self) -> str:
        """Get the model identifier."""
        return self._spec.name

    @property
    def provider(self) -> str:
        """Get the provider identifier."""
        return "openai"

    @property
    def context_window(self) -> int:
        """Get maximum context window size."""
        return self._spec.context_window

    def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        """Generate text using OpenAI API.

        Args:
            prompt: User prompt text.
            system_prompt: Optional system instruction.
            config: Generation configuration.

        Returns:
            GenerationResult with content and metadata.

        Raises:
            RateLimitError: On HTTP 429.
            PermanentBackendError: For any other API failure.
        """
        config = config or GenerationConfig()
        client = self._get_client()

        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {
            "model": self._spec.name,
            "messages": messages,
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "top_p": config.top_p,
        }

        if config.stop_sequences:
            kwargs["stop"] = config.stop_sequences

        if config.seed is not None:
            kwargs["seed"] = config.seed

        try:
            response = client.chat.completions.create(**kwargs)
        except Exception as e:
            self._handle_error(e)
            raise  # Re-raise if _handle_error doesn't raise

        if not response.choices:
            raise InvalidResponseError("OpenAI response contained no choices")

        choice = response.choices[0]
        usage = response.usage
        return GenerationResult(
            content=choice.message.content or "",
            finish_reason=choice.finish_reason or "unknown",
            usage={
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
                "total_tokens": usage.total_tokens if usage else 0,
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
        logger.debug("OpenAI call failed (status=%s): %s", status_code, error)
        raise error_from_status(
            status_code, str(error), retry_after=retry_after_seconds(error)
        ) from error


__all__ = ["OpenAIBackend"]
