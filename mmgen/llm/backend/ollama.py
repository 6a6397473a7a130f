"""Ollama local backend implementation.

Supports local LLM inference via Ollama server (Qwen3, Llama 3.2, ...).
"""

import logging
from typing import Any

from ...config import EnvVar, get_environment
from .base import (
    GenerationConfig,
    GenerationResult,
    LLMBackend,
    PermanentBackendError,
    error_from_status,
)
from .model_spec import DEFAULT_OLLAMA_MODEL, get_llm_spec

logger = logging.getLogger(__name__)


class OllamaBackend(LLMBackend):
    """Ollama local inference backend.

    Uses local Ollama server for LLM inference. No API key required.
    Ollama must be running locally with the desired model pulled.

    Example:
        >>> backend = OllamaBackend(model="llama3.2")
        >>> result = backend.generate("Create a Mermaid sequence diagram for ...")
        >>> print(result.content)

    Setup:
        1. Install Ollama: https://ollama.com
        2. Pull a model: `ollama pull qwen3`
        3. Ollama server runs automatically on localhost:11434
    """

    def __init__(
        self,
        model: str = DEFAULT_OLLAMA_MODEL.spec.name,
        base_url: str | None = None,
        timeout: float = 300.0,
    ):
        """Initialize Ollama backend.

        Args:
            model: Model name (qwen3, llama3.2, etc.).
            base_url: Ollama server URL. Falls back to OLLAMA_HOST.
            timeout: Request timeout in seconds (local inference can be slow).
        """
        self._spec = get_llm_spec(model)
        self._base_url = base_url or get_environment(EnvVar.OLLAMA_HOST)
        self._timeout = timeout
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize Ollama client.

        Raises:
            ImportError: If ollama package not installed.
        """
        if self._client is None:
            try:
                import ollama

                self._client = ollama.Client(host=self._base_url, timeout=self._timeout)
            except ImportError as e:
                raise ImportError(
                    "ollama package required. Install with: pip install ollama"
                ) from e
        return self._client

    @property
    def model_name(self) -> str:
        return self._spec.name

    @property
    def provider(self) -> str:
        return "ollama"

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
        """Generate text using Ollama.

        Raises:
            RateLimitError: If the server answers 429.
            PermanentBackendError: Model missing, server down, or other failure.
        """
        config = config or GenerationConfig()
        client = self._get_client()

        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        options: dict[str, Any] = {
            "temperature": config.temperature,
            "num_predict": config.max_tokens,
            "top_p": config.top_p,
        }

        if config.seed is not None:
            options["seed"] = config.seed
        if config.stop_sequences:
            options["stop"] = config.stop_sequences

        try:
            response = client.chat(
                model=self._spec.name, messages=messages, options=options
            )
        except ConnectionError as e:
            raise PermanentBackendError(
                f"Cannot connect to Ollama server at {self._base_url}. "
                "Ensure Ollama is running: https://ollama.com"
            ) from e
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            if status_code == 404:
                raise PermanentBackendError(
                    f"Model '{self._spec.name}' not found. "
                    f"Pull it first with: ollama pull {self._spec.name}",
                    status_code=status_code,
                ) from e
            raise error_from_status(status_code, str(e)) from e

        prompt_tokens = response.get("prompt_eval_count") or 0
        completion_tokens = response.get("eval_count") or 0

        return GenerationResult(
            content=response.get("message", {}).get("content", ""),
            finish_reason=response.get("done_reason") or "stop",
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
            model=self._spec.name,
            raw_response=response,
        )


__all__ = ["OllamaBackend"]
