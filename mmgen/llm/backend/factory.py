"""Backend factory for creating LLM backends from model specifications.

Provides a unified entry point for creating any supported LLM backend.
"""

from ...config import EnvVar, get_environment
from .base import LLMBackend
from .model_spec import (
    LLMModel,
    LLMSpec,
    LLMProviderType,
    get_default_model,
    get_llm_spec,
)


def create_llm_backend(
    model: str | LLMModel | LLMSpec | None = None,
    *,
    provider: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
    **kwargs,
) -> LLMBackend:
    """Create an LLM backend from a model specification.

    Model resolution: explicit ``model`` > MMGEN_MODEL > default model of
    ``provider`` (or LLM_PROVIDER) > overall default (Anthropic).

    Args:
        model: Model name string, LLMModel enum value, or LLMSpec.
        provider: Provider name used to pick a default model.
        api_key: API key for remote providers. Falls back to environment.
        base_url: Optional custom API endpoint.
        **kwargs: Additional arguments passed to backend constructor
            (e.g., timeout).

    Returns:
        Configured LLMBackend instance.

    Raises:
        ValueError: If model or provider is unknown.
        AuthenticationError: If API key required but not provided.

    Example:
        >>> backend = create_llm_backend()
        >>> backend = create_llm_backend("gpt-4.1-mini", timeout=60.0)
        >>> backend = create_llm_backend(provider="ollama")
    """
    if model is None:
        model = get_environment(EnvVar.MMGEN_MODEL)
    if model is None:
        model = get_default_model(provider or get_environment(EnvVar.LLM_PROVIDER))

    spec = get_llm_spec(model)

    if spec.provider == LLMProviderType.ANTHROPIC:
        from .anthropic import AnthropicBackend

        return AnthropicBackend(api_key=api_key, model=spec.name, **kwargs)

    if spec.provider == LLMProviderType.OPENAI:
        from .openai import OpenAIBackend

        return OpenAIBackend(
            api_key=api_key,
            model=spec.name,
            base_url=base_url,
            **kwargs,
        )

    if spec.provider == LLMProviderType.OLLAMA:
        from .ollama import OllamaBackend

        return OllamaBackend(model=spec.name, base_url=base_url, **kwargs)

    raise ValueError(f"Unsupported provider type: {spec.provider}")


__all__ = ["create_llm_backend"]
