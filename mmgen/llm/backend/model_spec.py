"""Model specification system for LLM backends.

Provides a registry of supported LLM models with their context windows
and provider information.
"""

from dataclasses import dataclass
from enum import Enum


class LLMProviderType(Enum):
    """Available LLM backend providers."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OLLAMA = "ollama"


@dataclass(frozen=True)
class LLMSpec:
    """Specification for an LLM model.

    Attributes:
        name: Model identifier (e.g., 'claude-sonnet-4-5', 'gpt-4.1-mini').
        provider: Backend provider type.
        context_window: Maximum context size in tokens.
        max_output_tokens: Maximum generation tokens.
        description: Human-readable description.
        api_key_env_var: Environment variable name for API key.
        base_url: Optional custom API endpoint.
    """

    name: str
    provider: LLMProviderType
    context_window: int
    max_output_tokens: int
    description: str = ""
    api_key_env_var: str = ""
    base_url: str | None = None

    @property
    def requires_api_key(self) -> bool:
        """Check if model needs an API key."""
        return bool(self.api_key_env_var)

    @property
    def is_local(self) -> bool:
        """Check if model runs locally."""
        return self.provider == LLMProviderType.OLLAMA


class LLMModel(Enum):
    """Registry of available LLM models."""

    # === Anthropic Claude Models ===
    CLAUDE_SONNET_4_5 = LLMSpec(
        name="claude-sonnet-4-5",
        provider=LLMProviderType.ANTHROPIC,
        context_window=200000,
        max_output_tokens=64000,
        description="Anthropic best balanced for coding and agents",
        api_key_env_var="ANTHROPIC_API_KEY",
    )

    CLAUDE_HAIKU_4_5 = LLMSpec(
        name="claude-haiku-4-5",
        provider=LLMProviderType.ANTHROPIC,
        context_window=200000,
        max_output_tokens=64000,
        description="Anthropic fastest model",
        api_key_env_var="ANTHROPIC_API_KEY",
    )

    CLAUDE_3_7_SONNET = LLMSpec(
        name="claude-3-7-sonnet-20250219",
        provider=LLMProviderType.ANTHROPIC,
        context_window=200000,
        max_output_tokens=8192,
        description="Anthropic Claude 3.7 Sonnet",
        api_key_env_var="ANTHROPIC_API_KEY",
    )

    # === OpenAI Models ===
    GPT_4_1 = LLMSpec(
        name="gpt-4.1",
        provider=LLMProviderType.OPENAI,
        context_window=128000,
        max_output_tokens=16384,
        description="OpenAI developer favorite for coding",
        api_key_env_var="OPENAI_API_KEY",
    )

    GPT_4_1_MINI = LLMSpec(
        name="gpt-4.1-mini",
        provider=LLMProviderType.OPENAI,
        context_window=128000,
        max_output_tokens=16384,
        description="OpenAI fast and efficient small model",
        api_key_env_var="OPENAI_API_KEY",
    )

    # === Ollama Local Models ===
    OLLAMA_QWEN3 = LLMSpec(
        name="qwen3",
        provider=LLMProviderType.OLLAMA,
        context_window=32768,
        max_output_tokens=8192,
        description="Qwen3 via Ollama (local)",
        base_url="http://localhost:11434",
    )

    OLLAMA_LLAMA3_2 = LLMSpec(
        name="llama3.2",
        provider=LLMProviderType.OLLAMA,
        context_window=131072,
        max_output_tokens=8192,
        description="Llama 3.2 via Ollama (local)",
        base_url="http://localhost:11434",
    )

    @property
    def spec(self) -> LLMSpec:
        """Get the LLMSpec for this model."""
        return self.value

    @classmethod
    def by_name(cls, name: str) -> "LLMModel | None":
        """Look up model by name string.

        Args:
            name: Model name to find.

        Returns:
            LLMModel if found, None otherwise.
        """
        for model in cls:
            if model.spec.name == name:
                return model
        return None

    @classmethod
    def list_by_provider(cls, provider: LLMProviderType) -> list["LLMModel"]:
        """Get all models for a specific provider."""
        return [m for m in cls if m.spec.provider == provider]


# Default models for each provider
DEFAULT_ANTHROPIC_MODEL = LLMModel.CLAUDE_SONNET_4_5
DEFAULT_OPENAI_MODEL = LLMModel.GPT_4_1_MINI
DEFAULT_OLLAMA_MODEL = LLMModel.OLLAMA_QWEN3

# Overall default
DEFAULT_MODEL = DEFAULT_ANTHROPIC_MODEL

_PROVIDER_DEFAULTS = {
    LLMProviderType.ANTHROPIC: DEFAULT_ANTHROPIC_MODEL,
    LLMProviderType.OPENAI: DEFAULT_OPENAI_MODEL,
    LLMProviderType.OLLAMA: DEFAULT_OLLAMA_MODEL,
}


def get_llm_spec(model: str | LLMModel | LLMSpec) -> LLMSpec:
    """Resolve a model reference to its LLMSpec.

    Args:
        model: Can be a model name string, LLMModel enum, or LLMSpec.

    Returns:
        The resolved LLMSpec.

    Raises:
        ValueError: If model name is not found.
    """
    if isinstance(model, LLMSpec):
        return model
    if isinstance(model, LLMModel):
        return model.spec
    found = LLMModel.by_name(model)
    if found:
        return found.spec
    raise ValueError(f"Unknown model: {model}")


def get_default_model(provider: str | LLMProviderType | None = None) -> LLMModel:
    """Get the default model for a provider.

    Args:
        provider: Provider name or type. None returns the overall default.

    Raises:
        ValueError: If provider name is not recognized.
    """
    if provider is None:
        return DEFAULT_MODEL
    if isinstance(provider, str):
        try:
            provider = LLMProviderType(provider.lower())
        except ValueError as e:
            raise ValueError(f"Unknown provider: {provider}") from e
    return _PROVIDER_DEFAULTS[provider]


__all__ = [
    "LLMProviderType",
    "LLMSpec",
    "LLMModel",
    "DEFAULT_ANTHROPIC_MODEL",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_OLLAMA_MODEL",
    "DEFAULT_MODEL",
    "get_llm_spec",
    "get_default_model",
]
