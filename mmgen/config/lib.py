"""Centralized environment configuration management for mmgen.

Provides a unified interface for all environment variables with:
- Single `get_environment()` function for all configuration
- Type-safe enum with metadata (default, type, description)
- Consistent resolution: override > environment > default

Generation budgets are not read ad hoc by the engine. They are resolved
once by `load_settings()` into a `GenerationSettings` value that callers
pass to the retry controller, repair loop and orchestrator.

Example:
    >>> from mmgen.config import EnvVar, get_environment, load_settings
    >>>
    >>> retries = get_environment(EnvVar.MERMAID_FIX_RETRIES)  # Returns int: 3
    >>> delay = get_environment(EnvVar.MMGEN_RETRY_BASE_DELAY)  # Returns float: 2.0
    >>>
    >>> settings = load_settings(max_concurrency=4)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, overload

import httpx

# =============================================================================
# Environment Variable Configuration
# =============================================================================


@dataclass(frozen=True)
class EnvConfig:
    """Metadata for an environment variable.

    Attributes:
        name: Environment variable name (e.g., "MERMAID_FIX_RETRIES").
        default: Default value if not set in environment.
        var_type: Python type for value conversion (str, int, float, bool, Path).
        description: Human-readable description.
        category: Grouping category for documentation.
        positive: Reject zero and negative numbers in favor of the default.
    """

    name: str
    default: Any
    var_type: type
    description: str = ""
    category: str = "general"
    positive: bool = False


class EnvVar(Enum):
    """All environment variables used by mmgen.

    Each member contains an EnvConfig with name, default, type, and description.
    Use with `get_environment()` for type-safe access.

    Categories:
        - llm: LLM provider API keys and model selection
        - service: Local service URLs
        - generation: Retry, repair and concurrency budgets
        - source: Source tree location
        - output: Training log location
    """

    # -------------------------------------------------------------------------
    # LLM Providers
    # -------------------------------------------------------------------------
    ANTHROPIC_API_KEY = EnvConfig(
        name="ANTHROPIC_API_KEY",
        default=None,
        var_type=str,
        description="Anthropic API key for Claude models",
        category="llm",
    )
    OPENAI_API_KEY = EnvConfig(
        name="OPENAI_API_KEY",
        default=None,
        var_type=str,
        description="OpenAI API key for GPT models",
        category="llm",
    )
    LLM_PROVIDER = EnvConfig(
        name="LLM_PROVIDER",
        default=None,
        var_type=str,
        description="Preferred LLM provider (anthropic, openai, ollama)",
        category="llm",
    )
    MMGEN_MODEL = EnvConfig(
        name="MMGEN_MODEL",
        default=None,
        var_type=str,
        description="Model name used for generation and repair",
        category="llm",
    )

    # -------------------------------------------------------------------------
    # Service Configuration
    # -------------------------------------------------------------------------
    OLLAMA_HOST = EnvConfig(
        name="OLLAMA_HOST",
        default="http://localhost:11434",
        var_type=str,
        description="Ollama server URL for local LLM",
        category="service",
    )

    # -------------------------------------------------------------------------
    # Generation Budgets
    # -------------------------------------------------------------------------
    MERMAID_FIX_RETRIES = EnvConfig(
        name="MERMAID_FIX_RETRIES",
        default=3,
        var_type=int,
        description="Maximum repair attempts for an invalid diagram",
        category="generation",
        positive=True,
    )
    MMGEN_RETRY_ATTEMPTS = EnvConfig(
        name="MMGEN_RETRY_ATTEMPTS",
        default=3,
        var_type=int,
        description="Maximum attempts per backend call on rate limiting",
        category="generation",
        positive=True,
    )
    MMGEN_RETRY_BASE_DELAY = EnvConfig(
        name="MMGEN_RETRY_BASE_DELAY",
        default=2.0,
        var_type=float,
        description="Base backoff delay in seconds (doubles per retry)",
        category="generation",
        positive=True,
    )
    MMGEN_MAX_CONCURRENCY = EnvConfig(
        name="MMGEN_MAX_CONCURRENCY",
        default=2,
        var_type=int,
        description="Maximum concurrent backend calls across all jobs",
        category="generation",
        positive=True,
    )

    # -------------------------------------------------------------------------
    # Filesystem Locations
    # -------------------------------------------------------------------------
    MMGEN_SOURCE_ROOT = EnvConfig(
        name="MMGEN_SOURCE_ROOT",
        default=None,  # Current working directory
        var_type=Path,
        description="Root directory searched for component source files",
        category="source",
    )
    MERMAID_LOG_DIR = EnvConfig(
        name="MERMAID_LOG_DIR",
        default=None,  # Training logs disabled
        var_type=Path,
        description="Directory for repair/validation training logs",
        category="output",
    )


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _parse_bool(value: str) -> bool | None:
    """Parse string to boolean.

    Recognizes: true/false, 1/0, yes/no (case-insensitive).
    Returns None for unrecognized values.
    """
    normalized = value.lower().strip()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    return None


def _convert_value(value: str | None, config: EnvConfig) -> Any:
    """Convert string value to the variable's target type.

    Args:
        value: Raw string value from environment (or None).
        config: Metadata describing target type and default.

    Returns:
        Converted value or default.
    """
    default = config.default
    var_type = config.var_type

    if value is None:
        return default

    if var_type is str:
        return value

    if var_type in (int, float):
        try:
            number = var_type(value)
        except ValueError:
            return default
        if config.positive and number <= 0:
            return default
        return number

    if var_type is bool:
        result = _parse_bool(value)
        return result if result is not None else default

    if var_type is Path:
        return Path(value)

    # Unknown type, return as-is
    return value


# =============================================================================
# Main Interface
# =============================================================================


@overload
def get_environment(env_var: EnvVar, override: int) -> int: ...
@overload
def get_environment(env_var: EnvVar, override: float) -> float: ...
@overload
def get_environment(env_var: EnvVar, override: str) -> str: ...
@overload
def get_environment(env_var: EnvVar, override: Path) -> Path: ...
@overload
def get_environment(env_var: EnvVar, override: None = None) -> Any: ...


def get_environment(env_var: EnvVar, override: Any = None) -> Any:
    """Get environment variable value with type conversion.

    Resolution priority:
        1. Explicit override parameter (highest)
        2. Environment variable value
        3. Default from EnvConfig (lowest)

    Args:
        env_var: Environment variable enum member.
        override: Optional override value (bypasses env lookup).

    Returns:
        Value converted to the appropriate type.

    Example:
        >>> get_environment(EnvVar.MMGEN_MAX_CONCURRENCY)
        2
        >>> get_environment(EnvVar.MMGEN_MAX_CONCURRENCY, override=8)
        8
    """
    config: EnvConfig = env_var.value

    if override is not None:
        return override

    raw_value = os.environ.get(config.name)
    return _convert_value(raw_value, config)


def get_environment_info(env_var: EnvVar) -> EnvConfig:
    """Get metadata for an environment variable.

    Args:
        env_var: Environment variable enum member.

    Returns:
        EnvConfig with name, default, type, and description.
    """
    return env_var.value


def list_environment_variables(category: str | None = None) -> list[EnvVar]:
    """List all environment variables, optionally filtered by category.

    Args:
        category: Filter by category (llm, service, generation, source, output).
                 None returns all variables.

    Returns:
        List of EnvVar enum members.
    """
    if category is None:
        return list(EnvVar)

    return [var for var in EnvVar if var.value.category == category]


# =============================================================================
# Generation Settings
# =============================================================================


@dataclass(frozen=True)
class GenerationSettings:
    """Budgets threaded into the generation engine at construction time.

    Attributes:
        max_fix_retries: Repair attempts per invalid diagram.
        retry_max_attempts: Attempts per backend call under rate limiting.
        retry_base_delay: Base backoff delay in seconds.
        max_concurrency: Shared cap on in-flight backend calls.
    """

    max_fix_retries: int = 3
    retry_max_attempts: int = 3
    retry_base_delay: float = 2.0
    max_concurrency: int = 2

    def __post_init__(self) -> None:
        if self.max_fix_retries < 0:
            raise ValueError("max_fix_retries must be >= 0")
        if self.retry_max_attempts < 1:
            raise ValueError("retry_max_attempts must be >= 1")
        if self.retry_base_delay < 0:
            raise ValueError("retry_base_delay must be >= 0")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")


def load_settings(
    *,
    max_fix_retries: int | None = None,
    retry_max_attempts: int | None = None,
    retry_base_delay: float | None = None,
    max_concurrency: int | None = None,
) -> GenerationSettings:
    """Resolve generation budgets from overrides and the environment.

    Args:
        max_fix_retries: Override for MERMAID_FIX_RETRIES.
        retry_max_attempts: Override for MMGEN_RETRY_ATTEMPTS.
        retry_base_delay: Override for MMGEN_RETRY_BASE_DELAY.
        max_concurrency: Override for MMGEN_MAX_CONCURRENCY.

    Returns:
        Frozen GenerationSettings.
    """
    return GenerationSettings(
        max_fix_retries=get_environment(EnvVar.MERMAID_FIX_RETRIES, max_fix_retries),
        retry_max_attempts=get_environment(
            EnvVar.MMGEN_RETRY_ATTEMPTS, retry_max_attempts
        ),
        retry_base_delay=float(
            get_environment(EnvVar.MMGEN_RETRY_BASE_DELAY, retry_base_delay)
        ),
        max_concurrency=get_environment(EnvVar.MMGEN_MAX_CONCURRENCY, max_concurrency),
    )


def get_source_root(override: Path | str | None = None) -> Path:
    """Get the root directory for component source lookups.

    Resolution: override > MMGEN_SOURCE_ROOT > current working directory.
    """
    if override is not None:
        return Path(override)

    env_path = get_environment(EnvVar.MMGEN_SOURCE_ROOT)
    if env_path:
        return env_path

    return Path.cwd()


def get_available_llm_providers() -> list[str]:
    """Get list of available LLM providers.

    Checks both cloud providers (by API key) and Ollama (by availability).

    Returns:
        List of provider names (e.g., ["anthropic", "ollama"]).
    """
    providers = []

    if get_environment(EnvVar.ANTHROPIC_API_KEY):
        providers.append("anthropic")
    if get_environment(EnvVar.OPENAI_API_KEY):
        providers.append("openai")

    ollama_url = get_environment(EnvVar.OLLAMA_HOST)
    if ollama_url:
        try:
            response = httpx.get(f"{ollama_url}/api/tags", timeout=2.0)
            if response.status_code == 200:
                providers.append("ollama")
        except httpx.HTTPError:
            pass  # Ollama not running

    return providers


__all__ = [
    # Core types
    "EnvConfig",
    "EnvVar",
    "GenerationSettings",
    # Main interface
    "get_environment",
    "get_environment_info",
    "load_settings",
    # Convenience functions
    "get_source_root",
    "get_available_llm_providers",
    # Introspection
    "list_environment_variables",
]
