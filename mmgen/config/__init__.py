"""Centralized configuration management for mmgen.

Provides unified access to all configuration via the `get_environment()`
function, and resolves generation budgets into `GenerationSettings`.

Example:
    >>> from mmgen.config import EnvVar, get_environment
    >>>
    >>> retries = get_environment(EnvVar.MERMAID_FIX_RETRIES)  # Returns int: 3
    >>> retries = get_environment(EnvVar.MERMAID_FIX_RETRIES, override=5)

Environment Variable Categories:
    llm: API keys and model selection (Anthropic, OpenAI)
    service: Local service URLs (Ollama)
    generation: Repair retries, backoff and concurrency budgets
    source: Source tree root for component lookups
    output: Training log directory
"""

from .lib import (
    # Core types
    EnvConfig,
    EnvVar,
    GenerationSettings,
    # Main interface
    get_available_llm_providers,
    get_environment,
    get_environment_info,
    get_source_root,
    # Introspection
    list_environment_variables,
    load_settings,
)

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
