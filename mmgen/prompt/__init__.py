"""Prompt building module for LLM interactions.

Provides PromptBuilder for diagram generation, repair, explanation and
cross-component relationship prompts.
"""

from .lib import ONLY_DIAGRAM, PromptBuilder, PromptConfig, PromptContext

__all__ = [
    "ONLY_DIAGRAM",
    "PromptBuilder",
    "PromptConfig",
    "PromptContext",
]
