"""Mermaid syntax validation utilities."""

from .lib import (
    DIAGRAM_KEYWORDS,
    Diagnostic,
    ValidationResult,
    format_linter_output,
    is_valid,
    validate,
    validation_context,
)

__all__ = [
    "DIAGRAM_KEYWORDS",
    "Diagnostic",
    "ValidationResult",
    "format_linter_output",
    "is_valid",
    "validate",
    "validation_context",
]
