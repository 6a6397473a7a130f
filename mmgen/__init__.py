"""mmgen: Mermaid diagram generation from source code with validated repair."""

from mmgen.diagram import DiagramKind
from mmgen.service import DiagramService
from mmgen.validation import ValidationResult, is_valid, validate

__all__ = [
    # Service
    "DiagramService",
    "DiagramKind",
    # Validation
    "validate",
    "is_valid",
    "ValidationResult",
]
