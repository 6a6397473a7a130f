"""Diagram service: generation, validation, repair and explanation."""

from .lib import VALID_EXPLANATION, DiagramService

__all__ = ["DiagramService", "VALID_EXPLANATION"]
