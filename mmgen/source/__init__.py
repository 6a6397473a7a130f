"""Source unit reading for diagram generation."""

from .lib import (
    COMPONENT_DIRS,
    FileSourceReader,
    InvalidUnitError,
    SourceNotFoundError,
    SourceReader,
    parse_component_spec,
)

__all__ = [
    "COMPONENT_DIRS",
    "FileSourceReader",
    "InvalidUnitError",
    "SourceNotFoundError",
    "SourceReader",
    "parse_component_spec",
]
