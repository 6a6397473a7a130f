"""Output module for generated diagrams.

Provides `.mmd` file writing, project map splitting and a file-backed
training logger for repair traces.
"""

from .lib import DIAGRAM_EXTENSION, DiagramOutput, OutputWriter, diagram_filename
from .training import FileTrainingLogger, TrainingEntryType, TrainingLogEntry

__all__ = [
    "DIAGRAM_EXTENSION",
    "DiagramOutput",
    "OutputWriter",
    "diagram_filename",
    "FileTrainingLogger",
    "TrainingEntryType",
    "TrainingLogEntry",
]
