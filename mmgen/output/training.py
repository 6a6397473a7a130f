"""File-backed training logger.

Persists validation results, repair attempts and explanations as one JSON
document per event, grouped in a per-session directory. The records are
meant for building fine-tuning datasets of broken/fixed diagram pairs.
"""

import itertools
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from ..config import EnvVar, get_environment
from ..validation import ValidationResult

logger = logging.getLogger(__name__)


class TrainingEntryType(str, Enum):
    """Kind of training event."""

    FIX_ATTEMPT = "fix_attempt"
    VALIDATION = "validation"
    EXPLANATION = "explanation"


class TrainingLogEntry(BaseModel):
    """A single training event."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    type: TrainingEntryType
    session_id: str
    original_diagram: str | None = None
    validation_result: ValidationResult | None = None
    fixed_diagram: str | None = None
    attempt: int | None = None
    is_successful: bool | None = None
    explanation: str | None = None


def _new_session_id() -> str:
    return f"{datetime.now():%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:6]}"


class FileTrainingLogger:
    """TrainingLogger that writes JSON files under ``<log_dir>/<session>/``.

    Example:
        >>> training = FileTrainingLogger(Path("logs"))
        >>> loop = RepairLoop(client, training_logger=training)
    """

    def __init__(self, log_dir: Path | str, *, session_id: str | None = None):
        self._session_id = session_id or _new_session_id()
        self._session_dir = Path(log_dir) / self._session_id
        self._session_dir.mkdir(parents=True, exist_ok=True)
        self._sequence = itertools.count(1)
        logger.info("Logging training data to %s", self._session_dir)

    @classmethod
    def from_environment(
        cls, log_dir: Path | str | None = None
    ) -> "FileTrainingLogger | None":
        """Create a logger for ``log_dir`` or MERMAID_LOG_DIR, if either is set."""
        resolved = get_environment(EnvVar.MERMAID_LOG_DIR, Path(log_dir) if log_dir else None)
        if not resolved:
            return None
        return cls(resolved)

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def session_dir(self) -> Path:
        return self._session_dir

    def log_attempt(
        self,
        original: str,
        validation: ValidationResult,
        repaired: str,
        attempt_number: int,
        succeeded: bool,
    ) -> None:
        self._write(
            TrainingLogEntry(
                type=TrainingEntryType.FIX_ATTEMPT,
                session_id=self._session_id,
                original_diagram=original,
                validation_result=validation,
                fixed_diagram=repaired,
                attempt=attempt_number,
                is_successful=succeeded,
            )
        )

    def log_validation(self, artifact: str, validation: ValidationResult) -> None:
        self._write(
            TrainingLogEntry(
                type=TrainingEntryType.VALIDATION,
                session_id=self._session_id,
                original_diagram=artifact,
                validation_result=validation,
            )
        )

    def log_explanation(self, validation: ValidationResult, explanation: str) -> None:
        self._write(
            TrainingLogEntry(
                type=TrainingEntryType.EXPLANATION,
                session_id=self._session_id,
                original_diagram=validation.raw_artifact,
                validation_result=validation,
                explanation=explanation,
            )
        )

    def entries(self) -> list[TrainingLogEntry]:
        """Read back every entry of this session, in write order."""
        return [
            TrainingLogEntry.model_validate_json(path.read_text(encoding="utf-8"))
            for path in sorted(self._session_dir.glob("*.json"))
        ]

    def _write(self, entry: TrainingLogEntry) -> Path:
        path = self._session_dir / f"{next(self._sequence):05d}_{entry.type.value}.json"
        path.write_text(entry.model_dump_json(indent=2, exclude_none=True), encoding="utf-8")
        return path


__all__ = [
    "FileTrainingLogger",
    "TrainingEntryType",
    "TrainingLogEntry",
]
