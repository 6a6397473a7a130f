"""Validate-and-repair convergence loop for generated diagrams.

The loop is a three-state machine:

    REPAIRING --(valid output)--> VALID
    REPAIRING --(budget spent)--> EXHAUSTED

An artifact that is already valid starts (and ends) in VALID without any
backend call. Each repair attempt sends the current artifact and its
diagnostics back to the model and re-validates the answer.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from ...diagram import clean_diagram_output
from ...prompt import PromptBuilder
from ...validation import ValidationResult, format_linter_output, validate
from ..backend.base import TextGenerationClient
from .retry import RetryController

logger = logging.getLogger(__name__)


class RepairState(Enum):
    """States of the repair loop."""

    VALID = "valid"
    REPAIRING = "repairing"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RepairAttempt:
    """Record of one repair round trip.

    Attributes:
        attempt_number: 1-based attempt index.
        input_artifact: Diagram sent for repair.
        resulting_artifact: Diagram the model returned.
        resulting_validation: Validation of the returned diagram.
    """

    attempt_number: int
    input_artifact: str
    resulting_artifact: str
    resulting_validation: ValidationResult

    @property
    def succeeded(self) -> bool:
        return self.resulting_validation.is_valid


class ValidationExhaustedError(Exception):
    """Raised when the repair budget ran out with the diagram still invalid.

    Carries the best-effort artifact so callers can still show progress.

    Attributes:
        artifact: Last (still invalid) diagram.
        validation: Its validation result.
        attempts: Every RepairAttempt made.
    """

    def __init__(
        self,
        artifact: str,
        validation: ValidationResult,
        attempts: list[RepairAttempt],
    ):
        super().__init__(
            f"could not fix diagram after {len(attempts)} attempts, "
            f"{len(validation.diagnostics)} errors remain: {validation.summary()}"
        )
        self.artifact = artifact
        self.validation = validation
        self.attempts = attempts

    @property
    def diagnostics(self):
        return self.validation.diagnostics

    def report(self) -> str:
        """Full linter output for the remaining errors."""
        return format_linter_output(self.validation)


@dataclass
class RepairOutcome:
    """Result of `RepairLoop.repair`.

    ``artifact`` is always populated: the repaired diagram on success, the
    last attempt otherwise. ``error`` is set exactly when ``state`` is
    EXHAUSTED.
    """

    artifact: str
    validation: ValidationResult
    state: RepairState
    attempts: list[RepairAttempt] = field(default_factory=list)
    error: ValidationExhaustedError | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is RepairState.VALID

    def unwrap(self) -> str:
        """Return the artifact, raising the exhaustion error if any."""
        if self.error is not None:
            raise self.error
        return self.artifact


@runtime_checkable
class TrainingLogger(Protocol):
    """Optional sink for repair traces (e.g. for fine-tuning datasets)."""

    def log_attempt(
        self,
        original: str,
        validation: ValidationResult,
        repaired: str,
        attempt_number: int,
        succeeded: bool,
    ) -> None: ...

    def log_validation(self, artifact: str, validation: ValidationResult) -> None: ...

    def log_explanation(self, validation: ValidationResult, explanation: str) -> None: ...


def safe_log(training_logger: TrainingLogger | None, method: str, *args) -> None:
    """Call a TrainingLogger method, never letting its failure escape."""
    if training_logger is None:
        return
    try:
        getattr(training_logger, method)(*args)
    except Exception as e:
        logger.warning("Training logger %s failed: %s", method, e)


class RepairLoop:
    """Drives validate -> repair -> re-validate until valid or out of budget.

    Example:
        >>> loop = RepairLoop(client, retry=RetryController(), max_retries=3)
        >>> outcome = await loop.repair(diagram, validate(diagram))
        >>> outcome.unwrap()
    """

    def __init__(
        self,
        client: TextGenerationClient,
        *,
        retry: RetryController | None = None,
        prompts: PromptBuilder | None = None,
        validator: Callable[[str], ValidationResult] = validate,
        training_logger: TrainingLogger | None = None,
        max_retries: int = 3,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._client = client
        self._retry = retry or RetryController()
        self._prompts = prompts or PromptBuilder()
        self._validate = validator
        self._training_logger = training_logger
        self._max_retries = max_retries

    @property
    def max_retries(self) -> int:
        return self._max_retries

    async def repair(
        self,
        artifact: str,
        initial_validation: ValidationResult,
        max_retries: int | None = None,
        *,
        label: str = "diagram",
    ) -> RepairOutcome:
        """Repair ``artifact`` until it validates or the budget is spent.

        Args:
            artifact: Diagram text as produced by the model.
            initial_validation: Validation of ``artifact``.
            max_retries: Override for the configured repair budget.
            label: Name used in logs and retry errors.

        Returns:
            RepairOutcome. On exhaustion its ``error`` holds a
            ValidationExhaustedError with the best-effort artifact.

        Raises:
            PermanentBackendError: The backend refused a repair request.
            RetryExhaustedError: Rate limiting outlasted the retry budget.
            CancelledError: Cancelled while backing off.
        """
        budget = self._max_retries if max_retries is None else max_retries
        if budget < 0:
            raise ValueError("max_retries must be >= 0")

        current = artifact
        validation = initial_validation
        attempts: list[RepairAttempt] = []
        state = RepairState.VALID if validation.is_valid else RepairState.REPAIRING

        while state is RepairState.REPAIRING:
            if len(attempts) >= budget:
                state = RepairState.EXHAUSTED
                break

            number = len(attempts) + 1
            logger.info(
                "Repairing %s (attempt %d/%d): %s",
                label,
                number,
                budget,
                validation.summary(),
            )
            prompt = self._prompts.build_repair_prompt(current, validation, number, budget)
            response = await self._retry.execute(
                lambda: self._client.generate(prompt),
                name=f"fix-{label}",
            )
            repaired = clean_diagram_output(response)
            repaired_validation = self._validate(repaired)

            attempt = RepairAttempt(
                attempt_number=number,
                input_artifact=current,
                resulting_artifact=repaired,
                resulting_validation=repaired_validation,
            )
            attempts.append(attempt)
            safe_log(
                self._training_logger,
                "log_attempt",
                current,
                validation,
                repaired,
                number,
                attempt.succeeded,
            )

            current, validation = repaired, repaired_validation
            if attempt.succeeded:
                state = RepairState.VALID

        if state is RepairState.VALID:
            if attempts:
                logger.info("Fixed %s after %d attempt(s)", label, len(attempts))
            return RepairOutcome(current, validation, state, attempts)

        error = ValidationExhaustedError(current, validation, attempts)
        logger.warning("Giving up on %s: %s", label, error)
        return RepairOutcome(current, validation, state, attempts, error)


__all__ = [
    "RepairAttempt",
    "RepairLoop",
    "RepairOutcome",
    "RepairState",
    "TrainingLogger",
    "ValidationExhaustedError",
    "safe_log",
]
