"""Diagram generation engine.

Provides the GenerationOrchestrator, which fans out generate/validate/repair
jobs under a shared concurrency cap, together with the RepairLoop and
RetryController it is built from.
"""

from .lib import (
    BatchResult,
    GatedTextClient,
    GenerationJob,
    GenerationOrchestrator,
    GenerationStats,
    JobResult,
    PartialBatchFailure,
)
from .repair import (
    RepairAttempt,
    RepairLoop,
    RepairOutcome,
    RepairState,
    TrainingLogger,
    ValidationExhaustedError,
)
from .retry import RetryConfig, RetryController

__all__ = [
    "GenerationOrchestrator",
    "GenerationJob",
    "JobResult",
    "BatchResult",
    "GenerationStats",
    "GatedTextClient",
    "PartialBatchFailure",
    "RepairLoop",
    "RepairAttempt",
    "RepairOutcome",
    "RepairState",
    "TrainingLogger",
    "ValidationExhaustedError",
    "RetryConfig",
    "RetryController",
]
