"""GenerationOrchestrator for concurrent diagram generation.

Fans out one worker task per unit. Every backend call made by any worker
(initial generation, repair, relationship synthesis) passes through one
shared semaphore, so the number of in-flight requests never exceeds the
configured capacity no matter how many units are queued.
"""

import asyncio
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from ...config import GenerationSettings
from ...diagram import DiagramKind, clean_diagram_output, extract_relationship_lines
from ...prompt import PromptBuilder
from ...validation import ValidationResult, validate
from ..backend.base import CancellationError, LLMError, TextGenerationClient
from .repair import RepairAttempt, RepairLoop, TrainingLogger, safe_log
from .retry import RetryConfig, RetryController

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationJob:
    """One unit of work for the orchestrator.

    Attributes:
        unit_id: Key the result is reported under.
        source: Source code to diagram.
        kind: Diagram kind to request.
        prompt: Prebuilt prompt; built from ``source`` and ``kind`` if None.
    """

    unit_id: str
    source: str
    kind: DiagramKind = DiagramKind.BASIC
    prompt: str | None = None


@dataclass
class JobResult:
    """Outcome of one GenerationJob.

    ``artifact`` holds the best-effort diagram even when ``error`` is a
    ValidationExhaustedError; it is empty only when the backend itself
    failed.
    """

    unit_id: str
    artifact: str = ""
    error: BaseException | None = None
    attempts: list[RepairAttempt] = field(default_factory=list)
    validation: ValidationResult | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class GenerationStats:
    """Statistics from a batch run.

    Attributes:
        jobs: Units submitted.
        succeeded: Units that produced a valid diagram.
        failed: Units that ended with an error.
        repair_attempts: Repair round trips across all units.
        max_in_flight: Highest observed number of concurrent backend calls.
    """

    jobs: int = 0
    succeeded: int = 0
    failed: int = 0
    repair_attempts: int = 0
    max_in_flight: int = 0


class BatchResult(Mapping[str, JobResult]):
    """Per-unit results of `GenerationOrchestrator.generate_all`, keyed by unit id."""

    def __init__(self, results: Mapping[str, JobResult], relationships: Iterable[str] = ()):
        self._results = dict(results)
        self.relationships = list(relationships)

    def __getitem__(self, unit_id: str) -> JobResult:
        return self._results[unit_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    @property
    def succeeded(self) -> dict[str, JobResult]:
        return {k: r for k, r in self._results.items() if r.succeeded}

    @property
    def failed(self) -> dict[str, JobResult]:
        return {k: r for k, r in self._results.items() if not r.succeeded}

    def artifacts(self) -> dict[str, str]:
        """Best-effort artifact for every unit that produced one."""
        return {k: r.artifact for k, r in self._results.items() if r.artifact}

    def __repr__(self) -> str:
        return (
            f"BatchResult(succeeded={sorted(self.succeeded)}, "
            f"failed={sorted(self.failed)})"
        )


class PartialBatchFailure(Exception):
    """Raised when at least one unit in a batch failed.

    Sibling units are never cancelled; ``batch`` carries both the successful
    and the failed results.
    """

    def __init__(self, batch: BatchResult):
        failed = batch.failed
        details = "; ".join(f"{unit}: {result.error}" for unit, result in failed.items())
        super().__init__(f"{len(failed)} of {len(batch)} units failed: {details}")
        self.batch = batch

    @property
    def succeeded(self) -> dict[str, JobResult]:
        return self.batch.succeeded

    @property
    def failed(self) -> dict[str, JobResult]:
        return self.batch.failed


class GatedTextClient:
    """TextGenerationClient that holds a semaphore slot for each call.

    The slot covers exactly one backend call. Backoff sleeps in the retry
    controller happen outside it.

    A cancelled caller returns immediately, but the slot stays taken until
    the underlying call has actually finished. A provider call running in a
    worker thread cannot be interrupted, so releasing early would let later
    calls exceed the capacity.
    """

    def __init__(self, client: TextGenerationClient, semaphore: asyncio.Semaphore):
        self._client = client
        self._semaphore = semaphore
        self._pending: set[asyncio.Future] = set()
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def pending(self) -> int:
        """Calls still holding a slot, including ones abandoned by their caller."""
        return len(self._pending)

    async def generate(self, prompt: str) -> str:
        await self._semaphore.acquire()
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)

        call = asyncio.ensure_future(self._client.generate(prompt))
        self._pending.add(call)
        call.add_done_callback(self._release)
        try:
            return await asyncio.shield(call)
        except asyncio.CancelledError:
            call.cancel()
            raise

    def _release(self, call: asyncio.Future) -> None:
        self._pending.discard(call)
        self.in_flight -= 1
        self._semaphore.release()
        if not call.cancelled():
            call.exception()


class GenerationOrchestrator:
    """Orchestrates concurrent generate -> validate -> repair jobs.

    Pipeline per unit:
        1. Build prompt (unless the job carries one)
        2. Generate through the gated client, retrying on rate limits
        3. Clean and validate the output
        4. Repair until valid or the repair budget is spent
        5. Push a JobResult onto the results queue

    Example:
        >>> orchestrator = GenerationOrchestrator(client, settings=load_settings())
        >>> batch = await orchestrator.generate_all(
        ...     [GenerationJob("service", code, DiagramKind.CLASS)]
        ... )
        >>> batch["service"].artifact
    """

    def __init__(
        self,
        client: TextGenerationClient,
        *,
        settings: GenerationSettings | None = None,
        prompts: PromptBuilder | None = None,
        retry: RetryController | None = None,
        training_logger: TrainingLogger | None = None,
    ):
        """Initialize GenerationOrchestrator.

        Args:
            client: Text generation client shared by every worker.
            settings: Generation budgets. Defaults to built-in values.
            prompts: Prompt builder.
            retry: Retry controller; built from ``settings`` if None.
            training_logger: Optional sink for repair traces.
        """
        self._settings = settings or GenerationSettings()
        self._prompts = prompts or PromptBuilder()
        self._semaphore = asyncio.Semaphore(self._settings.max_concurrency)
        self._client = GatedTextClient(client, self._semaphore)
        self._retry = retry or RetryController(RetryConfig.from_settings(self._settings))
        self._training_logger = training_logger
        self._repair = RepairLoop(
            self._client,
            retry=self._retry,
            prompts=self._prompts,
            training_logger=training_logger,
            max_retries=self._settings.max_fix_retries,
        )
        self.stats = GenerationStats()

    @property
    def settings(self) -> GenerationSettings:
        return self._settings

    @property
    def client(self) -> GatedTextClient:
        """The semaphore-gated client every backend call goes through."""
        return self._client

    @property
    def repair_loop(self) -> RepairLoop:
        return self._repair

    @property
    def retry(self) -> RetryController:
        return self._retry

    async def generate_one(self, job: GenerationJob) -> JobResult:
        """Run the full pipeline for a single job.

        Validation exhaustion is reported on the JobResult together with the
        best-effort artifact. Backend errors propagate.
        """
        prompt = job.prompt or self._prompts.build(job.source, job.kind)
        response = await self._retry.execute(
            lambda: self._client.generate(prompt),
            name=job.unit_id,
        )
        artifact = clean_diagram_output(response)
        validation = validate(artifact)
        safe_log(self._training_logger, "log_validation", artifact, validation)
        if not validation.is_valid:
            logger.debug("Diagnostics for %s: %s", job.unit_id, validation.summary())

        outcome = await self._repair.repair(artifact, validation, label=job.unit_id)
        return JobResult(
            unit_id=job.unit_id,
            artifact=outcome.artifact,
            error=outcome.error,
            attempts=outcome.attempts,
            validation=outcome.validation,
        )

    async def generate_all(
        self,
        jobs: Iterable[GenerationJob],
        *,
        synthesize: bool = False,
    ) -> BatchResult:
        """Generate diagrams for all jobs concurrently.

        Args:
            jobs: Units to process. Unit ids must be unique.
            synthesize: On full success, issue one extra request for
                relationships across the generated diagrams.

        Returns:
            BatchResult keyed by unit id.

        Raises:
            PartialBatchFailure: One or more units failed.
            CancelledError: The caller was cancelled; workers are cancelled
                first and the original cancellation propagates.
            CancellationError: A worker was cancelled from outside the batch.
            ValueError: Duplicate unit ids.
        """
        jobs = list(jobs)
        unit_ids = [job.unit_id for job in jobs]
        if len(set(unit_ids)) != len(unit_ids):
            raise ValueError(f"Duplicate unit ids in batch: {unit_ids}")

        self.stats.jobs += len(jobs)
        results: asyncio.Queue[JobResult] = asyncio.Queue(maxsize=len(jobs))
        tasks = [
            asyncio.create_task(self._worker(job, results), name=f"mmgen-{job.unit_id}")
            for job in jobs
        ]
        logger.info(
            "Generating %d diagram(s) with concurrency %d",
            len(jobs),
            self._settings.max_concurrency,
        )

        collected: dict[str, JobResult] = {}
        try:
            while len(collected) < len(jobs):
                result = await results.get()
                if isinstance(result.error, asyncio.CancelledError):
                    raise CancellationError(f"{result.unit_id} was cancelled")
                collected[result.unit_id] = result
        except asyncio.CancelledError:
            await self._cancel(tasks)
            raise

        self.stats.max_in_flight = max(self.stats.max_in_flight, self._client.max_in_flight)
        batch = BatchResult(collected)
        self._record(batch)

        if batch.failed:
            logger.error(
                "Batch finished with failures: %s", ", ".join(sorted(batch.failed))
            )
            raise PartialBatchFailure(batch)

        if synthesize and len(batch) > 1:
            batch.relationships = await self.synthesize_relationships(batch.artifacts())
        return batch

    async def synthesize_relationships(self, diagrams: Mapping[str, str]) -> list[str]:
        """Ask for relationship lines across per-unit diagrams.

        Failure is non-fatal: a warning is logged and no relationships are
        returned.
        """
        prompt = self._prompts.build_relationship_prompt(diagrams)
        try:
            response = await self._retry.execute(
                lambda: self._client.generate(prompt),
                name="relationships",
            )
        except LLMError as e:
            logger.warning("Failed to generate relationships, continuing without them: %s", e)
            return []
        relationships = extract_relationship_lines(response)
        logger.info("Synthesized %d cross-unit relationship(s)", len(relationships))
        return relationships

    async def _worker(self, job: GenerationJob, results: "asyncio.Queue[JobResult]") -> None:
        try:
            result = await self.generate_one(job)
        except asyncio.CancelledError as e:
            results.put_nowait(JobResult(job.unit_id, error=e))
            raise
        except Exception as e:
            logger.error("Generation failed for %s: %s", job.unit_id, e)
            result = JobResult(job.unit_id, error=e)
        results.put_nowait(result)

    @staticmethod
    async def _cancel(tasks: list[asyncio.Task]) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _record(self, batch: BatchResult) -> None:
        self.stats.succeeded += len(batch.succeeded)
        self.stats.failed += len(batch.failed)
        self.stats.repair_attempts += sum(len(r.attempts) for r in batch.values())
        logger.info(
            "Batch complete: %d succeeded, %d failed",
            len(batch.succeeded),
            len(batch.failed),
        )


__all__ = [
    "BatchResult",
    "GatedTextClient",
    "GenerationJob",
    "GenerationOrchestrator",
    "GenerationStats",
    "JobResult",
    "PartialBatchFailure",
]
