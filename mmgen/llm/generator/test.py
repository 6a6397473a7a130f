"""Tests for LLM generator module.

Covers:
- RetryController: backoff, jitter, transient-only retry, cancellation
- RepairLoop: convergence, exhaustion, training logger isolation
- GenerationOrchestrator: concurrency cap, keyed aggregation, partial failure,
  cancellation and timeouts, capacity after abandoned calls
"""

import asyncio
import random
import re
import threading
import time

import pytest

from mmgen.config import GenerationSettings
from mmgen.diagram import DiagramKind
from mmgen.validation import validate

from ..backend.base import (
    AuthenticationError,
    CancellationError,
    GenerationResult,
    LLMBackend,
    PermanentBackendError,
    RateLimitError,
    RetryExhaustedError,
)
from ..backend.client import BackendTextClient
from .lib import (
    BatchResult,
    GatedTextClient,
    GenerationJob,
    GenerationOrchestrator,
    JobResult,
    PartialBatchFailure,
)
from .repair import RepairLoop, RepairState, ValidationExhaustedError
from .retry import RetryConfig, RetryController

VALID = "graph TD\n  A[Start] --> B(Done)"
INVALID = "graph TD\n  A[Start --> B(Done"
RELATIONSHIP = "```mermaid\nclassDiagram\n  OrderService --> OrderRepository : uses\n```"


async def _wait_for(condition, rounds: int = 200) -> None:
    for _ in range(rounds):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


# =============================================================================
# RetryController Tests
# =============================================================================


class TestRetryConfig:
    """Tests for RetryConfig dataclass."""

    @pytest.mark.unit
    def test_default_config(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay == 2.0
        assert config.jitter is True

    @pytest.mark.unit
    def test_from_settings(self):
        settings = GenerationSettings(retry_max_attempts=5, retry_base_delay=0.5)
        config = RetryConfig.from_settings(settings)
        assert config.max_attempts == 5
        assert config.base_delay == 0.5

    @pytest.mark.unit
    @pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"base_delay": -1.0}])
    def test_rejects_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            RetryConfig(**kwargs)


class TestRetryController:
    """Tests for RetryController."""

    @pytest.mark.unit
    def test_backoff_doubles(self):
        controller = RetryController(RetryConfig(base_delay=2.0))
        assert [controller.get_backoff_delay(k) for k in range(4)] == [2.0, 4.0, 8.0, 16.0]

    @pytest.mark.unit
    def test_jitter_range(self):
        """Jitter stays within [0, delay/2)."""
        controller = RetryController(rng=random.Random(7))
        for _ in range(200):
            jitter = controller.get_jitter(4.0)
            assert 0.0 <= jitter < 2.0

    @pytest.mark.unit
    def test_jitter_disabled(self):
        controller = RetryController(RetryConfig(jitter=False))
        assert controller.get_jitter(4.0) == 0.0

    @pytest.mark.unit
    def test_should_retry_only_transient(self):
        controller = RetryController(RetryConfig(max_attempts=3))
        assert controller.should_retry(RateLimitError("slow down"), 0)
        assert not controller.should_retry(RateLimitError("slow down"), 2)
        assert not controller.should_retry(AuthenticationError("bad key"), 0)
        assert not controller.should_retry(ValueError("boom"), 0)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_two_rate_limits_then_success(
        self, rate_limited_client, recording_sleep, valid_diagram
    ):
        """Succeeds on the third attempt with exactly two recorded waits."""
        controller = RetryController(RetryConfig(max_attempts=3), sleep=recording_sleep)
        result = await controller.execute(lambda: rate_limited_client.generate("p"))

        assert result == valid_diagram
        assert rate_limited_client.calls == 3
        assert len(recording_sleep.waits) == 2
        assert controller.retries == 2
        assert controller.total_wait == pytest.approx(sum(recording_sleep.waits))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_waits_are_monotonic_and_bounded(self, scripted_client, recording_sleep):
        """Retry k waits at least base_delay * 2**(k-1), never less than retry k-1."""
        client = scripted_client([RateLimitError("429")] * 5 + ["ok"])
        controller = RetryController(
            RetryConfig(max_attempts=6, base_delay=1.5),
            sleep=recording_sleep,
            rng=random.Random(3),
        )
        assert await controller.execute(lambda: client.generate("p")) == "ok"

        waits = recording_sleep.waits
        assert len(waits) == 5
        for k, wait in enumerate(waits, start=1):
            assert wait >= 1.5 * 2 ** (k - 1)
            assert wait < 1.5 * 2 ** (k - 1) * 1.5
        assert waits == sorted(waits)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_permanent_error_invoked_once(self, scripted_client, recording_sleep):
        client = scripted_client([AuthenticationError("invalid x-api-key", status_code=401)])
        controller = RetryController(sleep=recording_sleep)

        with pytest.raises(AuthenticationError):
            await controller.execute(lambda: client.generate("p"))

        assert client.calls == 1
        assert recording_sleep.waits == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_llm_error_not_retried(self, scripted_client, recording_sleep):
        client = scripted_client([RuntimeError("socket closed")])
        controller = RetryController(sleep=recording_sleep)

        with pytest.raises(RuntimeError):
            await controller.execute(lambda: client.generate("p"))
        assert client.calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_exhausted_wraps_last_error(self, scripted_client, recording_sleep):
        client = scripted_client([RateLimitError("429 Too Many Requests")])
        controller = RetryController(RetryConfig(max_attempts=3), sleep=recording_sleep)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await controller.execute(lambda: client.generate("p"), name="generate")

        error = exc_info.value
        assert error.attempts == 3
        assert isinstance(error.last_error, RateLimitError)
        assert error.status_code == 429
        assert "generate" in str(error)
        assert client.calls == 3
        assert len(recording_sleep.waits) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_after_extends_wait(self, scripted_client, recording_sleep):
        client = scripted_client([RateLimitError("429", retry_after=30.0), "ok"])
        controller = RetryController(sleep=recording_sleep)

        assert await controller.execute(lambda: client.generate("p")) == "ok"
        assert recording_sleep.waits == [30.0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self, scripted_client, blocking_sleep):
        """Cancelling the task while waiting re-raises its CancelledError."""
        client = scripted_client([RateLimitError("429"), "ok"])
        controller = RetryController(sleep=blocking_sleep)
        caught: list[BaseException] = []

        async def run():
            try:
                await controller.execute(lambda: client.generate("p"))
            except asyncio.CancelledError as e:
                caught.append(e)
                raise

        task = asyncio.create_task(run())
        await _wait_for(lambda: blocking_sleep.waits)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert [type(e) for e in caught] == [asyncio.CancelledError]
        assert client.calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_during_backoff(self, scripted_client, blocking_sleep):
        client = scripted_client([RateLimitError("429"), "ok"])
        controller = RetryController(sleep=blocking_sleep)

        with pytest.raises(TimeoutError):
            async with asyncio.timeout(0.05):
                await controller.execute(lambda: client.generate("p"))
        assert client.calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sleep_cancelled_on_its_own(self, scripted_client):
        """A sleep cancelled without the task being cancelled raises CancellationError."""
        client = scripted_client([RateLimitError("429"), "ok"])

        async def interrupted_sleep(_: float) -> None:
            raise asyncio.CancelledError()

        controller = RetryController(sleep=interrupted_sleep)

        with pytest.raises(CancellationError, match="waiting to retry"):
            await controller.execute(lambda: client.generate("p"), name="svc")
        assert client.calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_single_attempt_budget(self, scripted_client, recording_sleep):
        client = scripted_client([RateLimitError("429")])
        controller = RetryController(RetryConfig(max_attempts=1), sleep=recording_sleep)

        with pytest.raises(RetryExhaustedError) as excinfo:
            await controller.execute(lambda: client.generate("p"))

        assert isinstance(excinfo.value.__cause__, RateLimitError)
        assert recording_sleep.waits == []
        assert client.calls == 1


# =============================================================================
# RepairLoop Tests
# =============================================================================


class _RecordingTrainingLogger:
    def __init__(self):
        self.attempts = []
        self.validations = []
        self.explanations = []

    def log_attempt(self, original, validation, repaired, attempt_number, succeeded):
        self.attempts.append((attempt_number, succeeded))

    def log_validation(self, artifact, validation):
        self.validations.append(artifact)

    def log_explanation(self, validation, explanation):
        self.explanations.append(explanation)


class _BrokenTrainingLogger(_RecordingTrainingLogger):
    def log_attempt(self, *args):
        raise OSError("disk full")

    def log_validation(self, *args):
        raise OSError("disk full")


class TestRepairLoop:
    """Tests for RepairLoop."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("budget", [0, 1, 3])
    async def test_valid_input_unchanged(self, scripted_client, budget):
        """A valid artifact is returned as-is for any budget without backend calls."""
        client = scripted_client([INVALID])
        artifact = "```mermaid\n" + VALID + "\n```"
        loop = RepairLoop(client, max_retries=3)

        outcome = await loop.repair(artifact, validate(artifact), budget)

        assert outcome.artifact == artifact
        assert outcome.state is RepairState.VALID
        assert outcome.attempts == []
        assert outcome.error is None
        assert client.calls == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_always_invalid_exhausts(self, always_invalid_client, invalid_diagram):
        """Three attempts, then ValidationExhaustedError with the last artifact."""
        loop = RepairLoop(always_invalid_client, max_retries=3)

        outcome = await loop.repair(invalid_diagram, validate(invalid_diagram))

        assert outcome.state is RepairState.EXHAUSTED
        assert not outcome.succeeded
        assert always_invalid_client.calls == 3
        error = outcome.error
        assert isinstance(error, ValidationExhaustedError)
        assert [a.attempt_number for a in error.attempts] == [1, 2, 3]
        assert not any(a.succeeded for a in error.attempts)
        assert error.artifact == invalid_diagram
        assert error.diagnostics
        assert "Mismatched parentheses" in error.report()
        with pytest.raises(ValidationExhaustedError):
            outcome.unwrap()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stops_on_first_valid_attempt(self, scripted_client):
        client = scripted_client([INVALID, VALID, INVALID])
        loop = RepairLoop(client, max_retries=3)

        outcome = await loop.repair(INVALID, validate(INVALID))

        assert outcome.state is RepairState.VALID
        assert outcome.unwrap() == VALID
        assert [a.attempt_number for a in outcome.attempts] == [1, 2]
        assert outcome.attempts[-1].succeeded
        assert client.calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_context_in_later_prompts(self, always_invalid_client):
        loop = RepairLoop(always_invalid_client, max_retries=2)
        await loop.repair(INVALID, validate(INVALID))

        first, second = always_invalid_client.prompts
        assert "fix attempt" not in first
        assert "This is fix attempt 2/2" in second
        assert "Mismatched square brackets" in first

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_zero_budget_exhausts_without_calls(self, scripted_client):
        client = scripted_client([VALID])
        outcome = await RepairLoop(client).repair(INVALID, validate(INVALID), 0)

        assert outcome.state is RepairState.EXHAUSTED
        assert outcome.artifact == INVALID
        assert outcome.error.attempts == []
        assert client.calls == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_repaired_output_is_cleaned(self, scripted_client):
        client = scripted_client(["```mermaid\n%% fixed\n" + VALID + "\n```"])
        outcome = await RepairLoop(client).repair(INVALID, validate(INVALID))

        assert outcome.artifact == VALID

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_training_logger_receives_attempts(self, scripted_client):
        client = scripted_client([INVALID, VALID])
        training = _RecordingTrainingLogger()
        loop = RepairLoop(client, training_logger=training)

        await loop.repair(INVALID, validate(INVALID))

        assert training.attempts == [(1, False), (2, True)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_training_logger_failure_does_not_abort(self, scripted_client):
        client = scripted_client([VALID])
        loop = RepairLoop(client, training_logger=_BrokenTrainingLogger())

        outcome = await loop.repair(INVALID, validate(INVALID))

        assert outcome.succeeded

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_permanent_error_propagates(self, scripted_client):
        client = scripted_client([PermanentBackendError("400 bad request", status_code=400)])

        with pytest.raises(PermanentBackendError):
            await RepairLoop(client).repair(INVALID, validate(INVALID))
        assert client.calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limited_repair_is_retried(self, scripted_client, recording_sleep):
        client = scripted_client([RateLimitError("429"), VALID])
        loop = RepairLoop(client, retry=RetryController(sleep=recording_sleep))

        outcome = await loop.repair(INVALID, validate(INVALID))

        assert outcome.succeeded
        assert len(outcome.attempts) == 1
        assert len(recording_sleep.waits) == 1

    @pytest.mark.unit
    def test_negative_budget_rejected(self, scripted_client):
        with pytest.raises(ValueError):
            RepairLoop(scripted_client(), max_retries=-1)


# =============================================================================
# GenerationOrchestrator Tests
# =============================================================================


_UNIT_RE = re.compile(r"UNIT-(\d+)")


def _unit_responder(prompt: str) -> str:
    match = _UNIT_RE.search(prompt)
    return f"graph TD\n  U{match.group(1)}[Unit {match.group(1)}] --> Done"


def _unit_jobs(count: int) -> list[GenerationJob]:
    return [GenerationJob(f"u{i}", f"// UNIT-{i}\npackage main") for i in range(count)]


class _UninterruptibleClient:
    """Client whose calls only end once ``finish`` is set, even if cancelled."""

    def __init__(self):
        self.started = 0
        self.finish = asyncio.Event()

    async def generate(self, prompt: str) -> str:
        self.started += 1
        try:
            await self.finish.wait()
        except asyncio.CancelledError:
            await self.finish.wait()
            raise
        return VALID


class _BlockingBackend(LLMBackend):
    """Synchronous backend that holds its worker thread for ``duration`` seconds."""

    def __init__(self, duration: float):
        self.duration = duration
        self.calls = 0
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    @property
    def model_name(self) -> str:
        return "blocking-model"

    @property
    def provider(self) -> str:
        return "mock"

    @property
    def context_window(self) -> int:
        return 4096

    def generate(self, prompt, *, system_prompt=None, config=None) -> GenerationResult:
        with self._lock:
            self.calls += 1
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.duration)
        finally:
            with self._lock:
                self.active -= 1
        return GenerationResult(
            content=VALID,
            finish_reason="stop",
            model=self.model_name,
            usage={"total_tokens": 1},
        )


class _RecordingQueue(asyncio.Queue):
    sizes: list[int] = []

    def __init__(self, maxsize: int = 0):
        super().__init__(maxsize)
        self.sizes.append(maxsize)


class TestGatedTextClient:
    """Tests for GatedTextClient."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_single_slot_serializes_calls(self, scripted_client):
        client = scripted_client(["x"], delay=lambda _: 0.01)
        gated = GatedTextClient(client, asyncio.Semaphore(1))

        await asyncio.gather(*(gated.generate(str(i)) for i in range(4)))

        assert gated.calls == 4
        assert gated.max_in_flight == 1
        assert client.max_in_flight == 1
        assert gated.in_flight == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancelled_caller_keeps_slot_until_call_finishes(self):
        """A call that outlives its cancelled caller still occupies its slot."""
        client = _UninterruptibleClient()
        gated = GatedTextClient(client, asyncio.Semaphore(1))

        first = asyncio.create_task(gated.generate("a"))
        await _wait_for(lambda: client.started == 1)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        assert gated.pending == 1
        second = asyncio.create_task(gated.generate("b"))
        for _ in range(10):
            await asyncio.sleep(0)
        assert client.started == 1

        client.finish.set()
        assert await second == VALID
        assert client.started == 2
        assert gated.max_in_flight == 1
        assert gated.pending == 0


class TestBatchResult:
    """Tests for BatchResult mapping."""

    @pytest.mark.unit
    def test_mapping_and_partitions(self):
        batch = BatchResult(
            {
                "a": JobResult("a", VALID),
                "b": JobResult("b", "", error=RuntimeError("boom")),
            }
        )
        assert len(batch) == 2
        assert set(batch) == {"a", "b"}
        assert batch["a"].succeeded
        assert list(batch.succeeded) == ["a"]
        assert list(batch.failed) == ["b"]
        assert batch.artifacts() == {"a": VALID}


class TestGenerationOrchestrator:
    """Tests for GenerationOrchestrator."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrency_never_exceeds_capacity(self, scripted_client):
        """Ten simultaneous units never put more than two calls in flight."""
        client = scripted_client(responder=_unit_responder, delay=lambda _: 0.01)
        orchestrator = GenerationOrchestrator(
            client, settings=GenerationSettings(max_concurrency=2)
        )

        batch = await orchestrator.generate_all(_unit_jobs(10))

        assert len(batch) == 10
        assert client.max_in_flight <= 2
        assert orchestrator.client.max_in_flight == 2
        assert orchestrator.stats.max_in_flight == 2
        assert orchestrator.client.in_flight == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_results_keyed_by_unit(self, scripted_client):
        """Later units finish first; every result still lands under its own id."""

        def delay(prompt):
            return (10 - int(_UNIT_RE.search(prompt).group(1))) * 0.003

        client = scripted_client(responder=_unit_responder, delay=delay)
        orchestrator = GenerationOrchestrator(
            client, settings=GenerationSettings(max_concurrency=4)
        )

        batch = await orchestrator.generate_all(_unit_jobs(10))

        assert sorted(batch) == sorted(f"u{i}" for i in range(10))
        for i in range(10):
            result = batch[f"u{i}"]
            assert result.unit_id == f"u{i}"
            assert f"U{i}[Unit {i}]" in result.artifact
            assert result.validation.is_valid

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_output_repaired(self, scripted_client):
        def respond(prompt):
            return VALID if "Fix the following" in prompt else INVALID

        client = scripted_client(responder=respond)
        orchestrator = GenerationOrchestrator(client)

        batch = await orchestrator.generate_all([GenerationJob("main", "package main")])

        assert batch["main"].artifact == VALID
        assert len(batch["main"].attempts) == 1
        assert orchestrator.stats.repair_attempts == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_partial_failure_reports_both_sets(self, scripted_client):
        """One failing unit does not cancel its siblings."""

        def respond(prompt):
            if "UNIT-3" in prompt:
                return AuthenticationError("invalid x-api-key", status_code=401)
            return _unit_responder(prompt)

        client = scripted_client(responder=respond, delay=lambda _: 0.002)
        orchestrator = GenerationOrchestrator(client)

        with pytest.raises(PartialBatchFailure) as exc_info:
            await orchestrator.generate_all(_unit_jobs(5))

        failure = exc_info.value
        assert set(failure.failed) == {"u3"}
        assert set(failure.succeeded) == {"u0", "u1", "u2", "u4"}
        assert isinstance(failure.failed["u3"].error, AuthenticationError)
        assert failure.failed["u3"].artifact == ""
        assert "u3" in str(failure)
        assert orchestrator.stats.failed == 1
        assert orchestrator.stats.succeeded == 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_exhausted_unit_keeps_best_effort_artifact(self, always_invalid_client):
        orchestrator = GenerationOrchestrator(
            always_invalid_client, settings=GenerationSettings(max_fix_retries=2)
        )

        with pytest.raises(PartialBatchFailure) as exc_info:
            await orchestrator.generate_all([GenerationJob("svc", "package svc")])

        result = exc_info.value.failed["svc"]
        assert isinstance(result.error, ValidationExhaustedError)
        assert result.artifact
        assert len(result.attempts) == 2
        assert always_invalid_client.calls == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limit_retried_inside_job(self, rate_limited_client, recording_sleep):
        orchestrator = GenerationOrchestrator(
            rate_limited_client, retry=RetryController(sleep=recording_sleep)
        )

        batch = await orchestrator.generate_all([GenerationJob("svc", "package svc")])

        assert batch["svc"].succeeded
        assert len(recording_sleep.waits) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_synthesize_relationships(self, scripted_client, valid_diagram):
        def respond(prompt):
            if "only the relationships" in prompt:
                return RELATIONSHIP
            return valid_diagram

        client = scripted_client(responder=respond)
        orchestrator = GenerationOrchestrator(client)
        jobs = [
            GenerationJob("service", "package service", DiagramKind.CLASS),
            GenerationJob("repository", "package repository", DiagramKind.CLASS),
        ]

        batch = await orchestrator.generate_all(jobs, synthesize=True)

        assert batch.relationships == ["OrderService --> OrderRepository : uses"]
        assert client.calls == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_relationship_failure_is_non_fatal(self, scripted_client, valid_diagram):
        def respond(prompt):
            if "only the relationships" in prompt:
                return PermanentBackendError("500 internal error", status_code=500)
            return valid_diagram

        orchestrator = GenerationOrchestrator(scripted_client(responder=respond))
        jobs = [GenerationJob("a", "package a"), GenerationJob("b", "package b")]

        batch = await orchestrator.generate_all(jobs, synthesize=True)

        assert batch.relationships == []
        assert len(batch.succeeded) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_prebuilt_prompt_used(self, scripted_client):
        client = scripted_client([VALID])
        orchestrator = GenerationOrchestrator(client)

        await orchestrator.generate_all([GenerationJob("x", "", prompt="custom prompt")])

        assert client.prompts == ["custom prompt"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_training_logger_sees_validation(self, scripted_client):
        training = _RecordingTrainingLogger()
        orchestrator = GenerationOrchestrator(
            scripted_client([VALID]), training_logger=training
        )

        await orchestrator.generate_all([GenerationJob("x", "package x")])

        assert training.validations == [VALID]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_batch(self, scripted_client):
        batch = await GenerationOrchestrator(scripted_client()).generate_all([])
        assert len(batch) == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_duplicate_unit_ids_rejected(self, scripted_client):
        orchestrator = GenerationOrchestrator(scripted_client([VALID]))
        jobs = [GenerationJob("x", "a"), GenerationJob("x", "b")]

        with pytest.raises(ValueError):
            await orchestrator.generate_all(jobs)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancellation_cancels_workers(self, scripted_client):
        client = scripted_client(responder=_unit_responder, delay=lambda _: 60.0)
        orchestrator = GenerationOrchestrator(client)
        caught: list[BaseException] = []

        async def run():
            try:
                await orchestrator.generate_all(_unit_jobs(6))
            except asyncio.CancelledError as e:
                caught.append(e)
                raise

        task = asyncio.create_task(run())
        await _wait_for(lambda: orchestrator.client.in_flight == 2)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert [type(e) for e in caught] == [asyncio.CancelledError]
        await _wait_for(lambda: orchestrator.client.in_flight == 0)
        assert client.calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_around_batch(self, scripted_client):
        """asyncio.timeout sees its own cancellation and raises TimeoutError."""
        client = scripted_client(responder=_unit_responder, delay=lambda _: 60.0)
        orchestrator = GenerationOrchestrator(client)

        with pytest.raises(TimeoutError):
            async with asyncio.timeout(0.05):
                await orchestrator.generate_all(_unit_jobs(4))

        await _wait_for(lambda: orchestrator.client.in_flight == 0)
        assert client.calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_capacity_holds_after_cancelled_batch(self):
        """Threads left running by a cancelled batch still count against capacity."""
        backend = _BlockingBackend(duration=0.3)
        orchestrator = GenerationOrchestrator(
            BackendTextClient(backend), settings=GenerationSettings(max_concurrency=2)
        )

        first = asyncio.create_task(orchestrator.generate_all(_unit_jobs(2)))
        for _ in range(100):
            if backend.active == 2:
                break
            await asyncio.sleep(0.01)
        assert backend.active == 2
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        assert orchestrator.client.pending == 2

        batch = await orchestrator.generate_all(_unit_jobs(2))

        assert set(batch) == {"u0", "u1"}
        assert backend.calls == 4
        assert backend.peak <= 2
        assert orchestrator.client.max_in_flight <= 2
        assert orchestrator.client.pending == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_results_queue_bounded_by_batch_size(self, scripted_client, monkeypatch):
        _RecordingQueue.sizes = []
        monkeypatch.setattr(asyncio, "Queue", _RecordingQueue)
        orchestrator = GenerationOrchestrator(scripted_client(responder=_unit_responder))

        batch = await orchestrator.generate_all(_unit_jobs(5))

        assert len(batch) == 5
        assert _RecordingQueue.sizes == [5]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancel_during_job_backoff(self, scripted_client, blocking_sleep):
        client = scripted_client([RateLimitError("429")])
        orchestrator = GenerationOrchestrator(
            client, retry=RetryController(sleep=blocking_sleep)
        )
        caught: list[BaseException] = []

        async def run():
            try:
                await orchestrator.generate_all([GenerationJob("svc", "package svc")])
            except asyncio.CancelledError as e:
                caught.append(e)
                raise

        task = asyncio.create_task(run())
        await _wait_for(lambda: blocking_sleep.waits)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert [type(e) for e in caught] == [asyncio.CancelledError]
        assert client.calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_backend_client_end_to_end(self, mock_llm_backend):
        """Mock backend behind BackendTextClient produces a sequence diagram."""
        client = BackendTextClient(mock_llm_backend)
        orchestrator = GenerationOrchestrator(client)

        batch = await orchestrator.generate_all(
            [GenerationJob("orders", "package orders", DiagramKind.SEQUENCE)]
        )

        artifact = batch["orders"].artifact
        assert artifact.startswith("sequenceDiagram")
        assert "```" not in artifact
        assert client.calls == 1
        assert client.total_tokens == 100
