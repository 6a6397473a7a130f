"""Root pytest configuration and fixtures.

This module provides:
- Environment setup (loads .env)
- Opt-in gating for tests that call a real LLM provider
- Scripted async text clients shared by engine and service tests
- Global test configuration
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import Generator

import pytest
from dotenv import load_dotenv

from mmgen.config import EnvVar, get_available_llm_providers
from mmgen.llm.backend.base import RateLimitError

# Load environment variables from .env file
load_dotenv()


# =============================================================================
# Canned Diagrams
# =============================================================================

VALID_DIAGRAM = "classDiagram\n  class OrderService {\n    +Create()\n  }"
INVALID_DIAGRAM = "classDiagram\n  class OrderService {\n    +Create(\n  }"


# =============================================================================
# Scripted Clients
# =============================================================================


class ScriptedClient:
    """Async TextGenerationClient that replays a script.

    Each call consumes the next script entry. An entry that is an exception
    instance is raised; anything else is returned as text. When the script
    runs out the last entry repeats.

    ``responder`` (prompt -> entry) takes priority over the script and lets
    a test answer by prompt content. ``delay`` (prompt -> seconds) adds an
    artificial per-call latency.
    """

    def __init__(
        self,
        script: Iterable[str | BaseException] = (),
        *,
        responder: Callable[[str], str | BaseException] | None = None,
        delay: Callable[[str], float] | None = None,
    ):
        self._script = list(script)
        self._responder = responder
        self._delay = delay
        self.prompts: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay is not None:
                await asyncio.sleep(self._delay(prompt))
            else:
                await asyncio.sleep(0)
            entry = self._next(prompt)
        finally:
            self.in_flight -= 1
        if isinstance(entry, BaseException):
            raise entry
        return entry

    def _next(self, prompt: str) -> str | BaseException:
        if self._responder is not None:
            return self._responder(prompt)
        if not self._script:
            raise AssertionError("ScriptedClient has no responses left")
        if len(self._script) > 1:
            return self._script.pop(0)
        return self._script[0]


class RecordingSleep:
    """Replacement for asyncio.sleep that records requested waits."""

    def __init__(self, *, block: bool = False):
        self.waits: list[float] = []
        self._block = block

    async def __call__(self, delay: float) -> None:
        self.waits.append(delay)
        if self._block:
            await asyncio.Event().wait()
        await asyncio.sleep(0)


# =============================================================================
# Test Collection
# =============================================================================


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-llm",
        action="store_true",
        default=False,
        help="Run tests that call a real LLM provider",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]):
    """Modify test collection based on available providers.

    Auto-skips tests marked with llm unless --run-llm is given and at least
    one provider is configured.
    """
    run_llm = config.getoption("--run-llm")
    providers = get_available_llm_providers() if run_llm else []

    reason = "LLM provider not available" if run_llm else "needs --run-llm"
    skip_llm = pytest.mark.skip(reason=reason)

    for item in items:
        if "llm" in item.keywords and not providers:
            item.add_marker(skip_llm)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def scripted_client() -> type[ScriptedClient]:
    """Factory for scripted async text clients."""
    return ScriptedClient


@pytest.fixture
def valid_diagram() -> str:
    return VALID_DIAGRAM


@pytest.fixture
def invalid_diagram() -> str:
    return INVALID_DIAGRAM


@pytest.fixture
def always_invalid_client() -> ScriptedClient:
    """Client whose every answer fails validation."""
    return ScriptedClient([INVALID_DIAGRAM])


@pytest.fixture
def rate_limited_client() -> ScriptedClient:
    """Client that is rate limited twice, then answers with a valid diagram."""
    return ScriptedClient(
        [
            RateLimitError("429 Too Many Requests"),
            RateLimitError("429 Too Many Requests"),
            VALID_DIAGRAM,
        ]
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def blocking_sleep() -> RecordingSleep:
    """Sleep that never returns until the awaiting task is cancelled."""
    return RecordingSleep(block=True)


@pytest.fixture
def clean_llm_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Remove provider selection and API keys from the environment."""
    for var in (
        EnvVar.ANTHROPIC_API_KEY,
        EnvVar.OPENAI_API_KEY,
        EnvVar.LLM_PROVIDER,
        EnvVar.MMGEN_MODEL,
    ):
        monkeypatch.delenv(var.value.name, raising=False)
    yield
