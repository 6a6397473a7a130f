"""Async text client adapter over synchronous LLM backends."""

import asyncio
import logging

from .base import GenerationConfig, InvalidResponseError, LLMBackend

logger = logging.getLogger(__name__)


class BackendTextClient:
    """Expose an `LLMBackend` as an async `TextGenerationClient`.

    Each call runs the blocking provider SDK in a worker thread so that
    many jobs can await the backend from one event loop. The client holds
    no conversation state; every prompt is an independent request.

    Example:
        >>> client = BackendTextClient(create_llm_backend())
        >>> text = await client.generate("Create a Mermaid flowchart for ...")
    """

    def __init__(
        self,
        backend: LLMBackend,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ):
        self._backend = backend
        self._system_prompt = system_prompt
        self._config = config or GenerationConfig()
        self.calls = 0
        self.total_tokens = 0

    @property
    def backend(self) -> LLMBackend:
        return self._backend

    async def generate(self, prompt: str) -> str:
        """Send one prompt and return the completion text.

        Raises:
            RateLimitError: Propagated from the backend for retry.
            PermanentBackendError: Propagated from the backend.
            InvalidResponseError: If the backend returned empty text.
            CancelledError: Once the worker thread has finished.
        """
        self.calls += 1
        call = asyncio.ensure_future(
            asyncio.to_thread(
                self._backend.generate,
                prompt,
                system_prompt=self._system_prompt,
                config=self._config,
            )
        )
        try:
            result = await asyncio.shield(call)
        except asyncio.CancelledError:
            # The worker thread keeps running; finish only once it has.
            await asyncio.wait({call})
            if not call.cancelled():
                call.exception()
            raise
        self.total_tokens += result.usage.get("total_tokens", 0)
        logger.debug(
            "%s returned %d chars (%s)",
            self._backend.name,
            len(result.content),
            result.finish_reason,
        )
        if not result.content.strip():
            raise InvalidResponseError(f"{self._backend.name} returned an empty response")
        return result.content


__all__ = ["BackendTextClient"]
