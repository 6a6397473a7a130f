"""Tests for LLM backend implementations."""

from types import SimpleNamespace

import pytest

from .base import (
    AuthenticationError,
    ContextLengthError,
    GenerationConfig,
    GenerationResult,
    InvalidResponseError,
    LLMBackend,
    PermanentBackendError,
    RateLimitError,
    RetryExhaustedError,
    TextGenerationClient,
    TransientBackendError,
    error_from_status,
    retry_after_seconds,
)
from .client import BackendTextClient
from .factory import create_llm_backend
from .model_spec import (
    DEFAULT_MODEL,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    get_default_model,
    get_llm_spec,
)


class _StatusError(Exception):
    """Stand-in for an SDK error carrying an HTTP status."""

    def __init__(self, message, status_code, headers=None):
        super().__init__(message)
        self.status_code = status_code
        self.response = SimpleNamespace(headers=headers or {})


class _StaticBackend(LLMBackend):
    """Synchronous backend returning canned text."""

    def __init__(self, content="graph TD\n  A --> B", tokens=12):
        self.content = content
        self.tokens = tokens
        self.prompts: list[str] = []
        self.system_prompts: list[str | None] = []

    def generate(self, prompt, *, system_prompt=None, config=None):
        self.prompts.append(prompt)
        self.system_prompts.append(system_prompt)
        return GenerationResult(
            content=self.content,
            finish_reason="stop",
            usage={"total_tokens": self.tokens},
            model="static",
        )

    @property
    def model_name(self):
        return "static"

    @property
    def provider(self):
        return "test"

    @property
    def context_window(self):
        return 1000


class TestLLMSpec:
    """Tests for LLMSpec dataclass."""

    @pytest.mark.unit
    def test_spec_creation(self):
        """Test creating an LLMSpec."""
        spec = LLMSpec(
            name="test-model",
            provider=LLMProviderType.OPENAI,
            context_window=128000,
            max_output_tokens=4096,
        )
        assert spec.name == "test-model"
        assert spec.provider == LLMProviderType.OPENAI
        assert not spec.requires_api_key

    @pytest.mark.unit
    def test_spec_is_local(self):
        """Only Ollama models are local."""
        assert LLMModel.OLLAMA_QWEN3.spec.is_local
        assert not LLMModel.CLAUDE_SONNET_4_5.spec.is_local


class TestLLMModel:
    """Tests for LLMModel enum registry."""

    @pytest.mark.unit
    def test_default_is_anthropic(self):
        """The overall default model is a Claude model."""
        assert DEFAULT_MODEL.spec.provider == LLMProviderType.ANTHROPIC
        assert DEFAULT_MODEL.spec.requires_api_key

    @pytest.mark.unit
    def test_by_name_lookup(self):
        """Test looking up models by name."""
        assert LLMModel.by_name("gpt-4.1-mini") == LLMModel.GPT_4_1_MINI
        assert LLMModel.by_name("claude-sonnet-4-5") == LLMModel.CLAUDE_SONNET_4_5
        assert LLMModel.by_name("nonexistent") is None

    @pytest.mark.unit
    def test_list_by_provider(self):
        """Test listing models by provider."""
        ollama_models = LLMModel.list_by_provider(LLMProviderType.OLLAMA)
        assert ollama_models
        assert all(m.spec.is_local for m in ollama_models)

    @pytest.mark.unit
    def test_get_default_model_per_provider(self):
        """Provider names resolve to their default model."""
        assert get_default_model("openai") == LLMModel.GPT_4_1_MINI
        assert get_default_model("OLLAMA") == LLMModel.OLLAMA_QWEN3
        assert get_default_model() == DEFAULT_MODEL
        with pytest.raises(ValueError, match="Unknown provider"):
            get_default_model("deepseek")


class TestGetLLMSpec:
    """Tests for get_llm_spec helper."""

    @pytest.mark.unit
    def test_from_string(self):
        assert get_llm_spec("gpt-4.1-mini").name == "gpt-4.1-mini"

    @pytest.mark.unit
    def test_from_spec(self):
        original = LLMModel.GPT_4_1_MINI.spec
        assert get_llm_spec(original) is original

    @pytest.mark.unit
    def test_unknown_model_raises(self):
        with pytest.raises(ValueError, match="Unknown model"):
            get_llm_spec("nonexistent-model")


class TestGenerationConfig:
    """Tests for GenerationConfig."""

    @pytest.mark.unit
    def test_defaults(self):
        """Test default configuration."""
        config = GenerationConfig()
        assert config.temperature == 0.2
        assert config.max_tokens == 4096
        assert config.top_p == 1.0
        assert config.seed is None
        assert config.stop_sequences == []


# =============================================================================
# Error taxonomy
# =============================================================================


class TestErrorFromStatus:
    """Tests for status-code based error classification."""

    @pytest.mark.unit
    def test_429_is_transient(self):
        """Rate limiting maps to a retryable error."""
        error = error_from_status(429, "slow down", retry_after=3.0)
        assert isinstance(error, RateLimitError)
        assert isinstance(error, TransientBackendError)
        assert error.retry_after == 3.0
        assert error.status_code == 429

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "status, expected",
        [
            (401, AuthenticationError),
            (403, AuthenticationError),
            (413, ContextLengthError),
            (400, PermanentBackendError),
            (500, PermanentBackendError),
            (None, PermanentBackendError),
        ],
    )
    def test_other_statuses_are_permanent(self, status, expected):
        """Everything but 429 is permanent."""
        error = error_from_status(status, "boom")
        assert type(error) is expected
        assert not isinstance(error, TransientBackendError)

    @pytest.mark.unit
    def test_rate_limit_text_without_status_is_permanent(self):
        """Error text alone never makes a failure retryable."""
        error = error_from_status(None, "rate limit exceeded")
        assert not isinstance(error, TransientBackendError)

    @pytest.mark.unit
    def test_retry_exhausted_keeps_last_error(self):
        """RetryExhaustedError carries the final cause."""
        cause = RateLimitError("busy")
        error = RetryExhaustedError("generate", 3, cause)
        assert error.attempts == 3
        assert error.last_error is cause
        assert error.status_code == 429
        assert "3 attempts" in str(error)

    @pytest.mark.unit
    def test_retry_after_header(self):
        """retry-after header is parsed when numeric."""
        assert retry_after_seconds(_StatusError("x", 429, {"retry-after": "7"})) == 7.0
        assert retry_after_seconds(_StatusError("x", 429, {"retry-after": "soon"})) is None
        assert retry_after_seconds(ValueError("plain")) is None


# =============================================================================
# Concrete backends
# =============================================================================


class _FakeMessages:
    def __init__(self, outcome):
        self.outcome = outcome
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class TestAnthropicBackend:
    """Tests for Anthropic backend."""

    @pytest.mark.unit
    def test_requires_api_key(self, monkeypatch):
        """Test that backend requires API key."""
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        from .anthropic import AnthropicBackend

        with pytest.raises(AuthenticationError, match="API key required"):
            AnthropicBackend()

    @pytest.mark.unit
    def test_creates_with_api_key(self):
        """Test backend creation with API key."""
        from .anthropic import AnthropicBackend

        backend = AnthropicBackend(api_key="test-key-12345")
        assert backend.provider == "anthropic"
        assert backend.model_name == "claude-sonnet-4-5"
        assert backend.name == "anthropic:claude-sonnet-4-5"

    @pytest.mark.unit
    def test_generate_joins_text_blocks(self):
        """Response text blocks are concatenated and usage is summed."""
        from .anthropic import AnthropicBackend

        backend = AnthropicBackend(api_key="k")
        response = SimpleNamespace(
            content=[SimpleNamespace(text="graph TD\n"), SimpleNamespace(text="A-->B")],
            stop_reason="end_turn",
            usage=SimpleNamespace(input_tokens=5, output_tokens=7),
            model="claude-sonnet-4-5",
        )
        messages = _FakeMessages(response)
        backend._client = SimpleNamespace(messages=messages)

        result = backend.generate("prompt", system_prompt="sys")

        assert result.content == "graph TD\nA-->B"
        assert result.usage["total_tokens"] == 12
        assert messages.kwargs["system"] == "sys"

    @pytest.mark.unit
    def test_status_429_raises_rate_limit(self):
        """SDK errors with status 429 become RateLimitError."""
        from .anthropic import AnthropicBackend

        backend = AnthropicBackend(api_key="k")
        backend._client = SimpleNamespace(
            messages=_FakeMessages(_StatusError("overloaded", 429, {"retry-after": "2"}))
        )
        with pytest.raises(RateLimitError) as exc_info:
            backend.generate("prompt")
        assert exc_info.value.retry_after == 2.0

    @pytest.mark.unit
    def test_status_400_raises_permanent(self):
        """Bad requests are permanent failures."""
        from .anthropic import AnthropicBackend

        backend = AnthropicBackend(api_key="k")
        backend._client = SimpleNamespace(
            messages=_FakeMessages(_StatusError("bad request", 400))
        )
        with pytest.raises(PermanentBackendError):
            backend.generate("prompt")

    @pytest.mark.unit
    def test_empty_content_is_invalid(self):
        """A response without text is rejected."""
        from .anthropic import AnthropicBackend

        backend = AnthropicBackend(api_key="k")
        response = SimpleNamespace(
            content=[],
            stop_reason="end_turn",
            usage=SimpleNamespace(input_tokens=1, output_tokens=0),
            model="m",
        )
        backend._client = SimpleNamespace(messages=_FakeMessages(response))
        with pytest.raises(InvalidResponseError):
            backend.generate("prompt")


class TestOpenAIBackend:
    """Tests for OpenAI backend."""

    @pytest.mark.unit
    def test_requires_api_key(self, monkeypatch):
        """Test that backend requires API key."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        from .openai import OpenAIBackend

        with pytest.raises(AuthenticationError, match="API key required"):
            OpenAIBackend()

    @pytest.mark.unit
    def test_status_429_raises_rate_limit(self):
        """SDK errors with status 429 become RateLimitError."""
        from .openai import OpenAIBackend

        backend = OpenAIBackend(api_key="k")
        completions = _FakeMessages(_StatusError("rate limited", 429))
        backend._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        with pytest.raises(RateLimitError):
            backend.generate("prompt")


class TestOllamaBackend:
    """Tests for Ollama backend."""

    @pytest.mark.unit
    def test_no_api_key_required(self, monkeypatch):
        """Ollama needs no key and reads its host from OLLAMA_HOST."""
        monkeypatch.setenv("OLLAMA_HOST", "http://gpu-box:11434")
        from .ollama import OllamaBackend

        backend = OllamaBackend()
        assert backend.provider == "ollama"
        assert backend.model_name == "qwen3"
        assert backend._base_url == "http://gpu-box:11434"

    @pytest.mark.unit
    def test_connection_refused_is_permanent(self):
        """An unreachable server is not retried."""
        from .ollama import OllamaBackend

        def _refuse(**kwargs):
            raise ConnectionError("refused")

        backend = OllamaBackend(base_url="http://localhost:1")
        backend._client = SimpleNamespace(chat=_refuse)
        with pytest.raises(PermanentBackendError, match="Cannot connect"):
            backend.generate("prompt")

    @pytest.mark.unit
    def test_generate_reads_message(self):
        """Chat responses are unpacked into a GenerationResult."""
        from .ollama import OllamaBackend

        backend = OllamaBackend(model="llama3.2", base_url="http://localhost:1")
        backend._client = SimpleNamespace(
            chat=lambda **kwargs: {
                "message": {"content": "pie\n  \"a\" : 1"},
                "prompt_eval_count": 3,
                "eval_count": 4,
            }
        )
        result = backend.generate("prompt")
        assert result.content.startswith("pie")
        assert result.usage["total_tokens"] == 7


class TestCreateLLMBackend:
    """Tests for create_llm_backend factory."""

    @pytest.mark.unit
    def test_creates_openai_backend(self):
        backend = create_llm_backend(LLMModel.GPT_4_1_MINI, api_key="test-key")
        assert backend.provider == "openai"

    @pytest.mark.unit
    def test_creates_anthropic_backend(self):
        backend = create_llm_backend(LLMModel.CLAUDE_SONNET_4_5, api_key="test-key")
        assert backend.provider == "anthropic"

    @pytest.mark.unit
    def test_creates_ollama_backend(self):
        backend = create_llm_backend(LLMModel.OLLAMA_QWEN3)
        assert backend.provider == "ollama"

    @pytest.mark.unit
    def test_default_follows_environment(self, monkeypatch):
        """MMGEN_MODEL selects the model when none is passed."""
        monkeypatch.setenv("MMGEN_MODEL", "llama3.2")
        backend = create_llm_backend()
        assert backend.model_name == "llama3.2"

    @pytest.mark.unit
    def test_provider_picks_default_model(self, monkeypatch):
        """A provider name alone selects that provider's default model."""
        monkeypatch.delenv("MMGEN_MODEL", raising=False)
        backend = create_llm_backend(provider="ollama")
        assert backend.model_name == "qwen3"


# =============================================================================
# Async client adapter
# =============================================================================


class TestBackendTextClient:
    """Tests for the async adapter over synchronous backends."""

    @pytest.mark.unit
    def test_satisfies_protocol(self):
        assert isinstance(BackendTextClient(_StaticBackend()), TextGenerationClient)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generate_returns_content(self):
        """Content is returned and usage is accumulated."""
        backend = _StaticBackend(tokens=10)
        client = BackendTextClient(backend, system_prompt="be terse")

        first = await client.generate("one")
        await client.generate("two")

        assert first == "graph TD\n  A --> B"
        assert client.calls == 2
        assert client.total_tokens == 20
        assert backend.prompts == ["one", "two"]
        assert backend.system_prompts == ["be terse", "be terse"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_blank_response_is_invalid(self):
        """Whitespace-only completions are rejected."""
        client = BackendTextClient(_StaticBackend(content="   \n"))
        with pytest.raises(InvalidResponseError):
            await client.generate("prompt")
