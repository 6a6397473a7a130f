"""Tests for configuration management."""

import httpx
import pytest

from .lib import (
    EnvConfig,
    EnvVar,
    GenerationSettings,
    get_available_llm_providers,
    get_environment,
    get_environment_info,
    get_source_root,
    list_environment_variables,
    load_settings,
)

_BUDGET_VARS = (
    "MERMAID_FIX_RETRIES",
    "MMGEN_RETRY_ATTEMPTS",
    "MMGEN_RETRY_BASE_DELAY",
    "MMGEN_MAX_CONCURRENCY",
)


@pytest.fixture
def clean_budget_env(monkeypatch):
    """Remove all generation budget variables from the environment."""
    for name in _BUDGET_VARS:
        monkeypatch.delenv(name, raising=False)


# =============================================================================
# Tests for get_environment (main interface)
# =============================================================================


class TestGetEnvironment:
    """Tests for the unified get_environment interface."""

    @pytest.mark.unit
    def test_returns_default_when_not_set(self, monkeypatch):
        """Returns default value when env var is not set."""
        monkeypatch.delenv("MERMAID_FIX_RETRIES", raising=False)
        assert get_environment(EnvVar.MERMAID_FIX_RETRIES) == 3

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("MERMAID_FIX_RETRIES", "9")
        assert get_environment(EnvVar.MERMAID_FIX_RETRIES, override=5) == 5

    @pytest.mark.unit
    def test_env_var_overrides_default(self, monkeypatch):
        """Environment variable overrides default value."""
        monkeypatch.setenv("MERMAID_FIX_RETRIES", "7")
        result = get_environment(EnvVar.MERMAID_FIX_RETRIES)
        assert result == 7
        assert isinstance(result, int)

    @pytest.mark.unit
    def test_float_type_conversion(self, monkeypatch):
        """Float type conversion from string."""
        monkeypatch.setenv("MMGEN_RETRY_BASE_DELAY", "0.5")
        result = get_environment(EnvVar.MMGEN_RETRY_BASE_DELAY)
        assert result == 0.5
        assert isinstance(result, float)

    @pytest.mark.unit
    def test_invalid_int_returns_default(self, monkeypatch):
        """Invalid integer value returns default."""
        monkeypatch.setenv("MMGEN_MAX_CONCURRENCY", "not-a-number")
        assert get_environment(EnvVar.MMGEN_MAX_CONCURRENCY) == 2

    @pytest.mark.unit
    def test_non_positive_budget_returns_default(self, monkeypatch):
        """Zero and negative budgets fall back to the default."""
        for value in ("0", "-4"):
            monkeypatch.setenv("MERMAID_FIX_RETRIES", value)
            assert get_environment(EnvVar.MERMAID_FIX_RETRIES) == 3

    @pytest.mark.unit
    def test_string_type(self, monkeypatch):
        """String type returns as-is."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        result = get_environment(EnvVar.ANTHROPIC_API_KEY)
        assert result == "sk-ant-test"

    @pytest.mark.unit
    def test_none_default_for_api_keys(self, monkeypatch):
        """API keys default to None when not set."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert get_environment(EnvVar.OPENAI_API_KEY) is None


class TestGetEnvironmentInfo:
    """Tests for environment variable metadata."""

    @pytest.mark.unit
    def test_returns_env_config(self):
        """Returns EnvConfig dataclass."""
        info = get_environment_info(EnvVar.MMGEN_MAX_CONCURRENCY)
        assert isinstance(info, EnvConfig)
        assert info.name == "MMGEN_MAX_CONCURRENCY"
        assert info.default == 2
        assert info.var_type is int
        assert info.category == "generation"

    @pytest.mark.unit
    def test_description_present(self):
        """Description field is populated."""
        info = get_environment_info(EnvVar.ANTHROPIC_API_KEY)
        assert "Anthropic" in info.description


class TestListEnvironmentVariables:
    """Tests for listing environment variables."""

    @pytest.mark.unit
    def test_returns_all_variables(self):
        """Returns all EnvVar members when no category."""
        result = list_environment_variables()
        assert len(result) == len(EnvVar)

    @pytest.mark.unit
    def test_filter_by_category(self):
        """Filters by category correctly."""
        generation = list_environment_variables("generation")
        assert EnvVar.MERMAID_FIX_RETRIES in generation
        assert EnvVar.MMGEN_MAX_CONCURRENCY in generation
        assert EnvVar.ANTHROPIC_API_KEY not in generation


# =============================================================================
# Tests for load_settings
# =============================================================================


class TestLoadSettings:
    """Tests for resolving GenerationSettings."""

    @pytest.mark.unit
    def test_defaults(self, clean_budget_env):
        """Defaults match the documented budgets."""
        settings = load_settings()
        assert settings == GenerationSettings(
            max_fix_retries=3,
            retry_max_attempts=3,
            retry_base_delay=2.0,
            max_concurrency=2,
        )

    @pytest.mark.unit
    def test_reads_environment(self, clean_budget_env, monkeypatch):
        """Environment values are picked up once at load time."""
        monkeypatch.setenv("MERMAID_FIX_RETRIES", "5")
        monkeypatch.setenv("MMGEN_MAX_CONCURRENCY", "4")
        settings = load_settings()
        assert settings.max_fix_retries == 5
        assert settings.max_concurrency == 4

    @pytest.mark.unit
    def test_overrides_beat_environment(self, clean_budget_env, monkeypatch):
        """Explicit keyword overrides win over the environment."""
        monkeypatch.setenv("MMGEN_RETRY_BASE_DELAY", "9.0")
        settings = load_settings(retry_base_delay=0.25)
        assert settings.retry_base_delay == 0.25

    @pytest.mark.unit
    def test_settings_are_snapshots(self, clean_budget_env, monkeypatch):
        """Changing the environment later does not affect loaded settings."""
        settings = load_settings()
        monkeypatch.setenv("MERMAID_FIX_RETRIES", "8")
        assert settings.max_fix_retries == 3

    @pytest.mark.unit
    def test_rejects_zero_concurrency(self):
        """Concurrency must allow at least one call."""
        with pytest.raises(ValueError, match="max_concurrency"):
            GenerationSettings(max_concurrency=0)

    @pytest.mark.unit
    def test_rejects_zero_attempts(self):
        """Retry attempts must be at least one."""
        with pytest.raises(ValueError, match="retry_max_attempts"):
            GenerationSettings(retry_max_attempts=0)


class TestGetSourceRoot:
    """Tests for source root resolution."""

    @pytest.mark.unit
    def test_override_takes_priority(self, tmp_path, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("MMGEN_SOURCE_ROOT", str(tmp_path / "env"))
        assert get_source_root(tmp_path / "override") == tmp_path / "override"

    @pytest.mark.unit
    def test_env_var_used(self, tmp_path, monkeypatch):
        """MMGEN_SOURCE_ROOT used when no override."""
        monkeypatch.setenv("MMGEN_SOURCE_ROOT", str(tmp_path))
        assert get_source_root().resolve() == tmp_path.resolve()

    @pytest.mark.unit
    def test_defaults_to_cwd(self, tmp_path, monkeypatch):
        """Falls back to the current working directory."""
        monkeypatch.delenv("MMGEN_SOURCE_ROOT", raising=False)
        monkeypatch.chdir(tmp_path)
        assert get_source_root().resolve() == tmp_path.resolve()


class TestGetAvailableProviders:
    """Tests for provider discovery."""

    @pytest.fixture
    def ollama_down(self, monkeypatch):
        """Make the Ollama probe fail."""

        def _refuse(*args, **kwargs):
            raise httpx.ConnectError("connection refused")

        monkeypatch.setattr(httpx, "get", _refuse)

    @pytest.mark.unit
    def test_no_providers(self, monkeypatch, ollama_down):
        """Nothing available without keys or a running Ollama."""
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert get_available_llm_providers() == []

    @pytest.mark.unit
    def test_keys_enable_cloud_providers(self, monkeypatch, ollama_down):
        """Configured API keys list their providers."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "a")
        monkeypatch.setenv("OPENAI_API_KEY", "b")
        assert get_available_llm_providers() == ["anthropic", "openai"]

    @pytest.mark.unit
    def test_running_ollama_detected(self, monkeypatch):
        """A healthy Ollama tags endpoint adds the local provider."""
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setattr(
            httpx, "get", lambda *args, **kwargs: httpx.Response(200, json={})
        )
        assert get_available_llm_providers() == ["ollama"]
