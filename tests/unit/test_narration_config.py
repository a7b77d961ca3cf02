"""Unit tests for configuration management."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from narration.lib.config import (
    GenerationConfig,
    ServerConfig,
    StorageConfig,
    SynthesisConfig,
    get_generation_config,
    get_synthesis_config,
    reset_all_configs,
)
from narration.lib.exceptions import ConfigError


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove configuration variables that may be set on the host or in a .env file."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "CLOUDFLARE_ACCOUNT_ID",
        "CLOUDFLARE_API_TOKEN",
        "SYNTHESIS_MODEL",
        "SYNTHESIS_GATEWAY_ID",
        "MAX_CHUNK_LENGTH",
        "DISPATCH_BATCH_SIZE",
        "STORAGE_BACKEND",
        "STORAGE_DIR",
        "STORAGE_KEY_PREFIX",
        "CLIENT_RETRY_SCHEDULE",
    ):
        monkeypatch.delenv(name, raising=False)


class TestSynthesisConfig:
    """Tests for SynthesisConfig."""

    def test_defaults(self, clean_env):
        config = SynthesisConfig(_env_file=None)

        assert config.model == "@cf/deepgram/aura-1"
        assert config.base_url == "https://api.cloudflare.com/client/v4"
        assert config.gateway_id is None
        assert config.timeout_seconds == 60
        assert not config.is_configured()

    def test_env_var_override(self, clean_env, monkeypatch):
        monkeypatch.setenv("CLOUDFLARE_ACCOUNT_ID", "acct-123")
        monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "token-abc")
        monkeypatch.setenv("SYNTHESIS_MODEL", "@cf/myshell-ai/melotts")

        config = SynthesisConfig(_env_file=None)

        assert config.account_id == "acct-123"
        assert config.api_token == "token-abc"
        assert config.model == "@cf/myshell-ai/melotts"
        assert config.is_configured()

    def test_validate_credentials_missing_account(self, clean_env):
        config = SynthesisConfig(_env_file=None, api_token="token")
        with pytest.raises(ConfigError) as exc_info:
            config.validate_credentials()
        assert "CLOUDFLARE_ACCOUNT_ID" in exc_info.value.message

    def test_validate_credentials_missing_token(self, clean_env):
        config = SynthesisConfig(_env_file=None, account_id="acct")
        with pytest.raises(ConfigError) as exc_info:
            config.validate_credentials()
        assert "CLOUDFLARE_API_TOKEN" in exc_info.value.message

    def test_validate_credentials_success(self, clean_env):
        # Should not raise
        SynthesisConfig(_env_file=None, account_id="acct", api_token="token").validate_credentials()


class TestGenerationConfig:
    """Tests for GenerationConfig."""

    def test_defaults(self, clean_env):
        config = GenerationConfig(_env_file=None)
        assert config.max_chunk_length == 1250
        assert config.dispatch_batch_size == 3

    def test_env_var_override(self, clean_env, monkeypatch):
        monkeypatch.setenv("MAX_CHUNK_LENGTH", "500")
        monkeypatch.setenv("DISPATCH_BATCH_SIZE", "5")

        config = GenerationConfig(_env_file=None)

        assert config.max_chunk_length == 500
        assert config.dispatch_batch_size == 5

    def test_batch_size_must_be_positive(self, clean_env, monkeypatch):
        monkeypatch.setenv("DISPATCH_BATCH_SIZE", "0")
        with pytest.raises(PydanticValidationError):
            GenerationConfig(_env_file=None)


class TestStorageConfig:

    def test_defaults(self, clean_env):
        config = StorageConfig(_env_file=None)
        assert config.backend == "file"
        assert config.key_prefix == ""
        assert str(config.storage_path) == "storage"

    def test_prefix_override(self, clean_env, monkeypatch):
        monkeypatch.setenv("STORAGE_KEY_PREFIX", "blogs")
        assert StorageConfig(_env_file=None).key_prefix == "blogs"


class TestServerConfig:
    """Tests for ServerConfig and the client retry schedule."""

    def test_default_retry_schedule(self, clean_env):
        assert ServerConfig(_env_file=None).retry_delays == [30, 60, 120, 300]

    def test_cache_defaults(self, clean_env):
        config = ServerConfig(_env_file=None)
        assert config.complete_cache_seconds == 31536000
        assert config.partial_cache_seconds == 300

    def test_custom_retry_schedule(self, clean_env, monkeypatch):
        monkeypatch.setenv("CLIENT_RETRY_SCHEDULE", "5, 10 ,20")
        assert ServerConfig(_env_file=None).retry_delays == [5, 10, 20]

    @pytest.mark.parametrize("schedule", ["", "fast", "10,-1", " , "])
    def test_invalid_retry_schedule(self, clean_env, schedule):
        config = ServerConfig(_env_file=None, client_retry_schedule=schedule)
        with pytest.raises(ConfigError):
            config.retry_delays


class TestLazyGetters:
    """Tests for the cached configuration getters."""

    def test_getter_caches_instance(self, clean_env):
        assert get_generation_config() is get_generation_config()

    def test_reset_reloads_from_environment(self, clean_env, monkeypatch):
        assert get_synthesis_config().account_id == ""

        monkeypatch.setenv("CLOUDFLARE_ACCOUNT_ID", "acct-new")
        assert get_synthesis_config().account_id == ""

        reset_all_configs()
        assert get_synthesis_config().account_id == "acct-new"
