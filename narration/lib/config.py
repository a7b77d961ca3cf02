"""Configuration management via environment variables and pydantic-settings."""

from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field


class SynthesisConfig(BaseSettings):
    """Configuration for the text-to-speech model endpoint.

    The default target is the Cloudflare Workers AI REST API running
    the Deepgram Aura-1 model.
    """

    account_id: str = Field(
        default="",
        alias="CLOUDFLARE_ACCOUNT_ID",
        description="Cloudflare account that owns the Workers AI binding",
    )

    api_token: str = Field(
        default="",
        alias="CLOUDFLARE_API_TOKEN",
        description="API token with Workers AI permissions",
    )

    model: str = Field(
        default="@cf/deepgram/aura-1",
        alias="SYNTHESIS_MODEL",
        description="Text-to-speech model identifier",
    )

    base_url: str = Field(
        default="https://api.cloudflare.com/client/v4",
        alias="SYNTHESIS_BASE_URL",
        description="Base URL of the Workers AI REST API",
    )

    gateway_id: str | None = Field(
        default=None,
        alias="SYNTHESIS_GATEWAY_ID",
        description="Optional AI Gateway id used to route model calls",
    )

    timeout_seconds: int = Field(
        default=60,
        alias="SYNTHESIS_TIMEOUT_SECONDS",
        description="Timeout for a single synthesis call in seconds",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def is_configured(self) -> bool:
        """Check if credentials for the model endpoint are present."""
        return bool(self.account_id) and bool(self.api_token)

    def validate_credentials(self) -> None:
        """
        Validate that the endpoint credentials are present.

        Raises:
            ConfigError: If required configuration is missing
        """
        from narration.lib.exceptions import ConfigError

        if not self.account_id:
            raise ConfigError(
                "Missing Cloudflare account id. Set the CLOUDFLARE_ACCOUNT_ID environment variable."
            )
        if not self.api_token:
            raise ConfigError(
                "Missing Cloudflare API token. Set the CLOUDFLARE_API_TOKEN environment variable."
            )


class GenerationConfig(BaseSettings):
    """Configuration for chunking and dispatch of audio generation."""

    max_chunk_length: int = Field(
        default=1250,
        ge=1,
        alias="MAX_CHUNK_LENGTH",
        description="Maximum characters per text chunk sent to the model",
    )

    dispatch_batch_size: int = Field(
        default=3,
        ge=1,
        alias="DISPATCH_BATCH_SIZE",
        description="Maximum number of missing chunks synthesized per request",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }


class StorageConfig(BaseSettings):
    """Configuration for the artifact store."""

    backend: str = Field(
        default="file",
        alias="STORAGE_BACKEND",
        description="Artifact store backend: file or memory",
    )

    storage_dir: str = Field(
        default="./storage",
        alias="STORAGE_DIR",
        description="Root directory for the file backend",
    )

    key_prefix: str = Field(
        default="",
        alias="STORAGE_KEY_PREFIX",
        description="Namespace prepended to article ids (e.g. 'blogs')",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @property
    def storage_path(self) -> Path:
        """Get storage directory as Path."""
        return Path(self.storage_dir)


class ServerConfig(BaseSettings):
    """Configuration for the HTTP surface and the client retry contract."""

    host: str = Field(default="127.0.0.1", alias="SERVER_HOST")

    port: int = Field(default=8000, alias="SERVER_PORT")

    complete_cache_seconds: int = Field(
        default=31536000,
        alias="COMPLETE_CACHE_SECONDS",
        description="Cache-Control max-age for complete audio",
    )

    partial_cache_seconds: int = Field(
        default=300,
        alias="PARTIAL_CACHE_SECONDS",
        description="Cache-Control max-age for partial audio",
    )

    client_retry_schedule: str = Field(
        default="30,60,120,300",
        alias="CLIENT_RETRY_SCHEDULE",
        description="Comma-separated delays (seconds) between client polls",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @property
    def retry_delays(self) -> list[int]:
        """Parse the retry schedule into a list of delays in seconds."""
        from narration.lib.exceptions import ConfigError

        try:
            delays = [int(part) for part in self.client_retry_schedule.split(",") if part.strip()]
        except ValueError:
            raise ConfigError(f"Invalid CLIENT_RETRY_SCHEDULE: {self.client_retry_schedule!r}")
        if not delays or any(delay < 0 for delay in delays):
            raise ConfigError(f"Invalid CLIENT_RETRY_SCHEDULE: {self.client_retry_schedule!r}")
        return delays


# Config instances (lazy loaded)
_synthesis_config: SynthesisConfig | None = None
_generation_config: GenerationConfig | None = None
_storage_config: StorageConfig | None = None
_server_config: ServerConfig | None = None


def get_synthesis_config() -> SynthesisConfig:
    """Get the synthesis configuration instance."""
    global _synthesis_config
    if _synthesis_config is None:
        _synthesis_config = SynthesisConfig()
    return _synthesis_config


def get_generation_config() -> GenerationConfig:
    """Get the generation configuration instance."""
    global _generation_config
    if _generation_config is None:
        _generation_config = GenerationConfig()
    return _generation_config


def get_storage_config() -> StorageConfig:
    """Get the storage configuration instance."""
    global _storage_config
    if _storage_config is None:
        _storage_config = StorageConfig()
    return _storage_config


def get_server_config() -> ServerConfig:
    """Get the server configuration instance."""
    global _server_config
    if _server_config is None:
        _server_config = ServerConfig()
    return _server_config


def reset_all_configs() -> None:
    """Reset all configuration instances (useful for testing)."""
    global _synthesis_config, _generation_config, _storage_config, _server_config
    _synthesis_config = None
    _generation_config = None
    _storage_config = None
    _server_config = None
