"""Persistence abstraction layer for audio artifacts."""

from narration.lib.config import StorageConfig
from narration.lib.exceptions import ConfigError
from narration.services.storage.base import ArtifactStore, PersistenceError
from narration.services.storage.filesystem import FileArtifactStore
from narration.services.storage.memory import InMemoryArtifactStore


def create_artifact_store(config: StorageConfig) -> ArtifactStore:
    """Create the artifact store selected by configuration."""
    if config.backend == "file":
        return FileArtifactStore(config.storage_path)
    if config.backend == "memory":
        return InMemoryArtifactStore()
    raise ConfigError(f"Unknown storage backend '{config.backend}'. Use 'file' or 'memory'.")


__all__ = [
    "ArtifactStore",
    "PersistenceError",
    "FileArtifactStore",
    "InMemoryArtifactStore",
    "create_artifact_store",
]
