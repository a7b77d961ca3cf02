"""Shared utilities and configuration."""

from narration.lib.timestamps import generate_timestamp
from narration.lib.exceptions import (
    NarrationError,
    ConfigError,
    ValidationError,
    SynthesisError,
    SynthesisErrorKind,
    PersistenceError,
    MetadataConsistencyError,
    GenerationFailedError,
)

__all__ = [
    "generate_timestamp",
    "NarrationError",
    "ConfigError",
    "ValidationError",
    "SynthesisError",
    "SynthesisErrorKind",
    "PersistenceError",
    "MetadataConsistencyError",
    "GenerationFailedError",
]
