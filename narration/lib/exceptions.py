"""Exception hierarchy for the narration engine.

All custom exceptions inherit from NarrationError to enable
selective catching at different levels.

Hierarchy:
    NarrationError (base)
    ├── ConfigError - Configuration issues (missing env vars)
    ├── ValidationError - Input validation failures
    ├── SynthesisError - One call to the speech model failed
    ├── PersistenceError - Artifact store read/write failures
    │   └── MetadataConsistencyError - Stored metadata disagrees with a new split
    └── GenerationFailedError - Zero chunks could be produced
"""

from enum import Enum
from typing import Any


class NarrationError(Exception):
    """
    Base exception for all narration errors.

    Catching this will catch all custom exceptions from this module.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(NarrationError):
    """
    Configuration error.

    Raised when required configuration is missing or invalid.
    Examples: missing API token, unknown storage backend.

    CLI Exit Code: 2
    """

    pass


class ValidationError(NarrationError):
    """
    Input validation error.

    Raised when input data fails validation rules.
    Examples: empty article text, chunk index out of range.

    CLI Exit Code: 3
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class SynthesisErrorKind(str, Enum):
    """Classification of a failed synthesis call.

    The kind is diagnostic: callers retry every kind the same way.
    """

    EMPTY_RESPONSE = "empty_response"
    API_ERROR = "api_error"
    UNEXPECTED_SHAPE = "unexpected_shape"
    TIMEOUT = "timeout"


class SynthesisError(NarrationError):
    """
    Speech model communication error for a single call.

    Attributes:
        kind: SynthesisErrorKind classification
        chunk_index: Index of the chunk being synthesized, if known
        details: Extra diagnostic data (response keys, preview, ...)
    """

    def __init__(
        self,
        message: str,
        kind: SynthesisErrorKind = SynthesisErrorKind.API_ERROR,
        chunk_index: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.kind = SynthesisErrorKind(kind)
        self.chunk_index = chunk_index
        self.details = details or {}
        super().__init__(message)


class PersistenceError(NarrationError):
    """
    Artifact store read/write error.

    CLI Exit Code: 5

    Attributes:
        key: Storage key that caused the error
        operation: Operation that failed (get, put, delete, head, list)
    """

    def __init__(self, message: str, key: str | None = None, operation: str | None = None):
        self.key = key
        self.operation = operation
        super().__init__(message)


class MetadataConsistencyError(PersistenceError):
    """
    Stored chunk metadata disagrees with a freshly computed split.

    Never resolved by overwriting; the stored metadata must be
    invalidated explicitly before the article can be re-chunked.
    """

    def __init__(self, message: str, key: str | None = None, stored_total: int = 0, new_total: int = 0):
        self.stored_total = stored_total
        self.new_total = new_total
        super().__init__(message, key=key, operation="initialize")


class GenerationFailedError(NarrationError):
    """
    Total generation failure: a dispatch ran and no chunk exists at all.

    CLI Exit Code: 4

    Attributes:
        details: Structured diagnostic payload (counts, failed indices,
            per-chunk errors, remediation hints)
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.details = details or {}
        super().__init__(message)
