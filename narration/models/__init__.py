"""Domain models for chunked narration audio."""

from narration.models.chunks import (
    TextChunk,
    ChunkMetadata,
    ChunkStatus,
    ChunkFailure,
    GenerationResult,
)

__all__ = [
    "TextChunk",
    "ChunkMetadata",
    "ChunkStatus",
    "ChunkFailure",
    "GenerationResult",
]
