"""Chunk data models.

This module defines the data structures for:
- TextChunk: One sentence-aligned slice of article text
- ChunkMetadata: Durable per-article record of chunked generation progress
- ChunkStatus: Snapshot of what is in storage for an article
- ChunkFailure: One failed synthesis in a dispatch batch
- GenerationResult: Outcome of one orchestration pass
"""

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from narration.lib.timestamps import generate_timestamp


@dataclass(frozen=True)
class TextChunk:
    """A bounded, sentence-aligned slice of article text.

    Attributes:
        index: Playback position (0-based)
        text: Chunk text, trimmed
    """

    index: int
    text: str

    def __post_init__(self):
        """Validate chunk fields."""
        if self.index < 0:
            raise ValueError("Chunk index cannot be negative")


class ChunkMetadata(BaseModel):
    """
    Progress record for an article whose audio is still incomplete.

    Stored as JSON using the camelCase field names of the wire format
    (totalChunks, completedChunks, chunkSizes, textChunks, lastUpdated).
    Instances are treated as immutable: with_completed() returns a copy.

    Invariants:
        - completed_chunks is sorted, unique and within [0, total_chunks)
        - chunk_sizes[i] is set iff i is in completed_chunks
        - len(text_chunks) == len(chunk_sizes) == total_chunks
    """

    total_chunks: int = Field(..., ge=0, alias="totalChunks")
    completed_chunks: list[int] = Field(default_factory=list, alias="completedChunks")
    chunk_sizes: list[int | None] = Field(default_factory=list, alias="chunkSizes")
    text_chunks: list[str] = Field(default_factory=list, alias="textChunks")
    last_updated: datetime = Field(default_factory=generate_timestamp, alias="lastUpdated")

    model_config = {
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_chunk_consistency(self) -> "ChunkMetadata":
        """Validate indices and normalize chunk sizes against completed chunks."""
        from narration.lib.exceptions import ValidationError

        if len(self.text_chunks) != self.total_chunks:
            raise ValidationError(
                f"textChunks has {len(self.text_chunks)} entries, expected {self.total_chunks}",
                field="textChunks",
            )

        completed = sorted(set(self.completed_chunks))
        for index in completed:
            if index < 0 or index >= self.total_chunks:
                raise ValidationError(
                    f"Completed chunk {index} outside [0, {self.total_chunks})",
                    field="completedChunks",
                )

        # Older records fill chunkSizes with 0 for chunks that are not done yet
        sizes: list[int | None] = []
        completed_set = set(completed)
        for index in range(self.total_chunks):
            size = self.chunk_sizes[index] if index < len(self.chunk_sizes) else None
            if index in completed_set:
                if size is None:
                    raise ValidationError(
                        f"Completed chunk {index} has no recorded size", field="chunkSizes"
                    )
                sizes.append(size)
            else:
                sizes.append(None)

        object.__setattr__(self, "completed_chunks", completed)
        object.__setattr__(self, "chunk_sizes", sizes)
        return self

    @classmethod
    def create(cls, text_chunks: list[str]) -> "ChunkMetadata":
        """Create fresh metadata for a new chunked generation."""
        return cls(
            total_chunks=len(text_chunks),
            completed_chunks=[],
            chunk_sizes=[None] * len(text_chunks),
            text_chunks=list(text_chunks),
        )

    def with_completed(self, index: int, size_bytes: int) -> "ChunkMetadata":
        """
        Create a new ChunkMetadata with the chunk marked as complete.

        Marking an already completed chunk again does not duplicate the
        index; its size is overwritten with the latest value.

        Args:
            index: Chunk index that was persisted
            size_bytes: Byte length of the persisted chunk

        Returns:
            New ChunkMetadata instance with updated state
        """
        from narration.lib.exceptions import ValidationError

        if index < 0 or index >= self.total_chunks:
            raise ValidationError(
                f"Chunk index {index} outside [0, {self.total_chunks})", field="index"
            )
        if size_bytes < 0:
            raise ValidationError("Chunk size cannot be negative", field="size_bytes")

        sizes = list(self.chunk_sizes)
        sizes[index] = size_bytes

        return ChunkMetadata(
            total_chunks=self.total_chunks,
            completed_chunks=sorted(set(self.completed_chunks) | {index}),
            chunk_sizes=sizes,
            text_chunks=self.text_chunks,
            last_updated=generate_timestamp(),
        )

    @property
    def missing_chunks(self) -> list[int]:
        """Indices not yet recorded as completed."""
        completed = set(self.completed_chunks)
        return [index for index in range(self.total_chunks) if index not in completed]

    @property
    def is_fully_completed(self) -> bool:
        """Whether every chunk has been recorded as completed."""
        return len(self.completed_chunks) == self.total_chunks

    def to_json(self) -> str:
        """Serialize with the camelCase wire field names."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str | bytes) -> "ChunkMetadata":
        """Parse a stored metadata record."""
        return cls.model_validate_json(data)


@dataclass
class ChunkStatus:
    """Snapshot of an article's audio artifacts in storage.

    Attributes:
        is_complete: Every chunk (or the complete artifact) is present
        total_chunks: Chunk count; 0 means generation never started
        available_indices: Every index with a persisted chunk artifact
        missing_indices: Indices without a persisted chunk artifact
        assembled_prefix: Contiguous run from chunk 0, concatenated
        finalized: The complete artifact exists
    """

    is_complete: bool
    total_chunks: int
    available_indices: list[int] = field(default_factory=list)
    missing_indices: list[int] = field(default_factory=list)
    assembled_prefix: bytes | None = None
    finalized: bool = False

    @property
    def contiguous_count(self) -> int:
        """Length of the run of available chunks starting at index 0."""
        count = 0
        available = set(self.available_indices)
        while count in available:
            count += 1
        return count

    @property
    def never_started(self) -> bool:
        """No metadata and no complete artifact exist."""
        return not self.finalized and self.total_chunks == 0


@dataclass
class ChunkFailure:
    """One chunk whose synthesis or persistence failed in a batch.

    Attributes:
        index: Chunk index
        kind: Error classification (SynthesisErrorKind value or exception name)
        message: Error description
    """

    index: int
    kind: str
    message: str

    def as_dict(self) -> dict:
        return {"index": self.index, "kind": self.kind, "message": self.message}


@dataclass
class GenerationResult:
    """Outcome of one orchestration pass for an article.

    Attributes:
        article_id: Article namespace
        is_complete: The complete artifact exists
        total_chunks: Chunk count (1 when served from the complete artifact)
        available_indices: Persisted chunk indices
        missing_indices: Chunk indices still to generate
        audio: Playable audio (complete artifact or contiguous prefix)
        dispatched_indices: Chunks synthesized during this pass
        failures: Chunks that failed during this pass
        from_cache: Complete artifact was already present before this pass
    """

    article_id: str
    is_complete: bool
    total_chunks: int
    available_indices: list[int] = field(default_factory=list)
    missing_indices: list[int] = field(default_factory=list)
    audio: bytes | None = None
    dispatched_indices: list[int] = field(default_factory=list)
    failures: list[ChunkFailure] = field(default_factory=list)
    from_cache: bool = False

    @property
    def status(self) -> str:
        """'complete' or 'partial', as reported in X-Audio-Status."""
        return "complete" if self.is_complete else "partial"

    @property
    def failed_indices(self) -> list[int]:
        return sorted(failure.index for failure in self.failures)
