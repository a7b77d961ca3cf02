"""Durable chunk metadata for in-progress audio generation.

One JSON record per article ({article_id}/audio-metadata.json) holds the
chunk count, completed indices, chunk sizes and the original chunk
texts. Every operation is a read-modify-write against the artifact
store. Two requests racing on the same article may both write and the
last write wins; chunk status is always read from the chunk artifacts,
so a lost completedChunks entry never hides a stored chunk.
"""

import logging

from narration.lib.exceptions import MetadataConsistencyError, PersistenceError, ValidationError
from narration.models.chunks import ChunkMetadata
from narration.services.storage.base import ArtifactStore
from narration.services.storage.keys import JSON_CONTENT_TYPE, metadata_key

logger = logging.getLogger(__name__)


class ChunkMetadataTracker:
    """
    Reads and writes ChunkMetadata records in the artifact store.

    Example:
        >>> tracker = ChunkMetadataTracker(store)
        >>> metadata = await tracker.initialize("my-post", ["First.", "Second."])
        >>> metadata = await tracker.mark_completed("my-post", 0, 48213)
        >>> metadata.completed_chunks
        [0]
    """

    def __init__(self, store: ArtifactStore):
        self._store = store

    async def initialize(self, article_id: str, text_chunks: list[str]) -> ChunkMetadata:
        """
        Create metadata for a new chunked generation.

        If a record already exists with the same chunk count it is
        returned untouched, so completed chunks are never forgotten.

        Raises:
            MetadataConsistencyError: A record exists with a different chunk count
        """
        existing = await self.get(article_id)
        if existing is not None:
            if existing.total_chunks != len(text_chunks):
                raise MetadataConsistencyError(
                    f"Metadata for {article_id} has {existing.total_chunks} chunks but the new split "
                    f"has {len(text_chunks)}. Invalidate the article to re-chunk it.",
                    key=metadata_key(article_id),
                    stored_total=existing.total_chunks,
                    new_total=len(text_chunks),
                )
            logger.debug(f"Reusing existing metadata for {article_id} ({existing.total_chunks} chunks)")
            return existing

        metadata = ChunkMetadata.create(text_chunks)
        await self._save(article_id, metadata)
        logger.info(f"Initialized audio metadata for {article_id}: {metadata.total_chunks} chunks")
        return metadata

    async def get(self, article_id: str) -> ChunkMetadata | None:
        """
        Load metadata, or None if generation never started or already finished.

        Raises:
            PersistenceError: If the record cannot be read or parsed
        """
        key = metadata_key(article_id)
        raw = await self._store.get(key)
        if raw is None:
            return None

        try:
            return ChunkMetadata.from_json(raw)
        except (ValueError, ValidationError) as e:
            raise PersistenceError(f"Invalid chunk metadata: {e}", key=key, operation="get")

    async def mark_completed(self, article_id: str, index: int, size_bytes: int) -> ChunkMetadata:
        """
        Record a persisted chunk. Idempotent per index.

        Raises:
            PersistenceError: If no metadata exists or the write fails
            ValidationError: If index is outside [0, total_chunks)
        """
        metadata = await self.get(article_id)
        if metadata is None:
            raise PersistenceError(
                f"Audio metadata not found for {article_id}", key=metadata_key(article_id), operation="update"
            )

        updated = metadata.with_completed(index, size_bytes)
        await self._save(article_id, updated)
        return updated

    async def delete(self, article_id: str) -> None:
        await self._store.delete(metadata_key(article_id))

    async def _save(self, article_id: str, metadata: ChunkMetadata) -> None:
        await self._store.put(metadata_key(article_id), metadata.to_json().encode("utf-8"), JSON_CONTENT_TYPE)
