"""Progressive assembly of partially generated audio.

Playback must proceed strictly in article order. The assembler only
ever exposes the contiguous run of chunks starting at index 0, so a
client can never be handed chunk 5 before chunk 2 exists.
"""

import logging

from narration.models.chunks import ChunkStatus
from narration.services.audio.chunk_metadata import ChunkMetadataTracker
from narration.services.storage.base import ArtifactStore
from narration.services.storage.keys import chunk_key, complete_audio_key

logger = logging.getLogger(__name__)


def combine_audio_chunks(audio_chunks: list[bytes]) -> bytes:
    """Concatenate audio buffers in order.

    Independently encoded MP3 segments are joined byte for byte; players
    resynchronize on the next frame header.
    """
    if not audio_chunks:
        return b""
    if len(audio_chunks) == 1:
        return audio_chunks[0]
    return b"".join(audio_chunks)


class ProgressiveAssembler:
    """
    Computes an article's chunk status and playable prefix from storage.

    Example:
        >>> assembler = ProgressiveAssembler(store)
        >>> status = await assembler.status("my-post")
        >>> if status.assembled_prefix:
        ...     play(status.assembled_prefix)
    """

    def __init__(self, store: ArtifactStore, tracker: ChunkMetadataTracker | None = None):
        self._store = store
        self._tracker = tracker or ChunkMetadataTracker(store)

    async def status(self, article_id: str, with_audio: bool = True) -> ChunkStatus:
        """
        Inspect storage for an article.

        The complete artifact takes priority over chunk state. Without
        metadata the article is reported as never started. Otherwise
        chunks are read in index order until the first gap; indices past
        the gap are only checked for existence, for reporting.

        Args:
            article_id: Article namespace
            with_audio: Read chunk audio to build the prefix. When False
                chunks are only checked for existence and
                assembled_prefix stays None (the complete artifact is
                still returned).

        Returns:
            ChunkStatus snapshot
        """
        complete_audio = await self._store.get(complete_audio_key(article_id))
        if complete_audio is not None:
            return ChunkStatus(
                is_complete=True,
                total_chunks=1,
                available_indices=[0],
                missing_indices=[],
                assembled_prefix=complete_audio,
                finalized=True,
            )

        metadata = await self._tracker.get(article_id)
        if metadata is None:
            return ChunkStatus(is_complete=False, total_chunks=0)

        contiguous: list[bytes] = []
        available: list[int] = []
        missing: list[int] = []
        gap_found = False

        for index in range(metadata.total_chunks):
            key = chunk_key(article_id, index)
            if gap_found or not with_audio:
                exists = await self._store.head(key)
            else:
                data = await self._store.get(key)
                exists = data is not None
                if exists:
                    contiguous.append(data)
                else:
                    gap_found = True

            if exists:
                available.append(index)
            else:
                missing.append(index)

        assembled = combine_audio_chunks(contiguous) if contiguous else None
        if assembled is not None:
            logger.debug(
                f"Combined {len(contiguous)} contiguous chunks for {article_id} "
                f"(out of {len(available)} available)"
            )

        return ChunkStatus(
            is_complete=metadata.total_chunks > 0 and not missing,
            total_chunks=metadata.total_chunks,
            available_indices=available,
            missing_indices=missing,
            assembled_prefix=assembled,
        )
