"""Resilient chunked audio generation.

Each call to ResilientAudioGenerator.generate() is one pass of the
state machine for an article:

    CheckComplete -> CheckChunks -> Chunk -> Dispatch -> Reassemble

A pass synthesizes at most a small batch of the earliest missing chunks,
persists every success immediately, and returns whatever playable prefix
exists. Callers poll again later (with backoff) until the article is
complete. Once every chunk is present the chunks are concatenated into
the single complete artifact and all intermediate objects are deleted.

The generator holds no per-article state between passes; everything
lives in the artifact store.
"""

import asyncio
import logging
from collections.abc import Iterable

from narration.lib.config import GenerationConfig
from narration.lib.diagnostics import (
    TOTAL_FAILURE_RECOMMENDATIONS,
    GenerationContext,
    create_error_details,
    log_chunk_failure,
    log_chunk_success,
    suggestions_for,
)
from narration.lib.exceptions import (
    GenerationFailedError,
    PersistenceError,
    SynthesisError,
    ValidationError,
)
from narration.models.chunks import ChunkFailure, ChunkMetadata, ChunkStatus, GenerationResult
from narration.services.audio.assembler import ProgressiveAssembler
from narration.services.audio.chunk_metadata import ChunkMetadataTracker
from narration.services.audio.chunker import TextChunker
from narration.services.storage.base import ArtifactStore
from narration.services.storage.keys import (
    AUDIO_CONTENT_TYPE,
    chunk_key,
    chunk_key_prefix,
    complete_audio_key,
    metadata_key,
    parse_chunk_index,
    validate_article_id,
)
from narration.services.synthesis.base import SynthesisClient

logger = logging.getLogger(__name__)

PROGRESS_COMPLETE = "complete"
PROGRESS_STARTED = "started"
PROGRESS_NOT_STARTED = "not_started"


def select_dispatch_batch(missing_indices: Iterable[int], batch_size: int) -> list[int]:
    """
    Pick the chunks to synthesize in this pass.

    Only the lowest missing indices are dispatched, at most batch_size of
    them, starting from the earliest gap. Later chunks wait: under load
    the model serializes requests, and spending capacity on chunks far
    ahead of the playhead delays the chunk the listener is blocked on.

    Example:
        >>> select_dispatch_batch({2, 3, 5, 7, 8}, 3)
        [2, 3, 5]
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return sorted(set(missing_indices))[:batch_size]


class ResilientAudioGenerator:
    """
    Orchestrates chunked audio generation for articles.

    Sole writer of chunk metadata and sole creator/deleter of chunk
    artifacts and the complete artifact.

    Attributes:
        store: Artifact store shared by all requests
        client: Speech synthesis client
        config: Chunk length and dispatch batch size

    Example:
        >>> generator = ResilientAudioGenerator(store, client, get_generation_config())
        >>> result = await generator.generate("my-post", article_text)
        >>> print(f"{len(result.available_indices)}/{result.total_chunks} chunks ({result.status})")
    """

    def __init__(
        self,
        store: ArtifactStore,
        client: SynthesisClient,
        config: GenerationConfig | None = None,
    ):
        self.store = store
        self.client = client
        self.config = config or GenerationConfig()
        self.tracker = ChunkMetadataTracker(store)
        self.assembler = ProgressiveAssembler(store, self.tracker)

    async def status(self, article_id: str, with_audio: bool = True) -> ChunkStatus:
        """Current chunk status and, with_audio, the playable prefix for an article."""
        return await self.assembler.status(validate_article_id(article_id), with_audio=with_audio)

    async def progress(self, article_id: str) -> str:
        """
        Coarse generation state from key existence alone.

        Returns:
            PROGRESS_COMPLETE, PROGRESS_STARTED or PROGRESS_NOT_STARTED
        """
        article_id = validate_article_id(article_id)
        if await self.store.head(complete_audio_key(article_id)):
            return PROGRESS_COMPLETE
        if await self.store.head(metadata_key(article_id)):
            return PROGRESS_STARTED
        return PROGRESS_NOT_STARTED

    async def generate(self, article_id: str, text: str | None = None) -> GenerationResult:
        """
        Run one generation pass for an article.

        Args:
            article_id: Article namespace
            text: Full article text. Only needed when no metadata exists
                yet; stored chunk texts are authoritative afterwards.

        Returns:
            GenerationResult, complete or partial

        Raises:
            ValidationError: If text is needed but blank
            MetadataConsistencyError: If a concurrent request stored a different split
            GenerationFailedError: If every dispatched chunk failed and no chunk exists
            PersistenceError: If metadata cannot be read or created
        """
        article_id = validate_article_id(article_id)

        # CheckComplete / CheckChunks (chunk existence only; audio is read once, below)
        status = await self.assembler.status(article_id, with_audio=False)
        if status.finalized:
            await self._cleanup_after_commit(article_id)
            logger.info(f"Serving complete cached audio for: {article_id}")
            return self._complete_result(article_id, status.assembled_prefix, from_cache=True)

        if status.is_complete:
            logger.info(f"All {status.total_chunks} chunks present for {article_id}, finalizing")
            audio = await self.finalize(article_id)
            return self._complete_result(article_id, audio, total_chunks=status.total_chunks)

        # Chunk
        metadata = await self._load_or_initialize(article_id, text)
        if status.never_started:
            missing = metadata.missing_chunks
        else:
            missing = status.missing_indices
            logger.info(
                f"Found incomplete audio for: {article_id} "
                f"({len(status.available_indices)}/{status.total_chunks} chunks)"
            )

        # Dispatch
        targets = select_dispatch_batch(missing, self.config.dispatch_batch_size)
        logger.info(f"Dispatching chunks {targets} for {article_id} ({len(missing)} missing)")
        failures = await self._dispatch(article_id, metadata, targets)

        # Reassemble
        status = await self.assembler.status(article_id)
        if status.finalized:
            return self._complete_result(article_id, status.assembled_prefix)

        if status.is_complete:
            audio = await self.finalize(article_id, status)
            result = self._complete_result(article_id, audio, total_chunks=status.total_chunks)
            result.dispatched_indices = targets
            return result

        if targets and len(failures) == len(targets) and not status.available_indices:
            raise self._total_failure(article_id, metadata, failures)

        logger.info(
            f"Partial audio for {article_id}: {len(status.available_indices)}/{status.total_chunks} chunks, "
            f"{status.contiguous_count} playable"
        )
        return GenerationResult(
            article_id=article_id,
            is_complete=False,
            total_chunks=status.total_chunks,
            available_indices=status.available_indices,
            missing_indices=status.missing_indices,
            audio=status.assembled_prefix,
            dispatched_indices=targets,
            failures=failures,
        )

    async def finalize(self, article_id: str, status: ChunkStatus | None = None) -> bytes:
        """
        Commit the complete artifact and delete intermediate objects.

        The complete artifact is written before any cleanup. If cleanup
        is interrupted, calling finalize again (or the next generate
        pass) finishes it; rewriting identical content is harmless.

        Args:
            article_id: Article namespace
            status: Status already read by the caller, if any

        Returns:
            bytes: The complete audio

        Raises:
            ValidationError: If chunks are still missing
        """
        article_id = validate_article_id(article_id)
        if status is None:
            status = await self.assembler.status(article_id)

        if status.finalized:
            await self._cleanup(article_id, total_chunks=0)
            return status.assembled_prefix

        if not status.is_complete or status.assembled_prefix is None:
            raise ValidationError(
                f"Cannot finalize {article_id}: missing chunks {status.missing_indices}",
                field="article_id",
            )

        audio = status.assembled_prefix
        await self.store.put(complete_audio_key(article_id), audio, AUDIO_CONTENT_TYPE)
        logger.info(f"Stored complete audio for {article_id}: {len(audio)} bytes from {status.total_chunks} chunks")

        await self._cleanup(article_id, status.total_chunks)
        return audio

    async def invalidate(self, article_id: str) -> None:
        """
        Forget all audio for an article so the next pass re-chunks its text.

        This is the only way to replace stored chunk texts; existing
        metadata is otherwise authoritative.
        """
        article_id = validate_article_id(article_id)
        metadata = await self.tracker.get(article_id)
        await self.store.delete(complete_audio_key(article_id))
        await self._cleanup(article_id, metadata.total_chunks if metadata else 0)
        logger.info(f"Invalidated audio for {article_id}")

    async def _load_or_initialize(self, article_id: str, text: str | None) -> ChunkMetadata:
        metadata = await self.tracker.get(article_id)

        if metadata is not None:
            if text:
                self._check_text_drift(article_id, metadata, text)
            return metadata

        if not text or not text.strip():
            raise ValidationError("No text content found for audio generation", field="text")

        chunks = TextChunker.split(text, self.config.max_chunk_length)
        logger.info(
            f"Starting resilient audio generation for {article_id}: "
            f"{len(text)} characters in {len(chunks)} chunks"
        )
        return await self.tracker.initialize(article_id, chunks)

    def _check_text_drift(self, article_id: str, metadata: ChunkMetadata, text: str) -> None:
        chunks = TextChunker.split(text, self.config.max_chunk_length)
        if chunks != metadata.text_chunks:
            logger.warning(
                f"Article text for {article_id} no longer matches stored chunks "
                f"({metadata.total_chunks} stored, {len(chunks)} from current text); "
                f"stored chunks are used until the article is invalidated"
            )

    async def _dispatch(self, article_id: str, metadata: ChunkMetadata, targets: list[int]) -> list[ChunkFailure]:
        """Synthesize every target concurrently and wait for all of them to settle."""
        if not targets:
            return []

        metadata_lock = asyncio.Lock()
        outcomes = await asyncio.gather(
            *(self._generate_chunk(article_id, metadata, index, metadata_lock) for index in targets),
            return_exceptions=True,
        )

        failures = []
        for index, outcome in zip(targets, outcomes):
            if isinstance(outcome, ChunkFailure):
                failures.append(outcome)
            elif isinstance(outcome, BaseException):
                logger.error(f"Chunk {index} for {article_id} raised unexpectedly: {outcome!r}")
                failures.append(ChunkFailure(index=index, kind=type(outcome).__name__, message=str(outcome)))
        return failures

    async def _generate_chunk(
        self,
        article_id: str,
        metadata: ChunkMetadata,
        index: int,
        metadata_lock: asyncio.Lock,
    ) -> ChunkFailure | None:
        text = metadata.text_chunks[index]
        context = GenerationContext.for_chunk(article_id, index, text, metadata.total_chunks)

        try:
            audio = await self.client.synthesize(text, context)
        except Exception as e:
            # A failed chunk stays missing and is retried by a later pass
            log_chunk_failure(index, e, context)
            kind = e.kind.value if isinstance(e, SynthesisError) else type(e).__name__
            message = e.message if isinstance(e, SynthesisError) else str(e)
            return ChunkFailure(index=index, kind=kind, message=message)

        try:
            await self.store.put(chunk_key(article_id, index), audio, AUDIO_CONTENT_TYPE)
        except PersistenceError as e:
            log_chunk_failure(index, e, context)
            return ChunkFailure(index=index, kind="persistence_error", message=e.message)

        log_chunk_success(index, len(audio), context)

        if await self._finalized_meanwhile(article_id, index):
            return None

        try:
            async with metadata_lock:
                await self.tracker.mark_completed(article_id, index, len(audio))
        except PersistenceError as e:
            # The chunk itself is stored; status reads storage, not metadata
            logger.warning(f"Chunk {index} for {article_id} stored but metadata update failed: {e.message}")

        return None

    async def _finalized_meanwhile(self, article_id: str, index: int) -> bool:
        """
        Drop a chunk written after a concurrent pass committed the article.

        A chunk put before the commit is removed by that pass's cleanup;
        a chunk put after it is removed here.
        """
        try:
            if not await self.store.head(complete_audio_key(article_id)):
                return False
            await self.store.delete(chunk_key(article_id, index))
        except PersistenceError as e:
            logger.warning(f"Could not drop late chunk {index} for {article_id}: {e.message}")
            return False

        logger.info(f"Article {article_id} was finalized concurrently, dropped late chunk {index}")
        return True

    async def _cleanup_after_commit(self, article_id: str) -> None:
        """Finish a finalization that stopped between commit and cleanup."""
        try:
            leftover = await self.store.head(metadata_key(article_id))
            if not leftover:
                listed = await self.store.list_keys(chunk_key_prefix(article_id))
                leftover = bool(self._own_chunk_keys(article_id, listed))
        except PersistenceError as e:
            logger.warning(f"Could not check leftover chunks for {article_id}: {e.message}")
            return
        if leftover:
            logger.info(f"Cleaning up leftover chunks for finalized article {article_id}")
            await self._cleanup(article_id, total_chunks=0)

    @staticmethod
    def _own_chunk_keys(article_id: str, keys: Iterable[str]) -> list[str]:
        """Chunk keys directly under article_id (not under a nested article)."""
        return [
            key for key in keys
            if parse_chunk_index(key) is not None and key.rsplit("/", 1)[0] == article_id
        ]

    async def _cleanup(self, article_id: str, total_chunks: int) -> None:
        """Delete chunk artifacts and metadata. Failures are logged, not raised."""
        keys = {chunk_key(article_id, index) for index in range(total_chunks)}
        try:
            listed = await self.store.list_keys(chunk_key_prefix(article_id))
            keys.update(self._own_chunk_keys(article_id, listed))
        except PersistenceError as e:
            logger.warning(f"Could not list chunks for {article_id}: {e.message}")

        for key in sorted(keys, key=lambda k: parse_chunk_index(k) or 0):
            try:
                await self.store.delete(key)
            except PersistenceError as e:
                logger.warning(f"Error cleaning up chunk {key}: {e.message}")

        try:
            await self.tracker.delete(article_id)
        except PersistenceError as e:
            logger.warning(f"Error cleaning up metadata for {article_id}: {e.message}")

    def _complete_result(
        self,
        article_id: str,
        audio: bytes,
        total_chunks: int = 1,
        from_cache: bool = False,
    ) -> GenerationResult:
        return GenerationResult(
            article_id=article_id,
            is_complete=True,
            total_chunks=total_chunks,
            available_indices=list(range(total_chunks)),
            missing_indices=[],
            audio=audio,
            from_cache=from_cache,
        )

    def _total_failure(
        self, article_id: str, metadata: ChunkMetadata, failures: list[ChunkFailure]
    ) -> GenerationFailedError:
        failed = [failure.index for failure in failures]
        error = GenerationFailedError(
            f"Complete audio generation failure: all {len(failures)} dispatched chunks failed "
            f"and no chunks exist for {article_id}"
        )

        suggestions = list(TOTAL_FAILURE_RECOMMENDATIONS)
        for failure in failures:
            try:
                extra = suggestions_for(failure.kind)
            except ValueError:
                extra = []
            suggestions.extend(hint for hint in extra if hint not in suggestions)

        context = GenerationContext(article_id=article_id, total_chunks=metadata.total_chunks)
        details = create_error_details(error, context, successful_chunks=[], failed_chunks=failed, label="resilient-audio-generation")
        details["chunkFailures"] = {
            "totalChunks": metadata.total_chunks,
            "dispatchedChunks": failed,
            "failedChunks": failed,
            "successfulChunks": [],
            "failureRate": "100%",
            "failures": [failure.as_dict() for failure in failures],
        }
        details["recommendations"] = suggestions

        logger.error(f"Complete audio generation failure for {article_id}: failed chunks {failed}")
        logger.debug(f"Total failure details for {article_id}: {details}")

        error.details = details
        return error
