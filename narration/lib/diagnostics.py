"""Diagnostic helpers for chunked audio generation.

Every failure path carries structured context (article, chunk index,
text length and preview) plus remediation hints per error kind. The
payload built by create_error_details is what the HTTP 500 body and the
total-failure log line contain.
"""

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Iterable

from narration.lib.exceptions import NarrationError, SynthesisError, SynthesisErrorKind
from narration.lib.timestamps import format_timestamp, generate_timestamp

logger = logging.getLogger(__name__)


TEXT_PREVIEW_LENGTH = 100
USER_AGENT = "ArticleNarrationBot/1.0"


@dataclass
class GenerationContext:
    """Where in the pipeline a synthesis call happened.

    Attributes:
        article_id: Article namespace being generated
        chunk_index: Index of the chunk, if the call was for one chunk
        text_length: Characters sent to the model
        text_preview: First characters of the text sent
        total_chunks: Number of chunks the article was split into
    """

    article_id: str | None = None
    chunk_index: int | None = None
    text_length: int | None = None
    text_preview: str | None = None
    total_chunks: int | None = None

    @classmethod
    def for_chunk(
        cls, article_id: str, chunk_index: int, text: str, total_chunks: int | None = None
    ) -> "GenerationContext":
        """Build the context for one chunk's synthesis call."""
        return cls(
            article_id=article_id,
            chunk_index=chunk_index,
            text_length=len(text),
            text_preview=text[:TEXT_PREVIEW_LENGTH],
            total_chunks=total_chunks,
        )

    def as_dict(self) -> dict[str, Any]:
        """Context as a plain dict, without unset fields."""
        return {key: value for key, value in asdict(self).items() if value is not None}

    @property
    def chunk_label(self) -> str:
        """Human readable suffix naming the chunk (empty for whole-text calls)."""
        if self.chunk_index is None:
            return ""
        return f" (chunk {self.chunk_index})"


REMEDIATION: dict[SynthesisErrorKind, list[str]] = {
    SynthesisErrorKind.EMPTY_RESPONSE: [
        "Check if the speech model service is available",
        "Retry with shorter text",
        "Check rate limits",
    ],
    SynthesisErrorKind.API_ERROR: [
        "Check if text length is within the model limits",
        "Verify model availability",
        "Check API quotas and rate limits",
    ],
    SynthesisErrorKind.UNEXPECTED_SHAPE: [
        "Check the model identifier and that it produces audio",
        "Verify request parameters",
        "Check for model updates or response format changes",
    ],
    SynthesisErrorKind.TIMEOUT: [
        "Reduce the chunk length",
        "Retry later; the model is slow under load",
        "Check service status",
    ],
}

TOTAL_FAILURE_RECOMMENDATIONS = [
    "Check if the speech model service is operational",
    "Verify the article text is valid and not too long",
    "Check rate limits and quotas",
    "Wait a few minutes and retry",
]


def suggestions_for(kind: SynthesisErrorKind | str) -> list[str]:
    """Remediation hints for a synthesis error kind."""
    return list(REMEDIATION.get(SynthesisErrorKind(kind), []))


def log_chunk_success(chunk_index: int, audio_size: int, context: GenerationContext) -> None:
    """Log successful chunk generation with context."""
    logger.info(
        f"Chunk {chunk_index} succeeded for {context.article_id}: "
        f"{audio_size} bytes from {context.text_length or 'unknown'} chars"
    )


def log_chunk_failure(chunk_index: int, error: Exception, context: GenerationContext) -> None:
    """Log chunk failure with detailed context."""
    kind = error.kind.value if isinstance(error, SynthesisError) else type(error).__name__
    preview = (context.text_preview or "")[:TEXT_PREVIEW_LENGTH]
    logger.error(
        f"Chunk {chunk_index} failed for {context.article_id} [{kind}]: {error} | "
        f"text length: {context.text_length or 'unknown'} chars | "
        f'preview: "{preview}..."'
    )
    logger.debug(f"Chunk {chunk_index} failure context: {context.as_dict()}")


def describe_error(error: BaseException) -> dict[str, Any]:
    """Summarize an exception for a JSON diagnostic payload."""
    description: dict[str, Any] = {
        "type": type(error).__name__,
        "message": error.message if isinstance(error, NarrationError) else str(error),
    }
    if isinstance(error, SynthesisError):
        description["kind"] = error.kind.value
        description["suggestions"] = suggestions_for(error.kind)
        if error.details:
            description["details"] = error.details
    return description


def create_error_details(
    error: BaseException,
    context: GenerationContext | None = None,
    successful_chunks: Iterable[int] = (),
    failed_chunks: Iterable[int] = (),
    label: str | None = None,
) -> dict[str, Any]:
    """
    Create comprehensive error details for API responses and logs.

    Args:
        error: The failure being reported
        context: Where the failure happened
        successful_chunks: Indices that were generated
        failed_chunks: Indices that failed
        label: Free-form name of the code path reporting the failure

    Returns:
        JSON-serializable dict
    """
    successful = sorted(successful_chunks)
    failed = sorted(failed_chunks)
    context = context or GenerationContext()

    details: dict[str, Any] = {
        "message": describe_error(error)["message"],
        "timestamp": format_timestamp(generate_timestamp()),
        "context": context.as_dict(),
        "chunkStatus": {
            "successful": successful,
            "failed": failed,
            "successCount": len(successful),
            "failureCount": len(failed),
        },
        "debugging": {
            "environment": os.environ.get("NARRATION_ENV", "development"),
            "userAgent": USER_AGENT,
        },
    }
    if label:
        details["context"]["label"] = label
    return details
