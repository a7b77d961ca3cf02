"""Storage key layout for an article's audio artifacts.

    {article_id}/
    ├── article.json              structured article (input, written elsewhere)
    ├── audio.mp3                 complete artifact
    ├── audio-metadata.json       chunk metadata (only while incomplete)
    └── audio-chunk-{index}.mp3   chunk artifacts (only while incomplete)
"""

import re

from narration.lib.exceptions import ValidationError

ARTICLE_NAME = "article.json"
COMPLETE_AUDIO_NAME = "audio.mp3"
METADATA_NAME = "audio-metadata.json"
CHUNK_NAME_PREFIX = "audio-chunk-"
CHUNK_NAME_SUFFIX = ".mp3"

AUDIO_CONTENT_TYPE = "audio/mpeg"
JSON_CONTENT_TYPE = "application/json"

_CHUNK_NAME_RE = re.compile(rf"^{re.escape(CHUNK_NAME_PREFIX)}(\d+){re.escape(CHUNK_NAME_SUFFIX)}$")


def validate_article_id(article_id: str) -> str:
    """Reject ids that are empty or could escape their namespace."""
    if not article_id or not article_id.strip("/"):
        raise ValidationError("Article id cannot be empty", field="article_id")
    segments = article_id.strip("/").split("/")
    if any(segment in ("", ".", "..") for segment in segments):
        raise ValidationError(f"Invalid article id: {article_id!r}", field="article_id")
    # Dot segments are reserved for store bookkeeping (e.g. .content-types)
    if any(segment.startswith(".") for segment in segments):
        raise ValidationError(f"Article id segments cannot start with '.': {article_id!r}", field="article_id")
    return "/".join(segments)


def article_namespace(article_id: str, prefix: str = "") -> str:
    """Join the configured key prefix and an article id (e.g. blogs/my-post)."""
    article_id = validate_article_id(article_id)
    prefix = prefix.strip("/")
    return f"{prefix}/{article_id}" if prefix else article_id


def article_key(article_id: str) -> str:
    return f"{article_id}/{ARTICLE_NAME}"


def complete_audio_key(article_id: str) -> str:
    return f"{article_id}/{COMPLETE_AUDIO_NAME}"


def metadata_key(article_id: str) -> str:
    return f"{article_id}/{METADATA_NAME}"


def chunk_key(article_id: str, index: int) -> str:
    return f"{article_id}/{CHUNK_NAME_PREFIX}{index}{CHUNK_NAME_SUFFIX}"


def chunk_key_prefix(article_id: str) -> str:
    return f"{article_id}/{CHUNK_NAME_PREFIX}"


def parse_chunk_index(key: str) -> int | None:
    """Extract the chunk index from a chunk key, or None for other keys."""
    match = _CHUNK_NAME_RE.match(key.rsplit("/", 1)[-1])
    return int(match.group(1)) if match else None
