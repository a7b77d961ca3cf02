"""Article text extraction for narration.

Stored articles are structured JSON ({namespace}/article.json) written
by the site's ingestion step:

    {
        "title": "...",
        "blocks": [
            {"type": "heading", "level": 2, "content": [{"type": "text", "content": "..."}]},
            {"type": "paragraph", "content": [...]},
            {"type": "list", "items": [{"content": [...]}]},
            {"type": "blockquote", "content": [...]},
            {"type": "code_block", "raw": "..."},
            {"type": "image", "alt": "...", "src": "..."},
            {"type": "figure", "caption": "..."}
        ]
    }

This module turns that structure into plain text suited to speech.
"""

import html
import json
import logging
from typing import Any

from narration.lib.exceptions import PersistenceError, ValidationError
from narration.services.storage.base import ArtifactStore
from narration.services.storage.keys import JSON_CONTENT_TYPE, article_key

logger = logging.getLogger(__name__)


class ArticleTextExtractor:
    """Extracts spoken text from a structured article.

    Code blocks are skipped since they are not meaningful when read
    aloud. Images are read by their alt text, figures by their caption.

    Example:
        >>> ArticleTextExtractor.extract({"title": "Hello", "blocks": []})
        'Hello'
    """

    PART_SEPARATOR = "\n\n"
    IMAGE_PREFIX = "Image: "

    @classmethod
    def clean_text(cls, text: str) -> str:
        """Decode HTML entities and collapse whitespace.

        Args:
            text: Raw text from an inline element.

        Returns:
            Text with entities decoded and single spaces.
        """
        text = html.unescape(text)
        return " ".join(text.split())

    @classmethod
    def inline_to_text(cls, elements: Any) -> str:
        """Join inline elements (text, link, bold, ...) into one string."""
        if isinstance(elements, str):
            return cls.clean_text(elements)
        if not elements:
            return ""

        parts = []
        for element in elements:
            if isinstance(element, str):
                parts.append(cls.clean_text(element))
            elif isinstance(element, dict):
                parts.append(cls.clean_text(str(element.get("content", ""))))
        return " ".join(part for part in parts if part).strip()

    @classmethod
    def block_to_parts(cls, block: dict) -> list[str]:
        """Spoken text parts for one content block."""
        block_type = block.get("type")

        if block_type in ("heading", "paragraph", "blockquote"):
            return [cls.inline_to_text(block.get("content"))]
        if block_type == "list":
            return [cls.inline_to_text(item.get("content")) for item in block.get("items") or []]
        if block_type == "image":
            alt = cls.clean_text(block.get("alt") or "")
            return [f"{cls.IMAGE_PREFIX}{alt}"] if alt else []
        if block_type == "figure":
            caption = cls.clean_text(block.get("caption") or "")
            return [caption] if caption else []

        # code_block, code_inline and unknown blocks are not narrated
        return []

    @classmethod
    def extract(cls, article: dict) -> str:
        """
        Build narration text for an article.

        Args:
            article: Parsed article.json content

        Returns:
            Title and block texts joined by blank lines. Empty if the
            article has no speakable content.
        """
        parts = [cls.clean_text(article.get("title") or "")]
        for block in article.get("blocks") or []:
            if isinstance(block, dict):
                parts.extend(cls.block_to_parts(block))
        return cls.PART_SEPARATOR.join(part for part in parts if part)


def extract_text_for_audio(article: dict) -> str:
    """Narration text for a structured article."""
    return ArticleTextExtractor.extract(article)


async def load_article(store: ArtifactStore, namespace: str) -> dict | None:
    """
    Load a stored article.

    Args:
        store: Artifact store holding articles
        namespace: Article namespace, including any key prefix

    Returns:
        Parsed article dict, or None if no article is stored

    Raises:
        ValidationError: If the stored article is not a JSON object
    """
    key = article_key(namespace)
    raw = await store.get(key)
    if raw is None:
        return None

    try:
        article = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"Stored article {key} is not valid JSON: {e}")
        raise ValidationError(f"Stored article is not valid JSON: {key}", field="article")

    if not isinstance(article, dict):
        raise ValidationError(f"Stored article is not a JSON object: {key}", field="article")
    return article


async def save_article(store: ArtifactStore, namespace: str, article: dict) -> None:
    """Store a structured article under its namespace."""
    try:
        payload = json.dumps(article, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"Article is not serializable: {e}", key=article_key(namespace), operation="put")
    await store.put(article_key(namespace), payload, JSON_CONTENT_TYPE)
