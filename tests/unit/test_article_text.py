"""Unit tests for article text extraction.

Tests narration text extraction including:
- Title and block ordering
- Code block skipping
- Image alt text and figure captions
- HTML entity decoding and whitespace normalization
"""

import pytest

from narration.lib.exceptions import ValidationError
from narration.services.articles import (
    ArticleTextExtractor,
    extract_text_for_audio,
    load_article,
    save_article,
)


def _text(content: str) -> list[dict]:
    return [{"type": "text", "content": content}]


class TestCleanText:
    """Tests for ArticleTextExtractor.clean_text()."""

    def test_decodes_entities(self):
        assert ArticleTextExtractor.clean_text("Tom &amp; Jerry &lt;3 &quot;hi&quot; it&#39;s") == "Tom & Jerry <3 \"hi\" it's"

    def test_normalizes_whitespace(self):
        assert ArticleTextExtractor.clean_text("  a\n\n b\t c&nbsp;d ") == "a b c d"


class TestExtractTextForAudio:
    """Tests for extract_text_for_audio()."""

    def test_title_first_then_blocks(self):
        article = {
            "title": "My Post",
            "blocks": [
                {"type": "heading", "level": 2, "content": _text("Intro")},
                {"type": "paragraph", "content": _text("First paragraph.")},
            ],
        }
        assert extract_text_for_audio(article) == "My Post\n\nIntro\n\nFirst paragraph."

    def test_inline_elements_joined(self):
        article = {
            "title": "T",
            "blocks": [
                {
                    "type": "paragraph",
                    "content": [
                        {"type": "text", "content": "Read"},
                        {"type": "link", "content": "the docs", "href": "https://example.com"},
                        {"type": "bold", "content": "now."},
                    ],
                }
            ],
        }
        assert extract_text_for_audio(article) == "T\n\nRead the docs now."

    def test_list_items_are_separate_parts(self):
        article = {
            "title": "T",
            "blocks": [{"type": "list", "ordered": False, "items": [{"content": _text("One")}, {"content": _text("Two")}]}],
        }
        assert extract_text_for_audio(article) == "T\n\nOne\n\nTwo"

    def test_code_blocks_skipped(self):
        article = {
            "title": "T",
            "blocks": [
                {"type": "code_block", "language": "python", "raw": "print('hi')"},
                {"type": "blockquote", "content": _text("Quoted.")},
            ],
        }
        text = extract_text_for_audio(article)
        assert "print" not in text
        assert text == "T\n\nQuoted."

    def test_images_and_figures(self):
        article = {
            "title": "T",
            "blocks": [
                {"type": "image", "src": "a.png", "alt": "A diagram"},
                {"type": "image", "src": "b.png"},
                {"type": "figure", "caption": "Figure 1 &amp; 2"},
                {"type": "figure"},
            ],
        }
        assert extract_text_for_audio(article) == "T\n\nImage: A diagram\n\nFigure 1 & 2"

    def test_empty_article(self):
        article = {"title": "", "blocks": [{"type": "code_block", "raw": "x = 1"}]}
        assert extract_text_for_audio(article) == ""


class TestArticleStorage:

    @pytest.mark.asyncio
    async def test_save_and_load(self, memory_store):
        article = {"title": "Café", "blocks": []}
        await save_article(memory_store, "blogs/post", article)

        assert await load_article(memory_store, "blogs/post") == article
        assert memory_store.content_type("blogs/post/article.json") == "application/json"

    @pytest.mark.asyncio
    async def test_load_missing(self, memory_store):
        assert await load_article(memory_store, "blogs/none") is None

    @pytest.mark.asyncio
    async def test_load_invalid_json(self, memory_store):
        await memory_store.put("blogs/post/article.json", b"<html>", "text/html")
        with pytest.raises(ValidationError):
            await load_article(memory_store, "blogs/post")

    @pytest.mark.asyncio
    async def test_load_non_object(self, memory_store):
        await memory_store.put("blogs/post/article.json", b"[1, 2]", "application/json")
        with pytest.raises(ValidationError):
            await load_article(memory_store, "blogs/post")
