"""Sentence-aligned text chunking for speech synthesis.

The speech model only accepts bounded input, so article text is split
into chunks of at most max_length characters, breaking only between
sentences. The split must be deterministic: chunk indices are stored
and a retry must address the same text by the same index.
"""

import re

from narration.models.chunks import TextChunk

# A sentence is any run of text up to and including its terminal
# punctuation; trailing text without punctuation is one last sentence.
SENTENCE_PATTERN = re.compile(r"[^.!?]*[.!?]+|[^.!?]+")


class TextChunker:
    """Splits text into ordered, sentence-aligned chunks.

    Example:
        >>> TextChunker.split("One. Two! Three?", max_length=10)
        ['One. Two!', 'Three?']
    """

    @classmethod
    def split_sentences(cls, text: str) -> list[str]:
        """Split text into sentences, keeping punctuation and inner whitespace.

        Concatenating the result gives back the input unchanged.
        """
        return SENTENCE_PATTERN.findall(text)

    @classmethod
    def split(cls, text: str, max_length: int) -> list[str]:
        """
        Greedily pack sentences into chunks of at most max_length characters.

        A sentence longer than max_length becomes its own oversized chunk;
        it is never cut mid-sentence.

        Args:
            text: Article text
            max_length: Maximum characters per chunk

        Returns:
            Ordered chunk texts (trimmed). Empty for blank text.
        """
        if max_length <= 0:
            raise ValueError("max_length must be positive")

        if not text or not text.strip():
            return []

        if len(text) <= max_length:
            return [text]

        chunks: list[str] = []
        current = ""

        for sentence in cls.split_sentences(text):
            if len(current + sentence) <= max_length:
                current += sentence
            else:
                if current.strip():
                    chunks.append(current.strip())
                current = sentence

        if current.strip():
            chunks.append(current.strip())

        return chunks

    @classmethod
    def to_chunks(cls, text: str, max_length: int) -> list[TextChunk]:
        """Split text and attach playback indices."""
        return [TextChunk(index=i, text=chunk) for i, chunk in enumerate(cls.split(text, max_length))]
