"""Shared pytest fixtures for all test types."""

import pytest

from narration.lib.config import GenerationConfig, reset_all_configs
from narration.services.audio.chunker import TextChunker
from narration.services.audio.orchestrator import ResilientAudioGenerator
from narration.services.storage import FileArtifactStore, InMemoryArtifactStore
from narration.services.synthesis import MockSynthesisClient


def make_sentence(number: int) -> str:
    """A 99-character sentence with no inner punctuation."""
    body = f"Sentence {number:02d} " + "la" * 50
    return body[:98] + "."


def make_article_text(sentence_count: int = 40) -> str:
    """Article text of sentence_count sentences, 100 characters each with separators."""
    return " ".join(make_sentence(i) for i in range(sentence_count)) + " "


@pytest.fixture(autouse=True)
def reset_configs(monkeypatch):
    """Isolate tests from each other's cached configuration."""
    monkeypatch.delenv("NARRATION_ENV", raising=False)
    reset_all_configs()
    yield
    reset_all_configs()


@pytest.fixture
def memory_store() -> InMemoryArtifactStore:
    return InMemoryArtifactStore()


@pytest.fixture
def file_store(tmp_path) -> FileArtifactStore:
    return FileArtifactStore(tmp_path / "storage")


@pytest.fixture
def mock_client() -> MockSynthesisClient:
    return MockSynthesisClient()


@pytest.fixture
def generation_config() -> GenerationConfig:
    return GenerationConfig(max_chunk_length=1250, dispatch_batch_size=3)


@pytest.fixture
def generator(memory_store, mock_client, generation_config) -> ResilientAudioGenerator:
    return ResilientAudioGenerator(memory_store, mock_client, generation_config)


@pytest.fixture
def article_text() -> str:
    """4000 characters that split into four chunks at 1250 characters."""
    return make_article_text(40)


@pytest.fixture
def article_chunks(article_text) -> list[str]:
    return TextChunker.split(article_text, 1250)


@pytest.fixture
def make_text():
    """Factory for article text with a given number of 100-character sentences."""
    return make_article_text
