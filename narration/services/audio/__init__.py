"""Chunked audio generation with progressive assembly."""

from narration.services.audio.assembler import ProgressiveAssembler, combine_audio_chunks
from narration.services.audio.chunk_metadata import ChunkMetadataTracker
from narration.services.audio.chunker import TextChunker
from narration.services.audio.orchestrator import ResilientAudioGenerator, select_dispatch_batch

__all__ = [
    "ChunkMetadataTracker",
    "ProgressiveAssembler",
    "ResilientAudioGenerator",
    "TextChunker",
    "combine_audio_chunks",
    "select_dispatch_batch",
]
