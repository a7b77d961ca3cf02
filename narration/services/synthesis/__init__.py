"""Text-to-speech synthesis clients.

This package provides:
- SynthesisClient: the one-call-per-text contract
- WorkersAISynthesisClient: Cloudflare Workers AI over httpx
- MockSynthesisClient: deterministic offline client
- normalize_audio_response / analyze_failed_response: response shapes
"""

from narration.lib.config import SynthesisConfig
from narration.services.synthesis.base import SynthesisClient, SynthesisError
from narration.services.synthesis.mock_service import MockSynthesisClient
from narration.services.synthesis.response import analyze_failed_response, normalize_audio_response
from narration.services.synthesis.workers_ai import WorkersAISynthesisClient


def create_synthesis_client(config: SynthesisConfig, provider: str = "workers-ai") -> SynthesisClient:
    """Create a synthesis client by provider name ('workers-ai' or 'mock')."""
    if provider == "workers-ai":
        return WorkersAISynthesisClient(config)
    if provider == "mock":
        return MockSynthesisClient()
    raise ValueError(f"Unknown synthesis provider: {provider}")


__all__ = [
    "SynthesisClient",
    "SynthesisError",
    "MockSynthesisClient",
    "WorkersAISynthesisClient",
    "analyze_failed_response",
    "normalize_audio_response",
    "create_synthesis_client",
]
