"""Mock synthesis client for testing.

This module provides a mock implementation of SynthesisClient
that can be used in tests and local development without network calls.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from narration.lib.diagnostics import GenerationContext
from narration.lib.exceptions import SynthesisError, SynthesisErrorKind, ValidationError
from narration.services.synthesis.response import normalize_audio_response


class MockSynthesisClient:
    """Mock synthesis client for testing without network calls.

    Produces deterministic placeholder audio derived from the text, so
    tests can predict exactly which bytes an assembled prefix contains.
    Raw responses go through the same normalization as real ones.

    Attributes:
        simulate_delay: Delay in seconds to simulate processing
        fail_texts: Text fragments whose synthesis fails
        fail_kind: Error kind raised for failing texts
        responder: Optional callable returning a raw response for a text
        calls: Texts received, in call order

    Example:
        >>> client = MockSynthesisClient(fail_texts={"second"})
        >>> audio = await client.synthesize("First sentence.")
        >>> assert audio == MockSynthesisClient.audio_for("First sentence.")
    """

    def __init__(
        self,
        simulate_delay: float = 0.0,
        fail_texts: set[str] | None = None,
        fail_kind: SynthesisErrorKind = SynthesisErrorKind.API_ERROR,
        responder: Callable[[str], Any] | None = None,
    ):
        self.simulate_delay = simulate_delay
        self.fail_texts = set(fail_texts or ())
        self.fail_kind = fail_kind
        self.responder = responder
        self.calls: list[str] = []
        self.fail_all = False

    @property
    def model_name(self) -> str:
        return "mock"

    @staticmethod
    def audio_for(text: str) -> bytes:
        """Placeholder audio produced for a text."""
        return f"MOCK_AUDIO[{text}]".encode()

    async def synthesize(self, text: str, context: GenerationContext | None = None) -> bytes:
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty", field="text")

        context = context or GenerationContext(text_length=len(text))
        self.calls.append(text)

        if self.simulate_delay:
            await asyncio.sleep(self.simulate_delay)

        if self.fail_all or any(fragment in text for fragment in self.fail_texts):
            raise SynthesisError(
                f"Simulated synthesis failure{context.chunk_label}",
                kind=self.fail_kind,
                chunk_index=context.chunk_index,
            )

        raw = self.responder(text) if self.responder else self.audio_for(text)
        return await normalize_audio_response(raw, context)

    # Test helper methods

    def reset_stats(self) -> None:
        """Forget recorded calls."""
        self.calls = []

    @property
    def synthesis_count(self) -> int:
        """Number of synthesis calls received."""
        return len(self.calls)
