"""Synthesis client Protocol."""

from typing import Protocol, runtime_checkable

from narration.lib.diagnostics import GenerationContext
from narration.lib.exceptions import SynthesisError


@runtime_checkable
class SynthesisClient(Protocol):
    """
    Contract for text-to-speech model clients.

    Implementations:
        - WorkersAISynthesisClient: Cloudflare Workers AI REST API via httpx
        - MockSynthesisClient: For testing without network calls

    Example:
        >>> client = WorkersAISynthesisClient(get_synthesis_config())
        >>> audio = await client.synthesize("Hello, world.")
        >>> print(f"{len(audio)} bytes of audio/mpeg")
    """

    @property
    def model_name(self) -> str:
        """Identifier of the model behind this client."""
        ...

    async def synthesize(self, text: str, context: GenerationContext | None = None) -> bytes:
        """
        Synthesize speech for one piece of text.

        Args:
            text: Text to speak. MUST be non-empty.
            context: Optional diagnostic context (article, chunk index)

        Returns:
            bytes: The complete audio payload

        Raises:
            SynthesisError: On any failure, classified by kind

        Contract:
            - MUST call the model exactly once (no retries)
            - MUST NOT touch the artifact store
            - MAY take tens of seconds
        """
        ...


__all__ = ["SynthesisClient", "SynthesisError"]
