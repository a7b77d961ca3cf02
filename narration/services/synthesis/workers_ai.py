"""Workers AI synthesis client implementation using httpx.

Calls the Cloudflare Workers AI REST API (Deepgram Aura-1 by default)
once per request. Binary responses are streamed and drained in order;
JSON responses are handed to the response classifier.
"""

import asyncio
import json
import logging
import time

import httpx

from narration.lib.config import SynthesisConfig
from narration.lib.diagnostics import GenerationContext
from narration.lib.exceptions import SynthesisError, SynthesisErrorKind, ValidationError
from narration.services.synthesis.response import analyze_failed_response, normalize_audio_response

logger = logging.getLogger(__name__)


GATEWAY_BASE_URL = "https://gateway.ai.cloudflare.com/v1"
TIMEOUT_STATUS_CODES = {408, 504, 524}


class WorkersAISynthesisClient:
    """
    Text-to-speech client for the Workers AI REST API.

    Implements the SynthesisClient Protocol. No retries happen here:
    retry policy belongs to the orchestrator and its callers.

    Attributes:
        config: Synthesis configuration (credentials, model, timeout)

    Example:
        >>> client = WorkersAISynthesisClient(get_synthesis_config())
        >>> audio = await client.synthesize("Hello, world.")
    """

    def __init__(self, config: SynthesisConfig, http_client: httpx.AsyncClient | None = None):
        """
        Initialize the client.

        Args:
            config: Synthesis configuration
            http_client: Shared httpx client; when omitted a client is
                created per call
        """
        self.config = config
        self._http_client = http_client

    @property
    def model_name(self) -> str:
        return self.config.model

    @property
    def endpoint_url(self) -> str:
        """URL of the model run endpoint, routed through AI Gateway when configured."""
        if self.config.gateway_id:
            return f"{GATEWAY_BASE_URL}/{self.config.account_id}/{self.config.gateway_id}/workers-ai/{self.config.model}"
        base_url = self.config.base_url.rstrip("/")
        return f"{base_url}/accounts/{self.config.account_id}/ai/run/{self.config.model}"

    async def synthesize(self, text: str, context: GenerationContext | None = None) -> bytes:
        """
        Synthesize speech for one piece of text.

        Args:
            text: Text to speak
            context: Diagnostic context

        Returns:
            bytes: MP3 audio

        Raises:
            ValidationError: If text is empty
            SynthesisError: On any model or transport failure
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty", field="text")

        context = context or GenerationContext(text_length=len(text), text_preview=text[:100])
        self.config.validate_credentials()

        start_time = time.time()
        try:
            audio = await asyncio.wait_for(
                self._request(text, context),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise SynthesisError(
                f"Model request{context.chunk_label} took longer than {self.config.timeout_seconds}s. "
                f"Text length: {len(text)} chars",
                kind=SynthesisErrorKind.TIMEOUT,
                chunk_index=context.chunk_index,
            )
        except httpx.TimeoutException as e:
            raise SynthesisError(
                f"Model request{context.chunk_label} timed out: {e}",
                kind=SynthesisErrorKind.TIMEOUT,
                chunk_index=context.chunk_index,
            ) from e
        except httpx.HTTPError as e:
            raise SynthesisError(
                f"Model request{context.chunk_label} failed: {e}",
                kind=SynthesisErrorKind.API_ERROR,
                chunk_index=context.chunk_index,
            ) from e

        duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(f"Synthesis{context.chunk_label} complete: {len(audio)} bytes ({duration_ms}ms)")
        return audio

    async def _request(self, text: str, context: GenerationContext) -> bytes:
        if self._http_client is not None:
            return await self._stream_audio(self._http_client, text, context)

        async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
            return await self._stream_audio(client, text, context)

    async def _stream_audio(self, client: httpx.AsyncClient, text: str, context: GenerationContext) -> bytes:
        headers = {
            "Authorization": f"Bearer {self.config.api_token}",
            "Content-Type": "application/json",
        }

        async with client.stream("POST", self.endpoint_url, headers=headers, json={"text": text}) as response:
            content_type = response.headers.get("content-type", "")

            if response.status_code >= 400:
                body = await response.aread()
                raise self._http_error(response.status_code, body, context)

            if content_type.startswith("application/json") or content_type.startswith("text/"):
                body = await response.aread()
                return await normalize_audio_response(_decode_body(body), context)

            return await normalize_audio_response(response.aiter_bytes(), context)

    def _http_error(self, status_code: int, body: bytes, context: GenerationContext) -> SynthesisError:
        error = analyze_failed_response(_decode_body(body) or None, context)
        kind = SynthesisErrorKind.TIMEOUT if status_code in TIMEOUT_STATUS_CODES else error.kind
        if kind == SynthesisErrorKind.EMPTY_RESPONSE or kind == SynthesisErrorKind.UNEXPECTED_SHAPE:
            kind = SynthesisErrorKind.API_ERROR
        return SynthesisError(
            f"HTTP {status_code}: {error.message}",
            kind=kind,
            chunk_index=context.chunk_index,
            details={**error.details, "statusCode": status_code},
        )


def _decode_body(body: bytes):
    """Parse a response body as JSON, falling back to text."""
    text = body.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text
