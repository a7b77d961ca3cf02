"""Polling client for the audio endpoint.

Generation is split across requests: each GET runs one bounded pass on
the server and returns whatever prefix is playable. The client keeps
re-requesting on a backoff schedule until the server reports complete
audio, keeping the best partial audio seen in the meantime.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from urllib.parse import quote

import httpx

from narration.lib.config import get_server_config

logger = logging.getLogger(__name__)


@dataclass
class AudioPollResult:
    """Audio received by the polling client.

    Attributes:
        article_id: Article requested
        audio: Best audio received so far (complete, or the longest prefix)
        is_complete: Server reported complete audio
        total_chunks: Chunk count reported by the server
        available_chunks: Available chunk count reported by the server
        attempts: Requests made
        errors: Error descriptions from failed requests
    """

    article_id: str
    audio: bytes | None = None
    is_complete: bool = False
    total_chunks: int = 0
    available_chunks: int = 0
    attempts: int = 0
    errors: list[str] = field(default_factory=list)


class AudioPollingClient:
    """
    Requests article audio until it is complete.

    Delays between requests follow the schedule (default 30s, 60s, 120s,
    300s); once the schedule is exhausted its last delay repeats.

    Example:
        >>> client = AudioPollingClient("http://localhost:8000")
        >>> result = await client.fetch_audio("my-post", on_update=player.load)
    """

    def __init__(
        self,
        base_url: str,
        retry_delays: list[int] | None = None,
        max_attempts: int = 10,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        timeout: float = 120.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.retry_delays = retry_delays or get_server_config().retry_delays
        self.max_attempts = max_attempts
        self._http_client = http_client
        self._sleep = sleep
        self._timeout = timeout

    def delay_for(self, attempt: int) -> int:
        """Delay in seconds before retry number `attempt` (0-based)."""
        return self.retry_delays[min(attempt, len(self.retry_delays) - 1)]

    def audio_url(self, article_id: str) -> str:
        return f"{self.base_url}/api/audio/{quote(article_id.strip('/'), safe='/')}"

    async def fetch_audio(
        self,
        article_id: str,
        on_update: Callable[[AudioPollResult], None] | None = None,
    ) -> AudioPollResult:
        """
        Poll the audio endpoint until complete or out of attempts.

        Args:
            article_id: Article to request
            on_update: Called whenever longer (or complete) audio arrives

        Returns:
            AudioPollResult with the best audio received
        """
        result = AudioPollResult(article_id=article_id)

        if self._http_client is not None:
            await self._poll(self._http_client, result, on_update)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                await self._poll(client, result, on_update)

        return result

    async def _poll(
        self,
        client: httpx.AsyncClient,
        result: AudioPollResult,
        on_update: Callable[[AudioPollResult], None] | None,
    ) -> None:
        url = self.audio_url(result.article_id)

        for attempt in range(self.max_attempts):
            if attempt > 0:
                delay = self.delay_for(attempt - 1)
                logger.info(f"Retrying audio for {result.article_id} in {delay}s (attempt {attempt + 1})")
                await self._sleep(delay)

            result.attempts += 1
            try:
                response = await client.get(url)
            except httpx.HTTPError as e:
                logger.warning(f"Audio request failed for {result.article_id}: {e}")
                result.errors.append(str(e))
                continue

            if response.status_code in (400, 404):
                # Not retryable: the article itself is missing or empty
                result.errors.append(_error_message(response))
                logger.error(f"Audio unavailable for {result.article_id}: {result.errors[-1]}")
                return

            if response.status_code >= 400:
                result.errors.append(_error_message(response))
                logger.warning(f"Audio generation error for {result.article_id}: {result.errors[-1]}")
                continue

            if self._absorb(response, result) and on_update:
                on_update(result)

            if result.is_complete:
                logger.info(f"Complete audio received for {result.article_id} after {result.attempts} requests")
                return

            logger.info(
                f"Partial audio for {result.article_id}: "
                f"{result.available_chunks}/{result.total_chunks} chunks"
            )

        logger.warning(f"Gave up on complete audio for {result.article_id} after {result.attempts} requests")

    @staticmethod
    def _absorb(response: httpx.Response, result: AudioPollResult) -> bool:
        """Record a successful response. Returns True if the audio improved."""
        is_complete = response.headers.get("X-Audio-Status") == "complete"
        result.total_chunks = _int_header(response, "X-Total-Chunks", result.total_chunks)
        result.available_chunks = _int_header(response, "X-Available-Chunks", result.available_chunks)

        audio = response.content
        improved = is_complete or (bool(audio) and len(audio) > len(result.audio or b""))
        if improved:
            result.audio = audio
        result.is_complete = is_complete
        return improved


def _int_header(response: httpx.Response, name: str, default: int) -> int:
    try:
        return int(response.headers[name])
    except (KeyError, ValueError):
        return default


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or f"HTTP {response.status_code}"
    return f"HTTP {response.status_code}"
