"""HTTP surface for article narration.

Endpoints:
    GET /api/audio/{article_id}           audio, complete (200) or partial (206)
    GET /api/article-status/{article_id}  readiness and chunk counts
    GET /health                           liveness

Every request to /api/audio runs at most one generation pass. Clients
poll the endpoint with backoff until X-Audio-Status is "complete".
"""

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from narration import __version__
from narration.lib.config import (
    GenerationConfig,
    ServerConfig,
    StorageConfig,
    get_generation_config,
    get_server_config,
    get_storage_config,
    get_synthesis_config,
)
from narration.lib.diagnostics import GenerationContext, create_error_details
from narration.lib.exceptions import GenerationFailedError, NarrationError, ValidationError
from narration.models.chunks import GenerationResult
from narration.services.articles import extract_text_for_audio, load_article
from narration.services.audio.orchestrator import (
    PROGRESS_COMPLETE,
    PROGRESS_NOT_STARTED,
    ResilientAudioGenerator,
)
from narration.services.storage import ArtifactStore, create_artifact_store
from narration.services.storage.keys import AUDIO_CONTENT_TYPE, article_namespace
from narration.services.synthesis import SynthesisClient, create_synthesis_client

logger = logging.getLogger(__name__)


TROUBLESHOOTING_STEPS = [
    "Check the error message above for the specific failure reason",
    "Verify the article exists and has content",
    "Check if the speech model service is available and within quotas",
    "Try again; some failures are transient",
    "Check server logs for more detailed error information",
]

COMMON_CAUSES = [
    "Speech model timeout",
    "Speech model service temporarily unavailable",
    "Text too long or contains unsupported content",
    "Rate limiting or quota exceeded",
    "Network connectivity issues",
]


def create_app(
    store: ArtifactStore | None = None,
    client: SynthesisClient | None = None,
    generation_config: GenerationConfig | None = None,
    server_config: ServerConfig | None = None,
    storage_config: StorageConfig | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Collaborators default to the environment configuration; tests pass
    their own store and client.

    Example:
        >>> app = create_app(store=InMemoryArtifactStore(), client=MockSynthesisClient())
    """
    storage_config = storage_config or get_storage_config()
    server_config = server_config or get_server_config()
    if store is None:
        store = create_artifact_store(storage_config)
    if client is None:
        client = create_synthesis_client(get_synthesis_config())

    app = FastAPI(title="Article Narration", version=__version__)
    app.state.store = store
    app.state.generator = ResilientAudioGenerator(store, client, generation_config or get_generation_config())
    app.state.server_config = server_config
    app.state.key_prefix = storage_config.key_prefix

    app.add_api_route("/health", health, methods=["GET"])
    app.add_api_route("/api/audio/{article_id:path}", get_audio, methods=["GET"])
    app.add_api_route("/api/article-status/{article_id:path}", get_article_status, methods=["GET"])
    return app


def get_generator(request: Request) -> ResilientAudioGenerator:
    return request.app.state.generator


def get_server_settings(request: Request) -> ServerConfig:
    return request.app.state.server_config


def resolve_namespace(request: Request, article_id: str) -> str:
    return article_namespace(article_id, request.app.state.key_prefix)


def health():
    return {"ok": True}


async def get_audio(
    article_id: str,
    request: Request,
    generator: ResilientAudioGenerator = Depends(get_generator),
    server_config: ServerConfig = Depends(get_server_settings),
):
    try:
        namespace = resolve_namespace(request, article_id)
    except ValidationError as e:
        return JSONResponse({"error": e.message}, status_code=400)

    try:
        progress = await generator.progress(namespace)
        text = None
        if progress != PROGRESS_COMPLETE:
            never_started = progress == PROGRESS_NOT_STARTED
            article = await load_article(request.app.state.store, namespace)
            if article is None and never_started:
                return JSONResponse(
                    {"error": "Article not found in storage", "path": f"{namespace}/article.json"},
                    status_code=404,
                )
            if article is not None:
                text = extract_text_for_audio(article)
            if never_started and not text:
                return JSONResponse({"error": "No text content found for audio generation"}, status_code=400)

        result = await generator.generate(namespace, text)

    except GenerationFailedError as e:
        return _total_failure_response(e, server_config)

    except ValidationError as e:
        return JSONResponse({"error": e.message}, status_code=400)

    except Exception as e:
        logger.exception(f"Audio generation failed for {article_id}")
        details = create_error_details(e, GenerationContext(article_id=article_id), label="audio-api-route")
        message = e.message if isinstance(e, NarrationError) else str(e)
        return JSONResponse(
            {
                "error": "Audio generation failed",
                "message": message,
                "debugging": details,
                "troubleshooting": {"steps": TROUBLESHOOTING_STEPS, "commonCauses": COMMON_CAUSES},
            },
            status_code=500,
        )

    return _audio_response(result, server_config)


async def get_article_status(
    article_id: str,
    request: Request,
    generator: ResilientAudioGenerator = Depends(get_generator),
):
    try:
        namespace = resolve_namespace(request, article_id)
    except ValidationError as e:
        return JSONResponse({"error": e.message}, status_code=400)

    status = await generator.status(namespace, with_audio=False)
    return {
        "audioReady": status.finalized,
        "totalChunks": status.total_chunks,
        "availableChunks": status.available_indices,
        "missingChunks": status.missing_indices,
    }


def _audio_response(result: GenerationResult, server_config: ServerConfig) -> Response:
    audio = result.audio or b""
    max_age = server_config.complete_cache_seconds if result.is_complete else server_config.partial_cache_seconds

    headers = {
        "Cache-Control": f"public, max-age={max_age}",
        "Accept-Ranges": "bytes",
        "X-Audio-Status": result.status,
        "X-Total-Chunks": str(result.total_chunks),
        "X-Available-Chunks": str(len(result.available_indices)),
        "X-Missing-Chunks": ",".join(str(index) for index in result.missing_indices) or "none",
    }
    if not result.is_complete:
        headers["X-Retry-After"] = str(server_config.retry_delays[0])

    return Response(
        content=audio,
        status_code=200 if result.is_complete else 206,
        media_type=AUDIO_CONTENT_TYPE,
        headers=headers,
    )


def _total_failure_response(error: GenerationFailedError, server_config: ServerConfig) -> JSONResponse:
    details = dict(error.details)
    chunk_failures = details.pop("chunkFailures", {})
    recommendations = details.pop("recommendations", [])
    total = chunk_failures.get("totalChunks", 0)
    dispatched = len(chunk_failures.get("dispatchedChunks", []))

    return JSONResponse(
        {
            "error": "Complete audio generation failure",
            "message": f"Failed to generate any of {dispatched} dispatched chunks ({total} total)",
            "debugging": details,
            "chunkFailures": chunk_failures,
            "recommendations": recommendations,
        },
        status_code=500,
        headers={"X-Retry-After": str(server_config.retry_delays[0])},
    )
