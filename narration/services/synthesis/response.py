"""Normalization and classification of speech model responses.

The model answers either with a pre-materialized binary blob or with a
stream of byte segments. Everything else is a failure; its shape (error
object, text, unexpected keys) decides the SynthesisErrorKind and the
message.
"""

import base64
import binascii
import json
import logging
from collections.abc import AsyncIterable, Iterable
from typing import Any

from narration.lib.diagnostics import GenerationContext
from narration.lib.exceptions import SynthesisError, SynthesisErrorKind

logger = logging.getLogger(__name__)


RAW_PREVIEW_LENGTH = 1000
TIMEOUT_WORDS = ("timeout", "timed out")
ERROR_WORDS = ("error", "failed")


async def normalize_audio_response(response: Any, context: GenerationContext | None = None) -> bytes:
    """
    Turn a model response into a single audio byte buffer.

    Accepted success shapes:
        - bytes / bytearray / memoryview
        - an async or sync iterable of byte segments (drained in order)
        - a JSON object carrying base64 audio under "audio" or "result.audio"

    Args:
        response: Raw model response
        context: Diagnostic context for error messages

    Returns:
        bytes: Audio payload

    Raises:
        SynthesisError: If the response is not audio
    """
    context = context or GenerationContext()

    if isinstance(response, (bytes, bytearray, memoryview)):
        data = bytes(response)
        if not data:
            raise _empty_audio_error(context)
        return data

    if isinstance(response, AsyncIterable):
        return await _drain_async_stream(response, context)

    if isinstance(response, dict):
        encoded = _embedded_audio(response)
        if encoded is not None:
            return _decode_embedded_audio(encoded, context)

    if isinstance(response, Iterable) and not isinstance(response, (str, dict)):
        return _drain_sync_stream(response, context)

    raise analyze_failed_response(response, context)


async def _drain_async_stream(stream: AsyncIterable, context: GenerationContext) -> bytes:
    segments: list[bytes] = []
    try:
        async for segment in stream:
            segments.append(_segment_bytes(segment, context))
    except SynthesisError:
        raise
    except Exception as e:
        raise SynthesisError(
            f"Failed to read audio stream{context.chunk_label}: {e}",
            kind=SynthesisErrorKind.API_ERROR,
            chunk_index=context.chunk_index,
            details={"segmentsRead": len(segments)},
        ) from e

    data = b"".join(segments)
    if not data:
        raise _empty_audio_error(context)
    logger.debug(f"Drained audio stream{context.chunk_label}: {len(segments)} segments, {len(data)} bytes")
    return data


def _drain_sync_stream(stream: Iterable, context: GenerationContext) -> bytes:
    segments = [_segment_bytes(segment, context) for segment in stream]
    data = b"".join(segments)
    if not data:
        raise _empty_audio_error(context)
    return data


def _segment_bytes(segment: Any, context: GenerationContext) -> bytes:
    if isinstance(segment, (bytes, bytearray, memoryview)):
        return bytes(segment)
    raise SynthesisError(
        f"Audio stream{context.chunk_label} yielded {type(segment).__name__} instead of bytes",
        kind=SynthesisErrorKind.UNEXPECTED_SHAPE,
        chunk_index=context.chunk_index,
        details={"segmentType": type(segment).__name__},
    )


def _embedded_audio(payload: dict) -> str | None:
    """Find base64 audio in a JSON envelope ({"audio"} or {"result": {"audio"}})."""
    if payload.get("success") is False or payload.get("errors"):
        return None
    audio = payload.get("audio")
    if isinstance(audio, str):
        return audio
    result = payload.get("result")
    if isinstance(result, dict) and isinstance(result.get("audio"), str):
        return result["audio"]
    return None


def _decode_embedded_audio(encoded: str, context: GenerationContext) -> bytes:
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SynthesisError(
            f"Model returned audio field that is not valid base64{context.chunk_label}",
            kind=SynthesisErrorKind.UNEXPECTED_SHAPE,
            chunk_index=context.chunk_index,
        ) from e
    if not data:
        raise _empty_audio_error(context)
    return data


def _empty_audio_error(context: GenerationContext) -> SynthesisError:
    return SynthesisError(
        f"Model returned empty audio{context.chunk_label}",
        kind=SynthesisErrorKind.EMPTY_RESPONSE,
        chunk_index=context.chunk_index,
    )


def analyze_failed_response(response: Any, context: GenerationContext | None = None) -> SynthesisError:
    """
    Classify a response that is not audio.

    Args:
        response: Raw model response
        context: Diagnostic context

    Returns:
        SynthesisError describing the failure (not raised)
    """
    context = context or GenerationContext()
    error = _classify(response, context)

    logger.debug(
        f"Audio generation failed{context.chunk_label} [{error.kind.value}]: {error.message} | "
        f"context: {context.as_dict()}"
    )
    logger.debug(f"Raw response (first {RAW_PREVIEW_LENGTH} chars): {_raw_preview(response)}")
    return error


def _classify(response: Any, context: GenerationContext) -> SynthesisError:
    label = context.chunk_label
    index = context.chunk_index

    if response is None:
        return SynthesisError(
            f"Model returned no response{label}. This usually indicates a server error or timeout.",
            kind=SynthesisErrorKind.EMPTY_RESPONSE,
            chunk_index=index,
        )

    if isinstance(response, dict):
        keys = sorted(str(key) for key in response.keys())

        if "error" in response:
            error_value = response["error"]
            message = error_value if isinstance(error_value, str) else json.dumps(error_value, default=str)
            return SynthesisError(
                f"Model API error{label}: {message}",
                kind=SynthesisErrorKind.API_ERROR,
                chunk_index=index,
                details={"responseKeys": keys},
            )

        if response.get("errors"):
            messages = [
                item.get("message", str(item)) if isinstance(item, dict) else str(item)
                for item in response["errors"]
            ]
            return SynthesisError(
                f"Model API error{label}: {'; '.join(messages)}",
                kind=SynthesisErrorKind.API_ERROR,
                chunk_index=index,
                details={"responseKeys": keys, "errors": response["errors"]},
            )

        if "message" in response or "detail" in response:
            message = response.get("message") or response.get("detail")
            return SynthesisError(
                f"Model error{label}: {message}",
                kind=SynthesisErrorKind.API_ERROR,
                chunk_index=index,
                details={"responseKeys": keys},
            )

        if "timeout" in response:
            return SynthesisError(
                f"Model request timeout{label}: request took too long to complete",
                kind=SynthesisErrorKind.TIMEOUT,
                chunk_index=index,
                details={"responseKeys": keys},
            )

        return SynthesisError(
            f"Model returned unexpected object{label}: expected audio, got object with keys: {', '.join(keys)}",
            kind=SynthesisErrorKind.UNEXPECTED_SHAPE,
            chunk_index=index,
            details={"responseKeys": keys},
        )

    if isinstance(response, str):
        lowered = response.lower()
        if any(word in lowered for word in TIMEOUT_WORDS):
            return SynthesisError(
                f"Model timeout{label}: {response}",
                kind=SynthesisErrorKind.TIMEOUT,
                chunk_index=index,
            )
        if any(word in lowered for word in ERROR_WORDS):
            return SynthesisError(
                f"Model error response{label}: {response}",
                kind=SynthesisErrorKind.API_ERROR,
                chunk_index=index,
            )
        preview = response[:100] + ("..." if len(response) > 100 else "")
        return SynthesisError(
            f'Model returned text instead of audio{label}: "{preview}"',
            kind=SynthesisErrorKind.UNEXPECTED_SHAPE,
            chunk_index=index,
            details={"stringLength": len(response)},
        )

    return SynthesisError(
        f"Model returned unexpected type{label}: expected audio, got {type(response).__name__}",
        kind=SynthesisErrorKind.UNEXPECTED_SHAPE,
        chunk_index=index,
        details={"responseType": type(response).__name__},
    )


def _raw_preview(response: Any) -> str:
    if isinstance(response, str):
        return response[:RAW_PREVIEW_LENGTH]
    try:
        return json.dumps(response, indent=2, default=str)[:RAW_PREVIEW_LENGTH]
    except (TypeError, ValueError):
        return repr(response)[:RAW_PREVIEW_LENGTH]
