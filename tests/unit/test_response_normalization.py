"""Unit tests for speech model response normalization and classification."""

import base64

import pytest

from narration.lib.diagnostics import GenerationContext
from narration.lib.exceptions import SynthesisError, SynthesisErrorKind
from narration.services.synthesis.response import analyze_failed_response, normalize_audio_response


async def _segments(*parts):
    for part in parts:
        yield part


async def _broken_stream():
    yield b"ID3"
    raise ConnectionResetError("connection reset by peer")


@pytest.fixture
def chunk_context():
    return GenerationContext.for_chunk("post", 2, "Some chunk text.", total_chunks=4)


class TestSuccessShapes:
    """Responses that carry audio."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [b"ID3audio", bytearray(b"ID3audio"), memoryview(b"ID3audio")])
    async def test_binary_buffers(self, response):
        assert await normalize_audio_response(response) == b"ID3audio"

    @pytest.mark.asyncio
    async def test_async_stream_drained_in_order(self):
        assert await normalize_audio_response(_segments(b"ID3", b"-", b"frames")) == b"ID3-frames"

    @pytest.mark.asyncio
    async def test_sync_iterable(self):
        assert await normalize_audio_response([b"ab", bytearray(b"cd")]) == b"abcd"

    @pytest.mark.asyncio
    async def test_base64_audio_field(self):
        payload = {"audio": base64.b64encode(b"mp3-bytes").decode()}
        assert await normalize_audio_response(payload) == b"mp3-bytes"

    @pytest.mark.asyncio
    async def test_base64_result_audio_field(self):
        payload = {"success": True, "errors": [], "result": {"audio": base64.b64encode(b"mp3").decode()}}
        assert await normalize_audio_response(payload) == b"mp3"


class TestFailureShapes:
    """Responses that are not audio."""

    @pytest.mark.asyncio
    async def test_empty_buffer(self, chunk_context):
        with pytest.raises(SynthesisError) as exc_info:
            await normalize_audio_response(b"", chunk_context)
        assert exc_info.value.kind == SynthesisErrorKind.EMPTY_RESPONSE
        assert exc_info.value.chunk_index == 2

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        with pytest.raises(SynthesisError) as exc_info:
            await normalize_audio_response(_segments())
        assert exc_info.value.kind == SynthesisErrorKind.EMPTY_RESPONSE

    @pytest.mark.asyncio
    async def test_stream_read_error(self):
        """A stream that breaks midway is an API error, not partial audio."""
        with pytest.raises(SynthesisError) as exc_info:
            await normalize_audio_response(_broken_stream())
        assert exc_info.value.kind == SynthesisErrorKind.API_ERROR
        assert exc_info.value.details == {"segmentsRead": 1}

    @pytest.mark.asyncio
    async def test_stream_of_text(self):
        with pytest.raises(SynthesisError) as exc_info:
            await normalize_audio_response(_segments(b"ok", "not bytes"))
        assert exc_info.value.kind == SynthesisErrorKind.UNEXPECTED_SHAPE

    @pytest.mark.asyncio
    async def test_invalid_base64(self):
        with pytest.raises(SynthesisError) as exc_info:
            await normalize_audio_response({"audio": "***not base64***"})
        assert exc_info.value.kind == SynthesisErrorKind.UNEXPECTED_SHAPE

    @pytest.mark.asyncio
    async def test_error_envelope_ignores_audio(self):
        payload = {"success": False, "errors": [{"code": 3040, "message": "Capacity exceeded"}], "result": None}
        with pytest.raises(SynthesisError) as exc_info:
            await normalize_audio_response(payload)
        assert exc_info.value.kind == SynthesisErrorKind.API_ERROR
        assert "Capacity exceeded" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_text_instead_of_audio(self):
        with pytest.raises(SynthesisError) as exc_info:
            await normalize_audio_response("hello there")
        assert exc_info.value.kind == SynthesisErrorKind.UNEXPECTED_SHAPE


class TestAnalyzeFailedResponse:
    """Tests for analyze_failed_response() classification."""

    def test_none(self):
        assert analyze_failed_response(None).kind == SynthesisErrorKind.EMPTY_RESPONSE

    def test_error_field(self):
        error = analyze_failed_response({"error": "Invalid input"})
        assert error.kind == SynthesisErrorKind.API_ERROR
        assert "Invalid input" in error.message

    def test_structured_error_field(self):
        error = analyze_failed_response({"error": {"code": 7003}})
        assert error.kind == SynthesisErrorKind.API_ERROR
        assert "7003" in error.message

    def test_message_field(self):
        assert analyze_failed_response({"message": "Model unavailable"}).kind == SynthesisErrorKind.API_ERROR

    def test_timeout_field(self):
        assert analyze_failed_response({"timeout": True}).kind == SynthesisErrorKind.TIMEOUT

    def test_unknown_object_lists_keys(self):
        error = analyze_failed_response({"text": "hi", "duration": 3})
        assert error.kind == SynthesisErrorKind.UNEXPECTED_SHAPE
        assert error.details["responseKeys"] == ["duration", "text"]

    @pytest.mark.parametrize(
        "response, kind",
        [
            ("Request timed out", SynthesisErrorKind.TIMEOUT),
            ("TIMEOUT after 30s", SynthesisErrorKind.TIMEOUT),
            ("Internal error", SynthesisErrorKind.API_ERROR),
            ("Inference failed", SynthesisErrorKind.API_ERROR),
            ("<html>hello</html>", SynthesisErrorKind.UNEXPECTED_SHAPE),
        ],
    )
    def test_strings(self, response, kind):
        assert analyze_failed_response(response).kind == kind

    def test_other_type(self):
        error = analyze_failed_response(42)
        assert error.kind == SynthesisErrorKind.UNEXPECTED_SHAPE
        assert error.details == {"responseType": "int"}

    def test_message_names_chunk(self, chunk_context):
        error = analyze_failed_response(None, chunk_context)
        assert "(chunk 2)" in error.message
        assert error.chunk_index == 2

    def test_logs_failure_at_debug_only(self, chunk_context, caplog):
        """Callers log the failure with full context; the classifier only adds detail."""
        with caplog.at_level("DEBUG"):
            analyze_failed_response({"error": "quota"}, chunk_context)
        assert "Audio generation failed (chunk 2)" in caplog.text
        assert not [record for record in caplog.records if record.levelname == "ERROR"]
