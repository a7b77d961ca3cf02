"""Contract tests for SynthesisClient implementations.

The Workers AI client is exercised against httpx.MockTransport so no
request leaves the process. Contract:
- One HTTP call per synthesize() (no retries)
- Binary and JSON success responses yield bytes
- Every failure surfaces as SynthesisError with a kind
"""

import base64
import json

import httpx
import pytest

from narration.lib.config import SynthesisConfig
from narration.lib.diagnostics import GenerationContext
from narration.lib.exceptions import ConfigError, SynthesisError, SynthesisErrorKind, ValidationError
from narration.services.synthesis import (
    MockSynthesisClient,
    SynthesisClient,
    WorkersAISynthesisClient,
    create_synthesis_client,
)


@pytest.fixture
def synthesis_config():
    return SynthesisConfig(
        _env_file=None,
        account_id="acct-123",
        api_token="token-abc",
        model="@cf/deepgram/aura-1",
        base_url="https://api.example.test/client/v4",
        gateway_id=None,
        timeout_seconds=5,
    )


def make_client(config, handler, requests=None):
    """WorkersAISynthesisClient whose HTTP calls are answered by handler."""

    def recording_handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
    return WorkersAISynthesisClient(config, http_client=http_client)


class TestWorkersAIRequests:
    """Shape of the outgoing request."""

    @pytest.mark.asyncio
    async def test_posts_text_to_model_endpoint(self, synthesis_config):
        requests = []
        client = make_client(
            synthesis_config,
            lambda request: httpx.Response(200, content=b"ID3mp3", headers={"content-type": "audio/mpeg"}),
            requests,
        )

        audio = await client.synthesize("Hello, world.")

        assert audio == b"ID3mp3"
        assert len(requests) == 1
        request = requests[0]
        assert request.method == "POST"
        assert request.url.host == "api.example.test"
        assert request.url.path == "/client/v4/accounts/acct-123/ai/run/@cf/deepgram/aura-1"
        assert request.headers["Authorization"] == "Bearer token-abc"
        assert json.loads(request.content) == {"text": "Hello, world."}

    def test_gateway_endpoint(self, synthesis_config):
        synthesis_config.gateway_id = "my-gateway"
        client = WorkersAISynthesisClient(synthesis_config)
        assert client.endpoint_url == (
            "https://gateway.ai.cloudflare.com/v1/acct-123/my-gateway/workers-ai/@cf/deepgram/aura-1"
        )

    def test_model_name(self, synthesis_config):
        assert WorkersAISynthesisClient(synthesis_config).model_name == "@cf/deepgram/aura-1"

    def test_implements_protocol(self, synthesis_config):
        assert isinstance(WorkersAISynthesisClient(synthesis_config), SynthesisClient)
        assert isinstance(MockSynthesisClient(), SynthesisClient)


class TestWorkersAIResponses:
    """Classification of model responses."""

    @pytest.mark.asyncio
    async def test_json_envelope_with_audio(self, synthesis_config):
        payload = {"success": True, "errors": [], "result": {"audio": base64.b64encode(b"mp3-data").decode()}}
        client = make_client(synthesis_config, lambda request: httpx.Response(200, json=payload))

        assert await client.synthesize("Hello.") == b"mp3-data"

    @pytest.mark.asyncio
    async def test_json_error_envelope(self, synthesis_config):
        payload = {"success": False, "errors": [{"code": 5006, "message": "Input too long"}], "result": None}
        client = make_client(synthesis_config, lambda request: httpx.Response(200, json=payload))

        with pytest.raises(SynthesisError) as exc_info:
            await client.synthesize("Hello.")
        assert exc_info.value.kind == SynthesisErrorKind.API_ERROR
        assert "Input too long" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_http_error_status(self, synthesis_config):
        payload = {"success": False, "errors": [{"message": "Internal server error"}]}
        client = make_client(synthesis_config, lambda request: httpx.Response(500, json=payload))

        with pytest.raises(SynthesisError) as exc_info:
            await client.synthesize("Hello.", GenerationContext.for_chunk("post", 1, "Hello."))

        error = exc_info.value
        assert error.kind == SynthesisErrorKind.API_ERROR
        assert error.details["statusCode"] == 500
        assert error.chunk_index == 1
        assert error.message.startswith("HTTP 500")

    @pytest.mark.asyncio
    async def test_http_error_without_body(self, synthesis_config):
        client = make_client(synthesis_config, lambda request: httpx.Response(429))

        with pytest.raises(SynthesisError) as exc_info:
            await client.synthesize("Hello.")
        assert exc_info.value.kind == SynthesisErrorKind.API_ERROR
        assert exc_info.value.details["statusCode"] == 429

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [408, 504, 524])
    async def test_gateway_timeouts(self, synthesis_config, status_code):
        client = make_client(synthesis_config, lambda request: httpx.Response(status_code, text="upstream"))

        with pytest.raises(SynthesisError) as exc_info:
            await client.synthesize("Hello.")
        assert exc_info.value.kind == SynthesisErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_empty_audio(self, synthesis_config):
        client = make_client(
            synthesis_config,
            lambda request: httpx.Response(200, content=b"", headers={"content-type": "audio/mpeg"}),
        )

        with pytest.raises(SynthesisError) as exc_info:
            await client.synthesize("Hello.")
        assert exc_info.value.kind == SynthesisErrorKind.EMPTY_RESPONSE

    @pytest.mark.asyncio
    async def test_text_response(self, synthesis_config):
        client = make_client(synthesis_config, lambda request: httpx.Response(200, text="Worker exceeded CPU time, failed"))

        with pytest.raises(SynthesisError) as exc_info:
            await client.synthesize("Hello.")
        assert exc_info.value.kind == SynthesisErrorKind.API_ERROR

    @pytest.mark.asyncio
    async def test_transport_error(self, synthesis_config):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(synthesis_config, handler)

        with pytest.raises(SynthesisError) as exc_info:
            await client.synthesize("Hello.")
        assert exc_info.value.kind == SynthesisErrorKind.API_ERROR

    @pytest.mark.asyncio
    async def test_transport_timeout(self, synthesis_config):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        client = make_client(synthesis_config, handler)

        with pytest.raises(SynthesisError) as exc_info:
            await client.synthesize("Hello.")
        assert exc_info.value.kind == SynthesisErrorKind.TIMEOUT


class TestWorkersAIValidation:

    @pytest.mark.asyncio
    async def test_empty_text(self, synthesis_config):
        client = WorkersAISynthesisClient(synthesis_config)
        with pytest.raises(ValidationError):
            await client.synthesize("   ")

    @pytest.mark.asyncio
    async def test_missing_credentials(self, synthesis_config):
        synthesis_config.api_token = ""
        client = make_client(synthesis_config, lambda request: httpx.Response(200, content=b"x"))
        with pytest.raises(ConfigError):
            await client.synthesize("Hello.")


class TestMockSynthesisClient:
    """The mock follows the same contract as the real client."""

    @pytest.mark.asyncio
    async def test_deterministic_audio(self):
        client = MockSynthesisClient()
        assert await client.synthesize("Hello.") == MockSynthesisClient.audio_for("Hello.")
        assert client.calls == ["Hello."]
        assert client.synthesis_count == 1

    @pytest.mark.asyncio
    async def test_fail_texts(self):
        client = MockSynthesisClient(fail_texts={"broken"}, fail_kind=SynthesisErrorKind.TIMEOUT)
        context = GenerationContext.for_chunk("post", 4, "This is broken.")

        with pytest.raises(SynthesisError) as exc_info:
            await client.synthesize("This is broken.", context)
        assert exc_info.value.kind == SynthesisErrorKind.TIMEOUT
        assert exc_info.value.chunk_index == 4

    @pytest.mark.asyncio
    async def test_fail_all(self):
        client = MockSynthesisClient()
        client.fail_all = True
        with pytest.raises(SynthesisError):
            await client.synthesize("Anything.")

    @pytest.mark.asyncio
    async def test_responder_output_is_normalized(self):
        client = MockSynthesisClient(responder=lambda text: {"error": "quota exceeded"})
        with pytest.raises(SynthesisError) as exc_info:
            await client.synthesize("Hello.")
        assert exc_info.value.kind == SynthesisErrorKind.API_ERROR

    @pytest.mark.asyncio
    async def test_responder_stream(self):
        client = MockSynthesisClient(responder=lambda text: [b"a", b"b"])
        assert await client.synthesize("Hello.") == b"ab"

    @pytest.mark.asyncio
    async def test_reset_stats(self):
        client = MockSynthesisClient()
        await client.synthesize("Hello.")
        client.reset_stats()
        assert client.synthesis_count == 0


class TestCreateSynthesisClient:

    def test_providers(self, synthesis_config):
        assert isinstance(create_synthesis_client(synthesis_config), WorkersAISynthesisClient)
        assert isinstance(create_synthesis_client(synthesis_config, "mock"), MockSynthesisClient)

    def test_unknown_provider(self, synthesis_config):
        with pytest.raises(ValueError):
            create_synthesis_client(synthesis_config, "polly")
