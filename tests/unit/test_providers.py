"""
Unit tests for the GLM and Gemini provider clients and the provider registry.

Upstream APIs are replaced with httpx.MockTransport handlers.
"""

import asyncio
import json

import httpx
import pytest
import pytest_asyncio

from conftest import VALID_GEMINI_KEY, card_json
from src.core.errors import (
    ConfigurationError,
    MalformedResponse,
    NoImageData,
    ProviderConnectionError,
    ProviderError,
    ProviderTimeout,
    UpstreamHttpError,
)
from src.generation.models import CardSource
from src.integrations.gemini_client import GeminiClient
from src.integrations.glm_client import GLMClient
from src.integrations.registry import ProviderRegistry

SAMPLE_CARD = {
    "title": "🦕 恐龙的秘密",
    "introduction": "小朋友，恐龙是很久以前的动物！",
    "points": [
        {"title": "🔍 秘密1", "content": "恐龙生活在很久以前。"},
        {"title": "🔍 秘密2", "content": "恐龙种类很多。"},
        {"title": "🔍 秘密3", "content": "鸟类是恐龙的后代。"},
    ],
    "summary": "💡 化石让我们认识恐龙！",
}


class Recorder:
    """MockTransport handler returning a fixed response and keeping the requests."""

    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self.body = body
        self.text = text
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


def glm_envelope(content):
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


def gemini_envelope(*parts):
    return {"candidates": [{"content": {"role": "model", "parts": list(parts)}}]}


@pytest_asyncio.fixture
async def http_factory():
    """Build AsyncClients over MockTransport and close them after the test."""
    clients = []

    def build(handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield build
    for client in clients:
        await client.aclose()


# =============================================================================
# GLM
# =============================================================================


class TestGLMClient:
    def test_missing_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError, match="GLM_API_KEY"):
            GLMClient(api_key=None)

    def test_blank_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            GLMClient(api_key="   ")

    @pytest.mark.asyncio
    async def test_success_returns_message_content(self, http_factory):
        recorder = Recorder(body=glm_envelope(card_json()))
        client = GLMClient(api_key="glm-key", http_client=http_factory(recorder))

        result = await client.generate_card("恐龙是怎么灭绝的？")

        assert result.ok
        assert json.loads(result.value)["title"] == "🦕 恐龙的秘密"

        request = recorder.requests[0]
        assert request.headers["Authorization"] == "Bearer glm-key"
        payload = recorder.last_json
        assert payload["model"] == "glm-4-flash"
        assert payload["stream"] is False
        assert payload["max_tokens"] == 2000
        assert "恐龙是怎么灭绝的？" in payload["messages"][0]["content"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, message",
        [
            (401, "API密钥无效"),
            (403, "API密钥无效"),
            (429, "API请求频率超限，请稍后再试"),
            (503, "API服务暂时不可用，请稍后再试"),
            (400, "API请求失败: 400"),
        ],
    )
    async def test_http_errors(self, http_factory, status, message):
        recorder = Recorder(status_code=status, body={"error": {"message": "nope"}})
        client = GLMClient(api_key="glm-key", http_client=http_factory(recorder))

        result = await client.generate_card("恐龙")

        assert isinstance(result.error, UpstreamHttpError)
        assert result.error.status == status
        assert result.error.user_message == message
        assert result.error.provider == "glm"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "recorder",
        [
            Recorder(body={"choices": []}),
            Recorder(body={"choices": [{"message": {"content": "   "}}]}),
            Recorder(body=["not", "an", "object"]),
            Recorder(text="<html>gateway</html>"),
        ],
    )
    async def test_malformed_envelopes(self, http_factory, recorder):
        client = GLMClient(api_key="glm-key", http_client=http_factory(recorder))

        result = await client.generate_card("恐龙")

        assert isinstance(result.error, MalformedResponse)

    @pytest.mark.asyncio
    async def test_slow_upstream_times_out(self, http_factory):
        async def slow(request):
            await asyncio.sleep(1)
            return httpx.Response(200, json=glm_envelope("late"))

        client = GLMClient(api_key="glm-key", timeout=0.05, http_client=http_factory(slow))

        result = await client.generate_card("恐龙")

        assert isinstance(result.error, ProviderTimeout)
        assert result.error.user_message == "请求超时，请稍后再试"

    @pytest.mark.asyncio
    async def test_transport_timeout_is_timeout(self, http_factory):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        client = GLMClient(api_key="glm-key", http_client=http_factory(handler))

        assert isinstance((await client.generate_card("恐龙")).error, ProviderTimeout)

    @pytest.mark.asyncio
    async def test_invalid_url_is_connection_error(self, http_factory):
        client = GLMClient(
            api_key="glm-key",
            api_url="http://[::1",
            http_client=http_factory(Recorder(body=glm_envelope("unused"))),
        )

        result = await client.generate_card("恐龙")

        assert isinstance(result.error, ProviderConnectionError)

    @pytest.mark.asyncio
    async def test_parser_bug_becomes_provider_error(self, http_factory):
        class BrokenGLMClient(GLMClient):
            def extract_text(self, data):
                raise KeyError("choices")

        recorder = Recorder(body=glm_envelope("ok"))
        client = BrokenGLMClient(api_key="glm-key", http_client=http_factory(recorder))

        result = await client.generate_card("恐龙")

        assert isinstance(result.error, ProviderError)
        assert result.error.provider == "glm"
        assert "KeyError" in str(result.error)

    @pytest.mark.asyncio
    async def test_connection_refused(self, http_factory):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = GLMClient(api_key="glm-key", http_client=http_factory(handler))

        assert isinstance((await client.generate_card("恐龙")).error, ProviderConnectionError)


# =============================================================================
# Gemini
# =============================================================================


class TestGeminiClient:
    def test_missing_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            GeminiClient(api_key="")

    def test_malformed_key_is_rejected_without_echoing_it(self):
        with pytest.raises(ConfigurationError) as exc_info:
            GeminiClient(api_key="sk-not-a-gemini-key")

        assert "sk-not-a-gemini-key" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_card_text_joins_parts(self, http_factory):
        recorder = Recorder(body=gemini_envelope({"text": "第一行"}, {"text": "第二行"}))
        client = GeminiClient(api_key=VALID_GEMINI_KEY, http_client=http_factory(recorder))

        result = await client.generate_card("彩虹")

        assert result.value == "第一行\n第二行"
        request = recorder.requests[0]
        assert str(request.url).endswith("/models/gemini-2.5-flash:generateContent")
        assert request.headers["x-goog-api-key"] == VALID_GEMINI_KEY
        assert VALID_GEMINI_KEY not in str(request.url)
        assert recorder.last_json["generationConfig"]["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_card_without_candidates_is_malformed(self, http_factory):
        recorder = Recorder(body={"promptFeedback": {"blockReason": "SAFETY"}})
        client = GeminiClient(api_key=VALID_GEMINI_KEY, http_client=http_factory(recorder))

        assert isinstance((await client.generate_card("彩虹")).error, MalformedResponse)

    @pytest.mark.asyncio
    async def test_image_success(self, http_factory):
        recorder = Recorder(
            body=gemini_envelope(
                {"text": "Here is your card"},
                {"inlineData": {"mimeType": "image/jpeg", "data": "aGVsbG8="}},
            )
        )
        client = GeminiClient(api_key=VALID_GEMINI_KEY, http_client=http_factory(recorder))

        result = await client.generate_image(SAMPLE_CARD)

        assert result.value.mime_type == "image/jpeg"
        assert result.value.base64_data == "aGVsbG8="
        assert str(recorder.requests[0].url).endswith(
            "/models/gemini-2.5-flash-image-preview:generateContent"
        )
        payload = recorder.last_json
        assert payload["generationConfig"]["responseModalities"] == ["TEXT", "IMAGE"]
        prompt = payload["contents"][0]["parts"][0]["text"]
        assert '"恐龙的秘密"' in prompt
        assert "鸟类是恐龙的后代。" in prompt

    @pytest.mark.asyncio
    async def test_image_snake_case_defaults_to_png(self, http_factory):
        recorder = Recorder(body=gemini_envelope({"inline_data": {"data": "aGVsbG8="}}))
        client = GeminiClient(api_key=VALID_GEMINI_KEY, http_client=http_factory(recorder))

        result = await client.generate_image(SAMPLE_CARD)

        assert result.value.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_text_only_answer_is_no_image_data(self, http_factory):
        recorder = Recorder(body=gemini_envelope({"text": "I cannot draw that"}))
        client = GeminiClient(api_key=VALID_GEMINI_KEY, http_client=http_factory(recorder))

        result = await client.generate_image(SAMPLE_CARD)

        assert isinstance(result.error, NoImageData)
        assert "no image data" in str(result.error)

    @pytest.mark.asyncio
    async def test_image_prompt_tolerates_partial_card(self, http_factory):
        recorder = Recorder(
            body=gemini_envelope({"inlineData": {"mimeType": "image/png", "data": "eA=="}})
        )
        client = GeminiClient(api_key=VALID_GEMINI_KEY, http_client=http_factory(recorder))

        result = await client.generate_image({"title": "🌈 彩虹", "points": "oops"})

        assert result.ok


# =============================================================================
# Registry
# =============================================================================


class TestProviderRegistry:
    def test_chain_follows_configured_order(self, settings):
        chain = ProviderRegistry(settings).card_chain()

        assert [(source, provider.name) for source, provider in chain] == [
            (CardSource.PRIMARY, "glm"),
            (CardSource.SECONDARY, "gemini"),
        ]

    def test_order_can_be_swapped(self, settings):
        settings = settings.model_copy(
            update={"card_primary_provider": "gemini", "card_secondary_provider": "glm"}
        )

        chain = ProviderRegistry(settings).card_chain()

        assert [provider.name for _, provider in chain] == ["gemini", "glm"]

    def test_unconfigured_provider_is_skipped(self, settings):
        settings = settings.model_copy(update={"glm_api_key": None})

        chain = ProviderRegistry(settings).card_chain()

        assert [(source, provider.name) for source, provider in chain] == [
            (CardSource.SECONDARY, "gemini"),
        ]

    def test_empty_primary_slot_keeps_secondary_tag(self, settings):
        settings = settings.model_copy(update={"card_primary_provider": "none"})

        chain = ProviderRegistry(settings).card_chain()

        assert [(source, provider.name) for source, provider in chain] == [
            (CardSource.SECONDARY, "gemini"),
        ]

    def test_duplicate_slot_is_tried_once(self, settings):
        settings = settings.model_copy(update={"card_secondary_provider": "glm"})

        chain = ProviderRegistry(settings).card_chain()

        assert [(source, provider.name) for source, provider in chain] == [
            (CardSource.PRIMARY, "glm"),
        ]

    def test_none_disables_secondary(self, settings):
        settings = settings.model_copy(update={"card_secondary_provider": "none"})

        assert len(ProviderRegistry(settings).card_chain()) == 1

    def test_chain_is_built_once(self, settings):
        registry = ProviderRegistry(settings)

        assert registry.card_chain() is registry.card_chain()

    def test_unknown_provider(self, settings):
        with pytest.raises(ConfigurationError):
            ProviderRegistry(settings).build("openai")

    def test_image_client_requires_gemini_key(self, settings):
        settings = settings.model_copy(update={"gemini_api_key": None})

        with pytest.raises(ConfigurationError):
            ProviderRegistry(settings).image_client()
