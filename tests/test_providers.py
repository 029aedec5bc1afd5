"""Tests for LLM providers and the gateway."""

import asyncio

import httpx
import pytest

from papertok.core.config import Config
from papertok.core.errors import (
    ApiError,
    AuthenticationFailedError,
    InsufficientBalanceError,
    InvalidConfigurationError,
    InvalidResponseError,
    LLMNetworkError,
    LLMTimeoutError,
    RateLimitExceededError,
)
from papertok.core.models import APIConfiguration, LLMProviderType, LLMRequest
from papertok.services.credential_store import CredentialStore, StaticCredentials
from papertok.services.providers import (
    AnthropicProvider,
    GoogleProvider,
    LLMGateway,
    OpenAIProvider,
    check_connection,
    get_provider,
    raise_for_status,
    with_deadline,
)

from conftest import anthropic_reply, request_json

REQUEST = LLMRequest(system_prompt="sys", user_prompt="hello", temperature=0.3, max_tokens=100)


def _gateway(config: APIConfiguration | None, handler) -> LLMGateway:
    return LLMGateway(StaticCredentials(config), transport=httpx.MockTransport(handler))


class TestWireFormats:
    """Request marshaling and response extraction per provider."""

    def test_anthropic(self):
        provider = AnthropicProvider(APIConfiguration(provider="anthropic", api_key="k", model_name="m"))

        assert provider.build_url() == "https://api.anthropic.com/v1/messages"
        assert provider.build_headers() == {"x-api-key": "k", "anthropic-version": "2023-06-01"}
        body = provider.build_body(REQUEST)
        assert body["model"] == "m"
        assert body["system"] == "sys"
        assert body["messages"] == [{"role": "user", "content": "hello"}]
        assert body["max_tokens"] == 100

        text, usage = provider.parse_response(
            {"content": [{"text": "hi"}], "usage": {"input_tokens": 3, "output_tokens": 2}}
        )
        assert text == "hi"
        assert usage.total_tokens == 5

    def test_anthropic_version_override(self):
        config = APIConfiguration(provider="anthropic", api_key="k", api_version="2024-10-22")
        assert AnthropicProvider(config).build_headers()["anthropic-version"] == "2024-10-22"

    def test_openai(self):
        provider = OpenAIProvider(APIConfiguration(provider="openai", api_key="k", model_name="m"))

        assert provider.build_headers() == {"Authorization": "Bearer k"}
        body = provider.build_body(REQUEST)
        assert body["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hello"},
        ]
        assert body["temperature"] == 0.3

        text, usage = provider.parse_response({"choices": [{"message": {"content": "hi"}}]})
        assert text == "hi"
        assert usage is None

    def test_google(self):
        provider = GoogleProvider(
            APIConfiguration(provider="google", api_key="k", model_name="gemini-x")
        )

        assert provider.build_url() == (
            "https://generativelanguage.googleapis.com/v1beta/models/gemini-x:generateContent"
        )
        assert provider.build_params() == {"key": "k"}
        assert provider.build_headers() == {}
        body = provider.build_body(REQUEST)
        assert body["contents"][0]["parts"][0]["text"] == "sys\n\nhello"
        assert body["generationConfig"] == {"temperature": 0.3, "maxOutputTokens": 100}

        text, _ = provider.parse_response(
            {"candidates": [{"content": {"parts": [{"text": "hi"}]}}]}
        )
        assert text == "hi"

    def test_get_provider(self):
        for provider_type, cls in [
            (LLMProviderType.ANTHROPIC, AnthropicProvider),
            (LLMProviderType.OPENAI, OpenAIProvider),
            (LLMProviderType.GOOGLE, GoogleProvider),
        ]:
            assert isinstance(get_provider(APIConfiguration(provider=provider_type, api_key="k")), cls)


class TestStatusMapping:
    """Non-2xx statuses map to typed errors."""

    def test_success_passes(self):
        raise_for_status(200, "")

    @pytest.mark.parametrize(
        "status, body, error",
        [
            (401, "", AuthenticationFailedError),
            (429, "", RateLimitExceededError),
            (402, "", InsufficientBalanceError),
            (403, "Insufficient Balance", InsufficientBalanceError),
            (403, "quota exceeded", InsufficientBalanceError),
            (403, "forbidden", ApiError),
            (500, "oops", ApiError),
        ],
    )
    def test_mapping(self, status, body, error):
        with pytest.raises(error):
            raise_for_status(status, body)

    def test_api_error_keeps_body(self):
        with pytest.raises(ApiError) as exc_info:
            raise_for_status(500, "oops")
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "oops"


class TestGateway:
    """HTTP behaviour of LLMGateway."""

    def test_complete(self, tmp_config: Config, api_config: APIConfiguration):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return anthropic_reply("你好")

        gateway = _gateway(api_config, handler)
        response = asyncio.run(gateway.complete("sys", "hello", temperature=0.1, max_tokens=50))

        assert response.content == "你好"
        assert response.model == api_config.model_name
        assert response.usage.total_tokens == 15
        request = seen[0]
        assert request.headers["x-api-key"] == "sk-test-key"
        assert request.headers["Content-Type"] == "application/json"
        assert request_json(request)["temperature"] == 0.1

    def test_google_key_in_query(self, tmp_config: Config):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "hi"}]}}]})

        config = APIConfiguration(provider=LLMProviderType.GOOGLE, api_key="g-key")
        asyncio.run(_gateway(config, handler).complete("sys", "hello"))

        assert seen[0].url.params["key"] == "g-key"
        assert seen[0].url.path.endswith(":generateContent")

    def test_not_configured(self, tmp_config: Config):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with pytest.raises(InvalidConfigurationError):
            asyncio.run(_gateway(None, handler).complete("sys", "hello"))

        empty_key = APIConfiguration(provider=LLMProviderType.OPENAI, api_key="")
        with pytest.raises(InvalidConfigurationError):
            asyncio.run(_gateway(empty_key, handler).complete("sys", "hello"))

    def test_invalid_base_url(self, tmp_config: Config):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        config = APIConfiguration(provider=LLMProviderType.OPENAI, api_key="k", base_url="not a url")
        with pytest.raises(InvalidConfigurationError):
            asyncio.run(_gateway(config, handler).complete("sys", "hello"))

    def test_status_error(self, tmp_config: Config, api_config: APIConfiguration):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "bad key"})

        with pytest.raises(AuthenticationFailedError):
            asyncio.run(_gateway(api_config, handler).complete("sys", "hello"))

    @pytest.mark.parametrize(
        "payload",
        [{"unexpected": True}, {"content": []}, {"content": [{"text": None}]}],
    )
    def test_invalid_response(self, tmp_config: Config, api_config: APIConfiguration, payload):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        with pytest.raises(InvalidResponseError):
            asyncio.run(_gateway(api_config, handler).complete("sys", "hello"))

    def test_non_json_response(self, tmp_config: Config, api_config: APIConfiguration):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>gateway</html>")

        with pytest.raises(InvalidResponseError):
            asyncio.run(_gateway(api_config, handler).complete("sys", "hello"))

    def test_network_error(self, tmp_config: Config, api_config: APIConfiguration):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(LLMNetworkError):
            asyncio.run(_gateway(api_config, handler).complete("sys", "hello"))

    def test_transport_timeout(self, tmp_config: Config, api_config: APIConfiguration):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(LLMTimeoutError):
            asyncio.run(_gateway(api_config, handler).complete("sys", "hello"))

    def test_resource_timeout(self, tmp_config: Config, api_config: APIConfiguration):
        tmp_config.llm_resource_timeout = 0.05

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return anthropic_reply("late")

        with pytest.raises(LLMTimeoutError):
            asyncio.run(_gateway(api_config, handler).complete("sys", "hello"))

    def test_reads_stored_credentials(self, tmp_config: Config, api_config: APIConfiguration):
        store = CredentialStore()
        store.save(api_config)

        gateway = LLMGateway(store, transport=httpx.MockTransport(lambda r: anthropic_reply("ok")))
        assert asyncio.run(gateway.complete("sys", "hello")).content == "ok"
        assert gateway.model_name == api_config.model_name


class TestDeadline:
    """Outer deadline racing."""

    def test_call_wins(self):
        async def fast():
            return "done"

        assert asyncio.run(with_deadline(fast(), 1.0)) == "done"

    def test_timer_wins_and_cancels_call(self):
        cancelled = []

        async def slow():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        with pytest.raises(LLMTimeoutError):
            asyncio.run(with_deadline(slow(), 0.01))
        assert cancelled == [True]

    def test_call_error_propagates(self):
        async def failing():
            raise AuthenticationFailedError()

        with pytest.raises(AuthenticationFailedError):
            asyncio.run(with_deadline(failing(), 1.0))

    def test_check_connection(self, tmp_config: Config, api_config: APIConfiguration):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request_json(request))
            return anthropic_reply("Hello")

        response = asyncio.run(check_connection(_gateway(api_config, handler)))

        assert response.content == "Hello"
        assert seen[0]["max_tokens"] == 20
        assert seen[0]["temperature"] == 0.0

    def test_check_connection_deadline(self, tmp_config: Config, api_config: APIConfiguration):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return anthropic_reply("late")

        with pytest.raises(LLMTimeoutError):
            asyncio.run(check_connection(_gateway(api_config, handler), deadline=0.05))
