"""LLM provider abstraction.

Three provider wire formats sit behind one ``LLMGateway.complete()`` call.
Each ``LLMProvider`` subclass owns only its own request marshaling and
response extraction; HTTP, timeouts and status mapping live in the gateway.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Protocol, TypeVar

import httpx
from loguru import logger

from ..core.config import get_config
from ..core.errors import (
    ApiError,
    AuthenticationFailedError,
    InsufficientBalanceError,
    InvalidConfigurationError,
    InvalidResponseError,
    LLMNetworkError,
    LLMTimeoutError,
    RateLimitExceededError,
)
from ..core.models import (
    APIConfiguration,
    LLMProviderType,
    LLMRequest,
    LLMResponse,
    TokenUsage,
)

ANTHROPIC_VERSION = "2023-06-01"

T = TypeVar("T")


class LLMProvider(ABC):
    """Wire format of one LLM provider."""

    provider_type: LLMProviderType

    def __init__(self, config: APIConfiguration) -> None:
        self.config = config

    def build_url(self) -> str:
        return self.config.base_url

    def build_params(self) -> dict[str, str]:
        return {}

    @abstractmethod
    def build_headers(self) -> dict[str, str]: ...

    @abstractmethod
    def build_body(self, request: LLMRequest) -> dict[str, Any]: ...

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> tuple[str, TokenUsage | None]:
        """Extract completion text and usage. May raise KeyError/IndexError/TypeError."""


class AnthropicProvider(LLMProvider):
    provider_type = LLMProviderType.ANTHROPIC

    def build_headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": self.config.api_version or ANTHROPIC_VERSION,
        }

    def build_body(self, request: LLMRequest) -> dict[str, Any]:
        return {
            "model": self.config.model_name,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "system": request.system_prompt,
            "messages": [{"role": "user", "content": request.user_prompt}],
        }

    def parse_response(self, data: dict[str, Any]) -> tuple[str, TokenUsage | None]:
        text = data["content"][0]["text"]
        usage = None
        if isinstance(data.get("usage"), dict):
            prompt = data["usage"].get("input_tokens", 0)
            completion = data["usage"].get("output_tokens", 0)
            usage = TokenUsage(prompt, completion, prompt + completion)
        return text, usage


class OpenAIProvider(LLMProvider):
    provider_type = LLMProviderType.OPENAI

    def build_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.config.api_key}"}

    def build_body(self, request: LLMRequest) -> dict[str, Any]:
        return {
            "model": self.config.model_name,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
        }

    def parse_response(self, data: dict[str, Any]) -> tuple[str, TokenUsage | None]:
        text = data["choices"][0]["message"]["content"]
        usage = None
        if isinstance(data.get("usage"), dict):
            usage = TokenUsage(
                prompt_tokens=data["usage"].get("prompt_tokens", 0),
                completion_tokens=data["usage"].get("completion_tokens", 0),
                total_tokens=data["usage"].get("total_tokens", 0),
            )
        return text, usage


class GoogleProvider(LLMProvider):
    """Gemini generateContent API. The key travels as a query parameter."""

    provider_type = LLMProviderType.GOOGLE

    def build_url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/{self.config.model_name}:generateContent"

    def build_params(self) -> dict[str, str]:
        return {"key": self.config.api_key}

    def build_headers(self) -> dict[str, str]:
        return {}

    def build_body(self, request: LLMRequest) -> dict[str, Any]:
        return {
            "contents": [
                {"parts": [{"text": f"{request.system_prompt}\n\n{request.user_prompt}"}]}
            ],
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
            },
        }

    def parse_response(self, data: dict[str, Any]) -> tuple[str, TokenUsage | None]:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
        usage = None
        if isinstance(data.get("usageMetadata"), dict):
            meta = data["usageMetadata"]
            usage = TokenUsage(
                prompt_tokens=meta.get("promptTokenCount", 0),
                completion_tokens=meta.get("candidatesTokenCount", 0),
                total_tokens=meta.get("totalTokenCount", 0),
            )
        return text, usage


PROVIDERS: dict[LLMProviderType, type[LLMProvider]] = {
    LLMProviderType.ANTHROPIC: AnthropicProvider,
    LLMProviderType.OPENAI: OpenAIProvider,
    LLMProviderType.GOOGLE: GoogleProvider,
}


def get_provider(config: APIConfiguration) -> LLMProvider:
    """Return the wire-format variant for a configuration."""
    return PROVIDERS[config.provider](config)


def raise_for_status(status_code: int, body: str) -> None:
    """Map a non-2xx provider status to a typed error."""
    if 200 <= status_code < 300:
        return
    if status_code == 401:
        raise AuthenticationFailedError()
    if status_code == 429:
        raise RateLimitExceededError()
    lowered = body.lower()
    if status_code == 402 or (status_code == 403 and ("balance" in lowered or "quota" in lowered)):
        raise InsufficientBalanceError()
    raise ApiError(status_code, body or "Unknown error")


class ConfigurationProvider(Protocol):
    def load(self) -> APIConfiguration | None: ...


class LLMGateway:
    """Uniform ``complete(prompt) -> text`` over the configured provider."""

    def __init__(
        self,
        credentials: ConfigurationProvider,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.credentials = credentials
        self._transport = transport

    def load_configuration(self) -> APIConfiguration:
        config = self.credentials.load()
        if config is None or not config.api_key:
            raise InvalidConfigurationError()
        return config

    @property
    def model_name(self) -> str:
        return self.load_configuration().model_name

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        return await self.generate(
            LLMRequest(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        )

    async def generate(self, request: LLMRequest) -> LLMResponse:
        api_config = self.load_configuration()
        provider = get_provider(api_config)

        try:
            url = httpx.URL(provider.build_url())
        except httpx.InvalidURL as e:
            raise InvalidConfigurationError(f"Invalid base URL: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidConfigurationError(f"Invalid base URL: {api_config.base_url}")

        settings = get_config()
        logger.debug("Calling {} API: {}", api_config.provider.value, api_config.base_url)

        try:
            response = await asyncio.wait_for(
                self._post(url, provider, request, settings.llm_request_timeout),
                timeout=settings.llm_resource_timeout,
            )
        except asyncio.TimeoutError as e:
            raise LLMTimeoutError() from e
        except httpx.TimeoutException as e:
            raise LLMTimeoutError() from e
        except httpx.TransportError as e:
            logger.debug("Network error: {}", e)
            raise LLMNetworkError(f"Network error: {e}") from e

        raise_for_status(response.status_code, response.text)

        try:
            data = response.json()
            text, usage = provider.parse_response(data)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise InvalidResponseError() from e
        if not isinstance(text, str):
            raise InvalidResponseError()

        return LLMResponse(content=text, model=api_config.model_name, usage=usage)

    async def _post(
        self,
        url: httpx.URL,
        provider: LLMProvider,
        request: LLMRequest,
        timeout: float,
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            transport=self._transport,
            trust_env=False,
            timeout=timeout,
        ) as client:
            return await client.post(
                url,
                params=provider.build_params(),
                headers={"Content-Type": "application/json", **provider.build_headers()},
                json=provider.build_body(request),
            )


async def with_deadline(awaitable: Awaitable[T], seconds: float) -> T:
    """Race an awaitable against a timer; the loser is cancelled.

    Raises LLMTimeoutError when the timer wins.
    """
    call = asyncio.ensure_future(awaitable)
    timer = asyncio.ensure_future(asyncio.sleep(seconds))
    try:
        done, _ = await asyncio.wait({call, timer}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        call.cancel()
        timer.cancel()
        raise

    if call in done:
        timer.cancel()
        return call.result()

    call.cancel()
    await asyncio.gather(call, return_exceptions=True)
    raise LLMTimeoutError(f"Request timed out after {seconds:g}s")


async def check_connection(gateway: LLMGateway, deadline: float | None = None) -> LLMResponse:
    """Send a one-word prompt under an outer deadline."""
    if deadline is None:
        deadline = get_config().connection_test_deadline
    return await with_deadline(
        gateway.complete(
            "You are a helpful assistant.",
            "Say 'hello' in one word.",
            temperature=0.0,
            max_tokens=20,
        ),
        deadline,
    )
