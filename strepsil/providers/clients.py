"""
AI provider clients.

Each provider is a ProviderClient subclass that knows its own wire format
and normalizes replies to NormalizedResponse. ProviderRegistry maps provider
names to client classes; adding a provider means registering a new class.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from strepsil.config import settings

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "/chat"


@dataclass
class NormalizedResponse:
    """Provider reply reduced to what the recorder needs."""
    text: Optional[str]
    tokens_in: int = 0
    tokens_out: int = 0
    raw: dict = field(default_factory=dict)


class ProviderError(Exception):
    """A provider call failed (transport error or error status)."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class UnsupportedProviderError(ProviderError):
    """No client is registered for the provider."""

    def __init__(self, provider: str):
        super().__init__(provider, f"Provider {provider} not supported yet")


def _error_message(response: httpx.Response) -> str:
    """Pull a readable message out of a provider error response."""
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    if isinstance(error, str):
        return error
    return f"HTTP {response.status_code}"


def _as_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class ProviderClient:
    """Base class for provider clients."""

    name: str = ""
    endpoint: str = DEFAULT_ENDPOINT
    models_path: Optional[str] = None

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key
        self.base_url = (base_url or settings.PROVIDER_URLS.get(self.name, "")).rstrip("/")
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS
        self._http = http_client

    def auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"}

    def build_payload(self, model: str, messages: list[dict], temperature: float, max_tokens: Optional[int]) -> dict:
        raise NotImplementedError

    def parse_response(self, data: dict) -> NormalizedResponse:
        raise NotImplementedError

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json", **self.auth_headers()}
        try:
            if self._http is not None:
                response = await self._http.request(method, url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise ProviderError(self.name, f"{self.name} request timed out after {int(self.timeout)}s") from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"Cannot connect to {self.name}: {e}") from e

        if response.is_error:
            raise ProviderError(self.name, _error_message(response), response.status_code)
        return response.json()

    async def invoke(
        self,
        model: str,
        messages: list[dict],
        temperature: float = 1.0,
        max_tokens: Optional[int] = None,
    ) -> NormalizedResponse:
        """Send a chat request and normalize the reply."""
        payload = self.build_payload(model, messages, temperature, max_tokens)
        data = await self._request("POST", self.endpoint, payload)
        return self.parse_response(data)

    async def verify(self) -> None:
        """
        Check that the API key works.

        Providers without a cheap authenticated endpoint only check that a
        key is present.

        Raises:
            ProviderError: If the key is missing or rejected
        """
        if not self.api_key:
            raise ProviderError(self.name, "No API key provided")
        if self.models_path:
            await self._request("GET", self.models_path)


class OpenAIClient(ProviderClient):
    name = "OpenAI"
    endpoint = "/v1/chat/completions"
    models_path = "/v1/models"

    def build_payload(self, model, messages, temperature, max_tokens):
        payload = {"model": model, "messages": messages, "temperature": temperature}
        if max_tokens:
            payload["max_tokens"] = max_tokens
        return payload

    def parse_response(self, data):
        usage = data.get("usage") or {}
        choices = data.get("choices") or []
        text = None
        if choices:
            text = (choices[0].get("message") or {}).get("content")
        return NormalizedResponse(
            text=text,
            tokens_in=_as_int(usage.get("prompt_tokens")),
            tokens_out=_as_int(usage.get("completion_tokens")),
            raw=data,
        )


class OpenRouterClient(OpenAIClient):
    name = "OpenRouter"


class PerplexityClient(OpenAIClient):
    name = "Perplexity"
    endpoint = "/chat/completions"
    models_path = None


class AnthropicClient(ProviderClient):
    name = "Anthropic"
    endpoint = "/v1/messages"
    models_path = "/v1/models"
    api_version = "2023-06-01"
    default_max_tokens = 1024

    def auth_headers(self):
        return {"x-api-key": self.api_key, "anthropic-version": self.api_version}

    def build_payload(self, model, messages, temperature, max_tokens):
        # System prompts go in a top-level field, not in the message list
        system = next((m["content"] for m in messages if m["role"] == "system"), "")
        payload = {
            "model": model,
            "max_tokens": max_tokens or self.default_max_tokens,
            "temperature": temperature,
            "messages": [m for m in messages if m["role"] != "system"],
        }
        if system:
            payload["system"] = system
        return payload

    def parse_response(self, data):
        usage = data.get("usage") or {}
        content = data.get("content") or []
        text = content[0].get("text") if content else None
        return NormalizedResponse(
            text=text,
            tokens_in=_as_int(usage.get("input_tokens")),
            tokens_out=_as_int(usage.get("output_tokens")),
            raw=data,
        )


DEFAULT_CLIENTS = {
    client.name: client
    for client in (OpenAIClient, AnthropicClient, OpenRouterClient, PerplexityClient)
}


class ProviderRegistry:
    """Maps provider names to client classes."""

    def __init__(
        self,
        clients: Optional[dict[str, type[ProviderClient]]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._clients = dict(DEFAULT_CLIENTS if clients is None else clients)
        self._http = http_client

    def register(self, name: str, client_cls: type[ProviderClient]) -> None:
        self._clients[name] = client_cls

    def names(self) -> list[str]:
        return sorted(self._clients)

    def is_supported(self, name: str) -> bool:
        return name in self._clients

    def endpoint_for(self, name: str) -> str:
        client_cls = self._clients.get(name)
        return client_cls.endpoint if client_cls else DEFAULT_ENDPOINT

    def create(self, name: str, api_key: str) -> ProviderClient:
        """
        Build a client bound to an API key.

        Raises:
            UnsupportedProviderError: If no client is registered for name
        """
        client_cls = self._clients.get(name)
        if client_cls is None:
            raise UnsupportedProviderError(name)
        return client_cls(api_key, http_client=self._http)


default_registry = ProviderRegistry()


def get_provider_registry() -> ProviderRegistry:
    """FastAPI dependency returning the provider registry."""
    return default_registry
