"""
Call recorder - runs a chat request against a provider and logs it.

Every attempt that reaches the provider produces exactly one ai_calls
record, success or failure. The failure record is committed before the
error is raised to the caller.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from cryptography.fernet import InvalidToken
from fastapi import Depends

from strepsil.config import settings
from strepsil.models import AiCall, CallStatus, generate_uuid
from strepsil.providers.clients import NormalizedResponse, ProviderRegistry, get_provider_registry
from strepsil.providers.pricing import get_model_rate
from strepsil.schemas import ChatMessage, ChatRequest
from strepsil.services.call_store import AiCallStore, get_call_store
from strepsil.services.provider_service import ProviderConfigService, get_provider_service

logger = logging.getLogger(__name__)


class ProviderNotConfiguredError(ValueError):
    """The provider is unknown or has no API key."""


class ProviderCallError(Exception):
    """The provider call failed; a failure record was written."""

    def __init__(self, message: str, call_id: str):
        self.message = message
        self.call_id = call_id
        super().__init__(message)


def format_prompt(messages: list[ChatMessage]) -> str:
    """One "<role>: <content>" line per message."""
    return "\n".join(f"{m.role}: {m.content}" for m in messages)


@dataclass
class ChatResult:
    call: AiCall

    def to_dict(self) -> dict:
        call = self.call
        return {
            "id": call.id,
            "response": call.response,
            "usage": {
                "prompt_tokens": call.tokens_in,
                "completion_tokens": call.tokens_out,
                "total_tokens": call.total_tokens,
            },
            "cost": call.total_cost,
            "latency_ms": call.latency_ms,
            "provider": call.provider,
            "model": call.model_type,
        }


class CallRecorder:
    """Invokes providers through the registry and records each attempt."""

    def __init__(
        self,
        store: AiCallStore,
        providers: ProviderConfigService,
        registry: ProviderRegistry,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.providers = providers
        self.registry = registry
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS

    async def _resolve_api_key(self, provider_name: str):
        config = await self.providers.get(provider_name)
        if config is None:
            raise ProviderNotConfiguredError(f"{provider_name} API key not configured")
        try:
            api_key = self.providers.get_api_key(config)
        except InvalidToken as e:
            raise ProviderNotConfiguredError(f"{provider_name} API key cannot be decrypted") from e
        if not api_key:
            raise ProviderNotConfiguredError(f"{provider_name} API key not configured")
        return config, api_key

    async def record_chat(self, request: ChatRequest) -> ChatResult:
        """
        Send a chat request and record the call.

        Raises:
            ProviderNotConfiguredError: Provider missing or without a key;
                nothing is recorded
            ProviderCallError: The provider call failed; the failure record
                id is on the exception
        """
        config, api_key = await self._resolve_api_key(request.provider)
        rate = get_model_rate(config.pricing, request.model)
        messages = [m.model_dump() for m in request.messages]

        call_id = generate_uuid()
        result: Optional[NormalizedResponse] = None
        error: Optional[str] = None

        started = time.perf_counter()
        try:
            client = self.registry.create(request.provider, api_key)
            result = await asyncio.wait_for(
                client.invoke(request.model, messages, request.temperature, request.max_tokens),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            error = f"{request.provider} call timed out after {self.timeout:g}s"
        except Exception as e:
            error = str(e) or e.__class__.__name__
        latency_ms = int((time.perf_counter() - started) * 1000)

        call, _ = await self.store.insert({
            "id": call_id,
            "provider": request.provider,
            "model_type": request.model,
            "endpoint": self.registry.endpoint_for(request.provider),
            "prompt": format_prompt(request.messages),
            "response": result.text if result else None,
            "tokens_in": result.tokens_in if result else 0,
            "tokens_out": result.tokens_out if result else 0,
            "cost_per_token_in": rate.input,
            "cost_per_token_out": rate.output,
            "latency_ms": latency_ms,
            "status": CallStatus.FAILURE if error else CallStatus.SUCCESS,
            "error_message": error,
            "metadata": {
                "temperature": request.temperature,
                "max_tokens": request.max_tokens,
                "raw_response": result.raw if result else None,
            },
        })

        log_extra = {
            "call_id": call.id,
            "provider": call.provider,
            "model": call.model_type,
            "latency_ms": latency_ms,
            "status": call.status,
        }
        if error:
            logger.warning("AI call failed: %s", error, extra=log_extra)
            raise ProviderCallError(error, call.id)

        logger.info("AI call recorded", extra={**log_extra, "total_cost": call.total_cost})
        return ChatResult(call=call)


def get_call_recorder(
    store: AiCallStore = Depends(get_call_store),
    providers: ProviderConfigService = Depends(get_provider_service),
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> CallRecorder:
    return CallRecorder(store, providers, registry)
