"""
Provider configuration routes.

API keys are write-only: responses carry a `configured` flag and a masked
hint, never the key.
"""
import logging

from cryptography.fernet import InvalidToken
from fastapi import APIRouter, Depends, HTTPException

from strepsil.providers.clients import ProviderError, ProviderRegistry, get_provider_registry
from strepsil.schemas import ProviderTestRequest, ProviderUpdate
from strepsil.services.provider_service import (
    InvalidPricingError,
    ProviderConfigService,
    get_provider_service,
)

router = APIRouter(prefix="/api/providers", tags=["providers"])
logger = logging.getLogger(__name__)


async def get_provider_or_404(name: str, providers: ProviderConfigService):
    provider = await providers.get(name)
    if not provider:
        raise HTTPException(status_code=404, detail="Provider not found")
    return provider


@router.get("")
async def list_providers(providers: ProviderConfigService = Depends(get_provider_service)):
    return {"providers": [providers.to_public_dict(p) for p in await providers.get_all()]}


@router.get("/{name}")
async def get_provider(name: str, providers: ProviderConfigService = Depends(get_provider_service)):
    provider = await get_provider_or_404(name, providers)
    return {"provider": providers.to_public_dict(provider)}


@router.put("/{name}")
async def update_provider(
    name: str,
    body: ProviderUpdate,
    providers: ProviderConfigService = Depends(get_provider_service),
):
    """Partial update of key, active flag, models and pricing."""
    await get_provider_or_404(name, providers)
    try:
        provider = await providers.update(name, body)
    except InvalidPricingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "Provider updated successfully", "provider": providers.to_public_dict(provider)}


@router.post("/{name}/test")
async def test_provider(
    name: str,
    body: ProviderTestRequest,
    providers: ProviderConfigService = Depends(get_provider_service),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """
    Check an API key against the provider.

    Uses the key in the body if given, otherwise the stored one. Providers
    without a registered client only check that a key is present.
    """
    provider = await get_provider_or_404(name, providers)

    api_key = body.api_key
    if not api_key:
        try:
            api_key = providers.get_api_key(provider)
        except InvalidToken:
            raise HTTPException(status_code=400, detail="Stored API key cannot be decrypted")
    if not api_key:
        raise HTTPException(status_code=400, detail="No API key provided")

    error = None
    if registry.is_supported(name):
        try:
            await registry.create(name, api_key).verify()
        except ProviderError as e:
            error = e.message
            logger.info("Provider key test failed", extra={"provider": name, "error": error})

    return {
        "success": error is None,
        "message": "API key is valid" if error is None else "API key test failed",
        "error": error,
    }


@router.get("/{name}/models")
async def get_provider_models(name: str, providers: ProviderConfigService = Depends(get_provider_service)):
    provider = await get_provider_or_404(name, providers)
    return {"models": provider.models or [], "pricing": provider.pricing or {}}
