"""
Provider configuration service - manages the ai_providers table.

Providers are seeded at startup from the built-in model and pricing lists
and are never deleted, only deactivated or cleared.
"""
import logging
from typing import Optional

from cryptography.fernet import InvalidToken
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from strepsil.database import get_db
from strepsil.models import AIProvider, as_utc
from strepsil.providers.models import get_default_provider_configs
from strepsil.schemas import ModelDescriptor, ModelRate, ProviderUpdate
from strepsil.security import SecretCipher, get_cipher, mask_secret

logger = logging.getLogger(__name__)


class InvalidPricingError(ValueError):
    """Pricing references a model the provider does not offer."""


def check_pricing_models(models: list[ModelDescriptor], pricing: dict[str, ModelRate]) -> None:
    """
    Ensure every priced model is one of the provider's models.

    Raises:
        InvalidPricingError: If pricing has keys outside the model ids
    """
    model_ids = {m.id for m in models}
    unknown = sorted(set(pricing) - model_ids)
    if unknown:
        raise InvalidPricingError(f"Pricing set for unknown models: {', '.join(unknown)}")


class ProviderConfigService:
    """Service for provider configuration and credentials."""

    def __init__(self, db: AsyncSession, cipher: SecretCipher):
        self.db = db
        self.cipher = cipher

    async def get(self, name: str) -> Optional[AIProvider]:
        result = await self.db.execute(select(AIProvider).where(AIProvider.name == name))
        return result.scalar_one_or_none()

    async def get_all(self) -> list[AIProvider]:
        result = await self.db.execute(select(AIProvider).order_by(AIProvider.name))
        return list(result.scalars().all())

    def models_of(self, provider: AIProvider) -> list[ModelDescriptor]:
        return [ModelDescriptor(**m) for m in (provider.models or [])]

    def pricing_of(self, provider: AIProvider) -> dict[str, ModelRate]:
        return {model: ModelRate(**rate) for model, rate in (provider.pricing or {}).items()}

    def get_api_key(self, provider: AIProvider) -> Optional[str]:
        """Decrypt the stored API key, or None if there is none."""
        if not provider.api_key_encrypted:
            return None
        return self.cipher.decrypt(provider.api_key_encrypted)

    async def update(self, name: str, changes: ProviderUpdate) -> Optional[AIProvider]:
        """
        Apply a partial update. Fields left as None are unchanged; an empty
        api_key clears the stored key.

        Returns:
            The updated provider, or None if it does not exist

        Raises:
            InvalidPricingError: If the resulting pricing names unknown models
        """
        provider = await self.get(name)
        if not provider:
            return None

        models = changes.models if changes.models is not None else self.models_of(provider)
        pricing = changes.pricing if changes.pricing is not None else self.pricing_of(provider)
        check_pricing_models(models, pricing)

        if changes.api_key is not None:
            provider.api_key_encrypted = self.cipher.encrypt(changes.api_key) if changes.api_key else None
        if changes.active is not None:
            provider.active = changes.active
        if changes.models is not None:
            provider.models = [m.model_dump() for m in models]
        if changes.pricing is not None:
            provider.pricing = {model: rate.model_dump() for model, rate in pricing.items()}

        await self.db.commit()
        await self.db.refresh(provider)
        logger.info(
            "Provider updated",
            extra={"provider": name, "fields": sorted(changes.model_dump(exclude_none=True))},
        )
        return provider

    async def seed_defaults(self) -> list[AIProvider]:
        """Seed the default providers if they don't exist."""
        created = []
        for config in get_default_provider_configs():
            if await self.get(config["name"]):
                continue
            provider = AIProvider(
                name=config["name"],
                active=False,
                models=config["models"],
                pricing=config["pricing"],
            )
            self.db.add(provider)
            created.append(provider)
        if created:
            await self.db.commit()
            logger.info("Seeded providers", extra={"providers": [p.name for p in created]})
        return created

    async def reset_credentials(self) -> int:
        """Clear every stored key and deactivate every provider."""
        providers = await self.get_all()
        for provider in providers:
            provider.api_key_encrypted = None
            provider.active = False
        await self.db.commit()
        return len(providers)

    def to_public_dict(self, provider: AIProvider) -> dict:
        """Provider as returned by the API, without the key itself."""
        try:
            hint = mask_secret(self.get_api_key(provider))
        except InvalidToken:
            hint = None
        created_at = as_utc(provider.created_at)
        updated_at = as_utc(provider.updated_at)
        return {
            "name": provider.name,
            "active": provider.active,
            "models": provider.models or [],
            "pricing": provider.pricing or {},
            "configured": bool(provider.api_key_encrypted),
            "api_key_hint": hint,
            "created_at": created_at.isoformat() if created_at else None,
            "updated_at": updated_at.isoformat() if updated_at else None,
        }


def get_provider_service(
    db: AsyncSession = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
) -> ProviderConfigService:
    return ProviderConfigService(db, cipher)
