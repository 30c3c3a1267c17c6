"""
Health and setup status routes.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from strepsil.config import settings
from strepsil.database import get_db
from strepsil.models import utc_now
from strepsil.security import SecretCipher, get_cipher
from strepsil.services.encryption_validator import get_encryption_health
from strepsil.services.provider_service import ProviderConfigService, get_provider_service
from strepsil.services.settings_service import SettingsService, get_settings_service

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(
    request: Request,
    db: AsyncSession = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
):
    """Health check with database and encryption status."""
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.error("Database health check failed", extra={"error": str(e)})
        database = "disconnected"

    # Startup validation result when available, otherwise check now
    encryption = getattr(request.app.state, "encryption_status", None)
    if encryption is None and database == "connected":
        encryption = await get_encryption_health(db, cipher)

    if database != "connected":
        status = "unhealthy"
    elif encryption and encryption.get("status") == "error":
        status = "degraded"
    else:
        status = "healthy"

    body = {
        "status": status,
        "timestamp": utc_now().isoformat(),
        "service": "strepsil-api",
        "version": settings.APP_VERSION,
        "database": database,
        "checks": {
            "encryption": encryption or {"status": "unknown"},
        },
    }
    return JSONResponse(body, status_code=200 if database == "connected" else 503)


@router.get("/api/setup/status")
async def setup_status(
    service: SettingsService = Depends(get_settings_service),
    providers: ProviderConfigService = Depends(get_provider_service),
):
    """Whether setup is done and which providers are usable."""
    all_providers = await providers.get_all()
    return {
        "setupCompleted": await service.is_setup_completed(),
        "providersConfigured": sum(1 for p in all_providers if p.active and p.api_key_encrypted),
        "providers": [
            {"name": p.name, "active": p.active, "configured": bool(p.api_key_encrypted)}
            for p in all_providers
        ],
    }
