"""
Application settings routes.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from strepsil.config import settings as app_settings
from strepsil.schemas import SettingUpdate
from strepsil.services.aggregation import summarize
from strepsil.services.call_store import AiCallStore, get_call_store
from strepsil.services.provider_service import ProviderConfigService, get_provider_service
from strepsil.services.settings_service import (
    APP_NAME,
    APP_VERSION,
    SETUP_COMPLETED,
    SettingsService,
    get_settings_service,
)

router = APIRouter(prefix="/api/settings", tags=["settings"])
logger = logging.getLogger(__name__)


@router.get("")
async def get_all_settings(service: SettingsService = Depends(get_settings_service)):
    return {"settings": await service.get_all()}


@router.post("/complete-setup")
async def complete_setup(service: SettingsService = Depends(get_settings_service)):
    await service.set(SETUP_COMPLETED, True)
    return {"message": "Setup completed successfully"}


@router.post("/reset")
async def reset_settings(
    service: SettingsService = Depends(get_settings_service),
    providers: ProviderConfigService = Depends(get_provider_service),
):
    """Mark setup as not completed and clear every provider key."""
    await service.set(SETUP_COMPLETED, False)
    cleared = await providers.reset_credentials()
    logger.warning("Settings reset", extra={"providers_cleared": cleared})
    return {"message": "Settings reset successfully"}


@router.get("/app/info")
async def app_info(
    service: SettingsService = Depends(get_settings_service),
    store: AiCallStore = Depends(get_call_store),
):
    """App name, version, setup state and all-time usage totals."""
    records = await store.fetch_all(max_records=app_settings.ANALYTICS_MAX_RECORDS)
    return {
        "app": {
            "name": await service.get(APP_NAME) or app_settings.APP_NAME,
            "version": await service.get(APP_VERSION) or app_settings.APP_VERSION,
            "setupCompleted": await service.is_setup_completed(),
        },
        "stats": summarize(records),
    }


@router.get("/{key}")
async def get_setting(key: str, service: SettingsService = Depends(get_settings_service)):
    value = await service.get(key)
    if value is None:
        raise HTTPException(status_code=404, detail="Setting not found")
    return {"key": key, "value": value}


@router.put("/{key}")
async def update_setting(
    key: str,
    body: SettingUpdate,
    service: SettingsService = Depends(get_settings_service),
):
    if body.value is None:
        raise HTTPException(status_code=400, detail="Value is required")
    await service.set(key, body.value, encrypted=body.encrypted)
    return {"message": "Setting updated successfully"}
