"""
Chat pass-through routes.

Chat requests go to the provider through the call recorder, so every call
made from the dashboard shows up in the usage log.
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from strepsil.schemas import ChatRequest
from strepsil.services.call_recorder import (
    CallRecorder,
    ProviderCallError,
    ProviderNotConfiguredError,
    get_call_recorder,
)
from strepsil.services.provider_service import ProviderConfigService, get_provider_service

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("")
async def chat(body: ChatRequest, recorder: CallRecorder = Depends(get_call_recorder)):
    """Send messages to a provider and record the call."""
    try:
        result = await recorder.record_chat(body)
    except ProviderNotConfiguredError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ProviderCallError as e:
        return JSONResponse(
            status_code=500,
            content={"error": "AI API call failed", "message": e.message, "call_id": e.call_id},
        )
    return result.to_dict()


@router.get("/models/{provider}")
async def chat_models(provider: str, providers: ProviderConfigService = Depends(get_provider_service)):
    """Models and pricing offered by a provider."""
    config = await providers.get(provider)
    if not config:
        raise HTTPException(status_code=404, detail="Provider not found")
    return {"models": config.models or [], "pricing": config.pricing or {}}
