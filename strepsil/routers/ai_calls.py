"""
AI call record API.

CRUD over logged calls plus the analytics summary used by the dashboard.
"""
import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from strepsil.config import settings
from strepsil.schemas import AiCallCreate, BulkDeleteRequest, StatusUpdate
from strepsil.services.aggregation import analytics_summary
from strepsil.services.call_store import AiCallStore, InvalidFilterError, build_filters, get_call_store

router = APIRouter(prefix="/api/ai-calls", tags=["ai-calls"])
logger = logging.getLogger(__name__)

# SQLite offsets are signed 64-bit integers
MAX_OFFSET = 2**63 - 1


def filters_or_400(**values):
    """Build filters, turning parse errors into a 400."""
    try:
        return build_filters(**values)
    except InvalidFilterError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("")
async def list_ai_calls(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    provider: Optional[str] = None,
    model_type: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    store: AiCallStore = Depends(get_call_store),
):
    """Paginated call list, newest first."""
    filters = filters_or_400(
        provider=provider,
        model_type=model_type,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )
    offset = (page - 1) * limit
    if offset > MAX_OFFSET:
        raise HTTPException(status_code=400, detail="page out of range")
    calls = await store.query(filters, limit=limit, offset=offset)
    total = await store.count(filters)
    return {
        "aiCalls": [call.to_dict() for call in calls],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


@router.post("", status_code=201)
async def create_ai_call(body: AiCallCreate, store: AiCallStore = Depends(get_call_store)):
    """
    Record a call made outside Strepsil.

    Posting a record whose id already exists returns the stored record with
    200 instead of creating a duplicate.
    """
    try:
        call, created = await store.insert(body.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not created:
        return JSONResponse({"message": "AI call already recorded", "aiCall": call.to_dict()})
    logger.info(
        "AI call logged",
        extra={"call_id": call.id, "provider": call.provider, "total_cost": call.total_cost},
    )
    return {"message": "AI call recorded successfully", "aiCall": call.to_dict()}


@router.get("/analytics/summary")
async def get_analytics_summary(
    provider: Optional[str] = None,
    model_type: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    store: AiCallStore = Depends(get_call_store),
):
    """Totals, status/model/provider breakdowns and daily usage."""
    filters = filters_or_400(
        provider=provider,
        model_type=model_type,
        start_date=start_date,
        end_date=end_date,
    )
    records = await store.fetch_all(filters, max_records=settings.ANALYTICS_MAX_RECORDS)
    return analytics_summary(records)


@router.post("/bulk/delete")
async def bulk_delete_ai_calls(body: BulkDeleteRequest, store: AiCallStore = Depends(get_call_store)):
    """Delete several calls; ids that do not exist are skipped."""
    deleted = await store.delete_many(body.ids)
    logger.info("Bulk delete", extra={"requested": len(body.ids), "deleted": deleted})
    return {
        "message": f"{deleted} AI calls deleted successfully",
        "deletedCount": deleted,
    }


@router.get("/{call_id}")
async def get_ai_call(call_id: str, store: AiCallStore = Depends(get_call_store)):
    call = await store.get(call_id)
    if not call:
        raise HTTPException(status_code=404, detail="AI call not found")
    return {"aiCall": call.to_dict()}


@router.patch("/{call_id}/status")
async def update_ai_call_status(
    call_id: str,
    body: StatusUpdate,
    store: AiCallStore = Depends(get_call_store),
):
    """Move a call to another status (retry/failure/hallucination tracking)."""
    call = await store.update_status(call_id, body.status, body.error_message)
    if not call:
        raise HTTPException(status_code=404, detail="AI call not found")
    return {"message": "AI call status updated successfully", "aiCall": call.to_dict()}


@router.delete("/{call_id}")
async def delete_ai_call(call_id: str, store: AiCallStore = Depends(get_call_store)):
    """Delete a call. Deleting an unknown id still succeeds."""
    await store.delete(call_id)
    return {"message": "AI call deleted successfully"}
