"""
Server-rendered dashboard page.
"""
from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.templating import Jinja2Templates

from strepsil.config import settings
from strepsil.providers.pricing import TOTAL_COST_PLACES, format_cost
from strepsil.services.aggregation import breakdown, sorted_by_cost, summarize
from strepsil.services.call_store import AiCallStore, get_call_store

router = APIRouter(tags=["pages"])
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))
templates.env.filters["cost"] = format_cost
templates.env.globals["app_name"] = settings.APP_NAME

RECENT_CALLS = 10


@router.get("/")
async def dashboard(request: Request, store: AiCallStore = Depends(get_call_store)):
    """Usage summary, cost by provider and the latest calls."""
    records = await store.fetch_all(max_records=settings.ANALYTICS_MAX_RECORDS)
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "summary": summarize(records),
            "providers": sorted_by_cost(breakdown(records, "provider")),
            "recent_calls": records[:RECENT_CALLS],
            "total_places": TOTAL_COST_PLACES,
        },
    )
