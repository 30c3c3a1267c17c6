"""
Report routes: billing export, cost breakdown and usage trends.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from strepsil.config import settings
from strepsil.models import utc_now
from strepsil.schemas import CallFilters
from strepsil.services import aggregation, report_exporter
from strepsil.services.call_store import AiCallStore, InvalidFilterError, build_filters, get_call_store

router = APIRouter(prefix="/api/reports", tags=["reports"])
logger = logging.getLogger(__name__)


def date_filters(start_date: Optional[str], end_date: Optional[str]):
    try:
        return build_filters(start_date=start_date, end_date=end_date)
    except InvalidFilterError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/billing")
async def billing_report(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    format: str = "json",
    store: AiCallStore = Depends(get_call_store),
):
    """
    Billing report as JSON, CSV or PDF.

    Any other format value returns the JSON report.
    """
    filters = date_filters(start_date, end_date)
    records = await store.fetch_all(filters, max_records=settings.ANALYTICS_MAX_RECORDS)

    summary = report_exporter.billing_summary(records, start_date, end_date)
    rows = [report_exporter.billing_row(call) for call in records]
    report = report_exporter.render("billing", summary, rows, format)
    logger.info("Billing report generated", extra={"report_format": report.format, "calls": len(rows)})

    if report.format == report_exporter.JSON:
        return report.content
    return Response(
        content=report.content,
        media_type=report.media_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )


@router.get("/cost-breakdown")
async def cost_breakdown_report(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    group_by: str = "model",
    store: AiCallStore = Depends(get_call_store),
):
    """Cost grouped by model, provider, endpoint, date or status."""
    if group_by not in aggregation.DIMENSIONS:
        raise HTTPException(status_code=400, detail="Invalid group_by parameter")

    filters = date_filters(start_date, end_date)
    records = await store.fetch_all(filters, max_records=settings.ANALYTICS_MAX_RECORDS)
    summary = aggregation.summarize(records)
    return {
        "group_by": group_by,
        "breakdown": aggregation.breakdown(records, group_by),
        "total_calls": summary["total_calls"],
        "total_cost": summary["total_cost"],
    }


@router.get("/trends")
async def usage_trends_report(
    period: str = aggregation.DAILY,
    days: int = Query(30, ge=0, le=aggregation.MAX_TREND_DAYS),
    store: AiCallStore = Depends(get_call_store),
):
    """Daily or hourly usage over the last `days` days."""
    if period not in aggregation.PERIOD_FORMATS:
        raise HTTPException(status_code=400, detail="Invalid period parameter")

    now = utc_now()
    window = CallFilters(start_date=aggregation.trend_window_start(days, now))
    records = await store.fetch_all(window, max_records=settings.ANALYTICS_MAX_RECORDS)
    return {
        "period": period,
        "days": days,
        "trends": aggregation.trend(records, period, days, now),
    }
