"""
Usage aggregation over a set of AI call records.

All functions are pure: they take records already fetched from the store and
return plain dicts. Breakdown and trend results are unordered mappings;
callers sort them for presentation.
"""
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from strepsil.models import AiCall, CallStatus, as_utc, utc_now

DAILY = "daily"
HOURLY = "hourly"
PERIOD_FORMATS = {
    DAILY: "%Y-%m-%d",
    HOURLY: "%Y-%m-%d %H:00",
}
# Longest trend window accepted, about ten years
MAX_TREND_DAYS = 3650


class InvalidDimensionError(ValueError):
    """Unknown breakdown dimension."""


class InvalidPeriodError(ValueError):
    """Unknown trend period."""


def round_half_up(value: float) -> int:
    """Round a non-negative mean to the nearest integer, halves going up."""
    return int(value + 0.5)


def _day_key(call: AiCall) -> str:
    return as_utc(call.created_at).strftime(PERIOD_FORMATS[DAILY])


DIMENSIONS: dict[str, Callable[[AiCall], str]] = {
    "model": lambda call: call.model_type,
    "provider": lambda call: call.provider,
    "endpoint": lambda call: call.endpoint,
    "date": _day_key,
    "status": lambda call: call.status,
}


def summarize(records: Iterable[AiCall]) -> dict:
    """
    Totals over a record set.

    Returns:
        {total_calls, total_cost, total_tokens_in, total_tokens_out,
        average_latency_ms}; all zero for an empty set
    """
    total_calls = 0
    total_cost = 0.0
    tokens_in = 0
    tokens_out = 0
    latency = 0

    for call in records:
        total_calls += 1
        total_cost += call.total_cost or 0
        tokens_in += call.tokens_in or 0
        tokens_out += call.tokens_out or 0
        latency += call.latency_ms or 0

    return {
        "total_calls": total_calls,
        "total_cost": total_cost,
        "total_tokens_in": tokens_in,
        "total_tokens_out": tokens_out,
        "average_latency_ms": round_half_up(latency / total_calls) if total_calls else 0,
    }


def breakdown(records: Iterable[AiCall], dimension: str) -> dict[str, dict]:
    """
    Group records by one dimension.

    Returns:
        {key: {"calls", "cost", "tokens"}}

    Raises:
        InvalidDimensionError: If dimension is not in DIMENSIONS
    """
    key_for = DIMENSIONS.get(dimension)
    if key_for is None:
        raise InvalidDimensionError(f"Invalid group_by parameter: {dimension}")

    groups: dict[str, dict] = {}
    for call in records:
        bucket = groups.setdefault(key_for(call), {"calls": 0, "cost": 0.0, "tokens": 0})
        bucket["calls"] += 1
        bucket["cost"] += call.total_cost or 0
        bucket["tokens"] += call.total_tokens
    return groups


def trend_window_start(days: int, now: Optional[datetime] = None) -> datetime:
    """UTC midnight of the day `days` days before now."""
    moment = as_utc(now or utc_now()) - timedelta(days=days)
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def trend(
    records: Iterable[AiCall],
    period: str = DAILY,
    days: int = 30,
    now: Optional[datetime] = None,
) -> dict[str, dict]:
    """
    Time-bucketed usage over the last `days` days.

    Records outside the window are dropped here even if the caller already
    filtered them. Only failure records count as errors.

    Returns:
        {bucket: {"calls", "cost", "tokens", "latency_sum", "errors",
        "average_latency"}}

    Raises:
        InvalidPeriodError: If period is not daily or hourly, or days is
            outside 0..MAX_TREND_DAYS
    """
    key_format = PERIOD_FORMATS.get(period)
    if key_format is None:
        raise InvalidPeriodError(f"Invalid period parameter: {period}")
    if days < 0 or days > MAX_TREND_DAYS:
        raise InvalidPeriodError(f"days must be between 0 and {MAX_TREND_DAYS}")

    now = as_utc(now or utc_now())
    start = trend_window_start(days, now)

    buckets: dict[str, dict] = {}
    for call in records:
        created_at = as_utc(call.created_at)
        if created_at < start or created_at > now:
            continue
        bucket = buckets.setdefault(
            created_at.strftime(key_format),
            {"calls": 0, "cost": 0.0, "tokens": 0, "latency_sum": 0, "errors": 0},
        )
        bucket["calls"] += 1
        bucket["cost"] += call.total_cost or 0
        bucket["tokens"] += call.total_tokens
        bucket["latency_sum"] += call.latency_ms or 0
        if call.status == CallStatus.FAILURE.value:
            bucket["errors"] += 1

    for bucket in buckets.values():
        bucket["average_latency"] = bucket["latency_sum"] / bucket["calls"]
    return buckets


def analytics_summary(records: list[AiCall]) -> dict:
    """Summary plus the status/model/provider breakdowns and daily usage."""
    return {
        "summary": summarize(records),
        "breakdowns": {
            "status": breakdown(records, "status"),
            "models": breakdown(records, "model"),
            "providers": breakdown(records, "provider"),
        },
        "dailyUsage": breakdown(records, "date"),
    }


def sorted_by_cost(groups: dict[str, dict]) -> list[tuple[str, dict]]:
    """Breakdown entries ordered by cost, highest first."""
    return sorted(groups.items(), key=lambda item: item[1]["cost"], reverse=True)
