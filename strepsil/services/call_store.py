"""
AI call record store.

Owns the ai_calls table. Records are write-once apart from status,
error_message and updated_at; total_cost is derived here on insert and
never touched again.
"""
import logging
from datetime import date, datetime, time, timezone
from typing import Any, Iterable, Optional

from fastapi import Depends
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from strepsil.database import get_db
from strepsil.models import CALL_STATUSES, AiCall, as_utc, generate_uuid, utc_now
from strepsil.providers.pricing import calculate_cost
from strepsil.schemas import CallFilters

logger = logging.getLogger(__name__)


class InvalidFilterError(ValueError):
    """A filter value could not be parsed."""


def parse_filter_date(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime filter value into an aware UTC datetime.

    A date-only value means midnight, or the last instant of that day when
    end_of_day is set so that an inclusive end date covers the whole day.

    Raises:
        InvalidFilterError: If the value is not ISO-8601
    """
    if value is None or value == "":
        return None
    value = value.strip()
    try:
        day = date.fromisoformat(value)
    except ValueError:
        day = None

    if day is not None:
        moment = datetime.combine(day, time.max if end_of_day else time.min)
        return moment.replace(tzinfo=timezone.utc)

    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise InvalidFilterError(f"Invalid date: {value}") from e
    return as_utc(moment)


def build_filters(
    provider: Optional[str] = None,
    model_type: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> CallFilters:
    """Build a CallFilters from raw query-string values."""
    if status and status not in CALL_STATUSES:
        raise InvalidFilterError(f"Invalid status. Must be one of: {', '.join(CALL_STATUSES)}")
    start = parse_filter_date(start_date)
    end = parse_filter_date(end_date, end_of_day=True)
    if start and end and start > end:
        raise InvalidFilterError("start_date must not be after end_date")
    return CallFilters(
        provider=provider or None,
        model_type=model_type or None,
        status=status or None,
        start_date=start,
        end_date=end,
    )


def _apply_filters(query, filters: Optional[CallFilters]):
    if filters is None:
        return query
    if filters.provider:
        query = query.where(AiCall.provider == filters.provider)
    if filters.model_type:
        query = query.where(AiCall.model_type == filters.model_type)
    if filters.status:
        query = query.where(AiCall.status == filters.status)
    if filters.start_date:
        query = query.where(AiCall.created_at >= filters.start_date)
    if filters.end_date:
        query = query.where(AiCall.created_at <= filters.end_date)
    return query


class AiCallStore:
    """Persistence operations for AI call records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, call_id: str) -> Optional[AiCall]:
        result = await self.db.execute(select(AiCall).where(AiCall.id == call_id))
        return result.scalar_one_or_none()

    async def insert(
        self,
        data: dict[str, Any],
        created_at: Optional[datetime] = None,
    ) -> tuple[AiCall, bool]:
        """
        Insert a call record, deriving total_cost from tokens and rates.

        If data carries an id that already exists, the stored record is
        returned unchanged so that a replayed insert does not duplicate it.

        Returns:
            (record, created) tuple

        Raises:
            ValueError: If a token count or rate is negative
        """
        call_id = data.get("id")
        if call_id:
            existing = await self.get(call_id)
            if existing is not None:
                logger.info("Replayed AI call insert", extra={"call_id": call_id})
                return existing, False

        tokens_in = data.get("tokens_in") or 0
        tokens_out = data.get("tokens_out") or 0
        rate_in = data.get("cost_per_token_in") or 0
        rate_out = data.get("cost_per_token_out") or 0
        total_cost = calculate_cost(tokens_in, tokens_out, rate_in, rate_out)

        status = data.get("status") or "success"
        call = AiCall(
            id=call_id or generate_uuid(),
            provider=data["provider"],
            model_type=data["model_type"],
            endpoint=data["endpoint"],
            prompt=data["prompt"],
            response=data.get("response"),
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost_per_token_in=rate_in,
            cost_per_token_out=rate_out,
            total_cost=total_cost,
            latency_ms=data.get("latency_ms") or 0,
            status=getattr(status, "value", status),
            error_message=data.get("error_message"),
            call_metadata=data.get("metadata"),
            created_at=as_utc(created_at) or utc_now(),
        )
        self.db.add(call)
        await self.db.commit()
        await self.db.refresh(call)
        return call, True

    async def query(
        self,
        filters: Optional[CallFilters] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AiCall]:
        """Return one page of records, newest first."""
        query = _apply_filters(select(AiCall), filters)
        query = query.order_by(AiCall.created_at.desc(), AiCall.id.desc()).limit(limit).offset(offset)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count(self, filters: Optional[CallFilters] = None) -> int:
        query = _apply_filters(select(func.count(AiCall.id)), filters)
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def fetch_all(
        self,
        filters: Optional[CallFilters] = None,
        max_records: Optional[int] = None,
    ) -> list[AiCall]:
        """
        Return every matching record, newest first, for aggregation and
        reports. max_records caps the result set.
        """
        query = _apply_filters(select(AiCall), filters).order_by(AiCall.created_at.desc(), AiCall.id.desc())
        if max_records:
            query = query.limit(max_records)
        result = await self.db.execute(query)
        records = list(result.scalars().all())
        if max_records and len(records) >= max_records:
            logger.warning(
                "Analytics record cap reached; results are truncated",
                extra={"max_records": max_records},
            )
        return records

    async def update_status(
        self,
        call_id: str,
        status: str,
        error_message: Optional[str] = None,
    ) -> Optional[AiCall]:
        """
        Change a record's status. error_message is replaced by the given
        value (None clears it). Returns None if the record does not exist.
        """
        status = getattr(status, "value", status)
        if status not in CALL_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(CALL_STATUSES)}")

        call = await self.get(call_id)
        if call is None:
            return None
        call.status = status
        call.error_message = error_message
        call.updated_at = utc_now()
        await self.db.commit()
        await self.db.refresh(call)
        return call

    async def delete(self, call_id: str) -> bool:
        """Delete one record. Deleting a missing id is not an error."""
        result = await self.db.execute(delete(AiCall).where(AiCall.id == call_id))
        await self.db.commit()
        return (result.rowcount or 0) > 0

    async def delete_many(self, call_ids: Iterable[str]) -> int:
        """
        Delete records one at a time, each in its own commit.

        Returns:
            Number of records actually removed
        """
        deleted = 0
        for call_id in call_ids:
            if await self.delete(call_id):
                deleted += 1
        return deleted


def get_call_store(db: AsyncSession = Depends(get_db)) -> AiCallStore:
    """FastAPI dependency returning a store bound to the request session."""
    return AiCallStore(db)

