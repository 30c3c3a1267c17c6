import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, String, DateTime, Integer, Float, Text, JSON, Boolean

from strepsil.database import Base


def generate_uuid():
    return str(uuid.uuid4())


def utc_now():
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CallStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    RETRY = "retry"
    HALLUCINATION = "hallucination"


CALL_STATUSES = [s.value for s in CallStatus]


class AiCall(Base):
    """
    One logged AI provider invocation attempt.

    Everything except status, error_message and updated_at is write-once.
    total_cost is derived from token counts and per-token rates at insert
    time and is never recomputed afterwards.
    """
    __tablename__ = "ai_calls"

    id = Column(String, primary_key=True, default=generate_uuid)
    provider = Column(String, nullable=False, index=True)
    model_type = Column(String, nullable=False, index=True)
    endpoint = Column(String, nullable=False, index=True)
    prompt = Column(Text, nullable=False)
    response = Column(Text, nullable=True)

    tokens_in = Column(Integer, nullable=False, default=0)
    tokens_out = Column(Integer, nullable=False, default=0)
    cost_per_token_in = Column(Float, nullable=False, default=0)
    cost_per_token_out = Column(Float, nullable=False, default=0)
    total_cost = Column(Float, nullable=False, default=0)
    latency_ms = Column(Integer, nullable=False, default=0)

    status = Column(String, nullable=False, default=CallStatus.SUCCESS.value, index=True)
    error_message = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    call_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def total_tokens(self) -> int:
        return (self.tokens_in or 0) + (self.tokens_out or 0)

    def to_dict(self) -> dict:
        created_at = as_utc(self.created_at)
        updated_at = as_utc(self.updated_at)
        return {
            "id": self.id,
            "provider": self.provider,
            "model_type": self.model_type,
            "endpoint": self.endpoint,
            "prompt": self.prompt,
            "response": self.response,
            "tokens_in": self.tokens_in,
            "tokens_out": self.tokens_out,
            "cost_per_token_in": self.cost_per_token_in,
            "cost_per_token_out": self.cost_per_token_out,
            "total_cost": self.total_cost,
            "latency_ms": self.latency_ms,
            "status": self.status,
            "error_message": self.error_message,
            "metadata": self.call_metadata,
            "created_at": created_at.isoformat() if created_at else None,
            "updated_at": updated_at.isoformat() if updated_at else None,
        }


class AIProvider(Base):
    """
    Configuration for one AI provider.

    models is an ordered list of {"id", "name"} descriptors and pricing maps
    a model id to {"input", "output"} per-token rates. The API key is stored
    encrypted; providers are deactivated or cleared, never deleted.
    """
    __tablename__ = "ai_providers"

    name = Column(String, primary_key=True)
    api_key_encrypted = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=False)
    models = Column(JSON, nullable=False, default=list)
    pricing = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class Setting(Base):
    """Generic key/value application setting."""
    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=True)
    encrypted = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
