"""
Request bodies and typed configuration values.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from strepsil.models import CallStatus


class ModelDescriptor(BaseModel):
    """One model offered by a provider."""
    id: str = Field(..., min_length=1)
    name: Optional[str] = None

    @model_validator(mode="after")
    def _default_name(self):
        if not self.name:
            self.name = self.id
        return self


class ModelRate(BaseModel):
    """Per-token USD rates for one model."""
    input: float = Field(0, ge=0)
    output: float = Field(0, ge=0)


class AiCallCreate(BaseModel):
    """Body for POST /api/ai-calls (external logging)."""
    id: Optional[str] = None
    provider: str = Field(..., min_length=1)
    model_type: str = Field(..., min_length=1)
    endpoint: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1)
    response: Optional[str] = None
    tokens_in: int = Field(0, ge=0)
    tokens_out: int = Field(0, ge=0)
    cost_per_token_in: float = Field(0, ge=0)
    cost_per_token_out: float = Field(0, ge=0)
    latency_ms: int = Field(0, ge=0)
    status: CallStatus = CallStatus.SUCCESS
    error_message: Optional[str] = None
    metadata: Optional[Any] = None


class StatusUpdate(BaseModel):
    status: CallStatus
    error_message: Optional[str] = None


class BulkDeleteRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1)


class ProviderUpdate(BaseModel):
    """Partial provider update; omitted fields are left alone."""
    api_key: Optional[str] = None
    active: Optional[bool] = None
    models: Optional[list[ModelDescriptor]] = None
    pricing: Optional[dict[str, ModelRate]] = None


class ProviderTestRequest(BaseModel):
    api_key: Optional[str] = None


class SettingUpdate(BaseModel):
    value: Any
    encrypted: bool = False


class ChatMessage(BaseModel):
    role: str = Field(..., min_length=1)
    content: str


class ChatRequest(BaseModel):
    provider: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    messages: list[ChatMessage] = Field(..., min_length=1)
    temperature: float = Field(1.0, ge=0, le=2)
    max_tokens: Optional[int] = Field(None, ge=1)


@dataclass
class CallFilters:
    """Filter set shared by record queries, analytics and reports."""
    provider: Optional[str] = None
    model_type: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
