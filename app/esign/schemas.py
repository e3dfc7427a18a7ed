# app/esign/schemas.py

"""
Shared enums and response schemas for the signature pipeline.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


# === Enums ===

class SignatureStatus(str, PyEnum):
    """Lifecycle status shared by documents and auto signature terms."""
    DRAFT = "draft"
    READY = "ready"
    PROCESSING = "processing"
    SENT = "sent"
    SIGNED = "signed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class EventKind(str, PyEnum):
    """Normalized kind of a provider lifecycle event."""
    SENT = "sent"
    SIGNED = "signed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    UNKNOWN = "unknown"


class WebhookOutcome(str, PyEnum):
    """What reconciliation did with a webhook delivery."""
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    ANOMALY = "anomaly"
    UNKNOWN_KEY = "unknown_key"


class SortOrder(str, PyEnum):
    ASC = "asc"
    DESC = "desc"


# === Envelopes ===

class DataResponse(BaseModel, Generic[T]):
    """Success envelope."""
    data: T


class ErrorResponse(BaseModel):
    """Failure envelope."""
    message: str
    code: str


class PaginatedData(BaseModel, Generic[T]):
    items: List[T]
    total_items: int
    page: int
    per_page: int
    total_pages: int


class ListFilters(BaseModel):
    """Query parameters accepted by the list endpoints."""
    status: Optional[SignatureStatus] = None
    search: Optional[str] = None
    page: int = Field(1, ge=1)
    per_page: int = Field(20, ge=1, le=100)
    sort_by: str = "created_on"
    sort_order: SortOrder = SortOrder.DESC


# === Webhook audit ===

class WebhookAck(BaseModel):
    """Body returned to the provider for every accepted delivery."""
    event_id: Optional[int] = None
    outcome: WebhookOutcome


class WebhookEventResponse(BaseModel):
    """Audit row as exposed to back-office users. The raw payload is not echoed."""
    id: int
    provider_key: Optional[str] = None
    event_name: str
    event_kind: EventKind
    resource_type: Optional[str] = None
    resource_id: Optional[int] = None
    outcome: WebhookOutcome
    previous_status: Optional[SignatureStatus] = None
    new_status: Optional[SignatureStatus] = None
    payload_digest: str
    received_at: datetime

    model_config = ConfigDict(from_attributes=True)
