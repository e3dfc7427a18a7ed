# app/esign/router.py

import json
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_async_db
from app.esign import utils
from app.esign.dto import parse_webhook_event
from app.esign.exceptions import (
    RecordNotFoundException, SignatureBaseException, WebhookSignatureException, convert_to_http_exception,
)
from app.esign.reconciler import WebhookReconciler
from app.esign.repository import WebhookEventRepository
from app.esign.schemas import (
    DataResponse, PaginatedData, WebhookAck, WebhookEventResponse, WebhookOutcome,
)
from app.users.models import User
from app.users.utils import get_current_user
from app.utils.logger import get_logger

router = APIRouter(tags=["Webhooks"], prefix="/webhooks")
logger = get_logger(__name__)


@router.post("/provider", response_model=DataResponse[WebhookAck])
async def provider_webhook(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Receives lifecycle events from the signature provider.

    Every parsed delivery is acknowledged with 200, including unknown keys
    and events that cannot be applied, so the provider stops redelivering.
    """
    raw = await request.body()
    headers = {k.lower(): v for k, v in request.headers.items()}

    # HMAC (optional)
    if not utils.verify_hmac(headers, raw):
        logger.warning("Webhook rejected, bad signature")
        raise convert_to_http_exception(WebhookSignatureException())

    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid JSON", "code": "validation"},
        )

    event = parse_webhook_event(payload)
    logger.info(
        "Webhook received",
        event_name=event.event_name,
        event_kind=event.event_kind.value,
        provider_key=event.provider_key,
        resource_type=event.resource_type,
    )

    outcome, event_id = await WebhookReconciler(db).reconcile(event, raw)
    return {"data": {"event_id": event_id, "outcome": outcome}}


@router.get("/events", response_model=DataResponse[PaginatedData[WebhookEventResponse]])
async def list_webhook_events(
    provider_key: Optional[str] = Query(None, description="Filter by provider key"),
    outcome: Optional[WebhookOutcome] = Query(None, description="Filter by reconciliation outcome"),
    event_name: Optional[str] = Query(None, description="Filter by provider event name"),
    resource_type: Optional[str] = Query(None, description="Filter by resource type (documents, auto_signature_terms)"),
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(20, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user),
):
    """Browse the webhook audit trail, newest first."""
    events, total_items = await WebhookEventRepository(db).list(
        provider_key=provider_key, outcome=outcome, event_name=event_name, resource_type=resource_type,
        page=page, per_page=per_page,
    )
    return {
        "data": {
            "items": [WebhookEventResponse.model_validate(e) for e in events],
            "total_items": total_items,
            "page": page,
            "per_page": per_page,
            "total_pages": math.ceil(total_items / per_page) if per_page > 0 else 0,
        }
    }


@router.get("/events/{event_id}", response_model=DataResponse[WebhookEventResponse])
async def get_webhook_event(
    event_id: int,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user),
):
    event = await WebhookEventRepository(db).get_by_id(event_id)
    if event is None:
        raise convert_to_http_exception(RecordNotFoundException("webhook event", event_id))
    return {"data": WebhookEventResponse.model_validate(event)}


@router.post("/events/{event_id}/reprocess", response_model=DataResponse[WebhookAck])
async def reprocess_webhook_event(
    event_id: int,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user),
):
    """
    Run a stored delivery that ended as unknown_key or anomaly through
    reconciliation again, e.g. once the record it refers to exists.
    """
    try:
        outcome, audit_id = await WebhookReconciler(db).reprocess(event_id)
        return {"data": {"event_id": audit_id, "outcome": outcome}}
    except SignatureBaseException as e:
        logger.error("Failed to reprocess webhook event", event_id=event_id, code=e.code, error=e.message)
        raise convert_to_http_exception(e) from e
