# app/signature_terms/router.py

"""
FastAPI router for auto signature terms and their signing lifecycle.
"""

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.signature_terms.schemas import SignatureTermCreate, SignatureTermResponse, SignatureTermUpdate
from app.signature_terms.services import SignatureTermService
from app.esign.exceptions import SignatureBaseException, convert_to_http_exception
from app.esign.schemas import DataResponse, ListFilters, PaginatedData, SignatureStatus, SortOrder
from app.users.models import User
from app.users.utils import get_current_user
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Auto Signature Terms"], prefix="/auto-signature-terms")


def _envelope(term) -> dict:
    return {"data": SignatureTermResponse.model_validate(term)}


# ===================== CRUD =====================

@router.post("", response_model=DataResponse[SignatureTermResponse], status_code=status.HTTP_201_CREATED)
async def create_term(
    term_data: SignatureTermCreate,
    term_service: SignatureTermService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Create an auto signature term in draft. Nothing is sent to the provider yet."""
    try:
        term = await term_service.create(term_data, created_by=current_user.id)
        return _envelope(term)
    except SignatureBaseException as e:
        logger.error("Failed to create term", error=e.message, details=e.details)
        raise convert_to_http_exception(e) from e


@router.get("", response_model=DataResponse[PaginatedData[SignatureTermResponse]])
async def list_terms(
    status_filter: Optional[SignatureStatus] = Query(None, alias="status", description="Filter by status"),
    search: Optional[str] = Query(None, description="Search term for signer name or email"),
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(20, ge=1, le=100, description="Items per page"),
    sort_by: str = Query("created_on", description="Sort by field (signer_name, signer_email, status, created_on, updated_on)"),
    sort_order: SortOrder = Query(SortOrder.DESC, description="Sort order (asc, desc)"),
    term_service: SignatureTermService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Get a paginated list of terms with optional filters."""
    filters = ListFilters(
        status=status_filter, search=search, page=page, per_page=per_page,
        sort_by=sort_by, sort_order=sort_order,
    )
    terms, total_items = await term_service.list(filters)

    return {
        "data": {
            "items": [SignatureTermResponse.model_validate(t) for t in terms],
            "total_items": total_items,
            "page": page,
            "per_page": per_page,
            "total_pages": math.ceil(total_items / per_page) if per_page > 0 else 0,
        }
    }


@router.get("/provider-key/{provider_key}", response_model=DataResponse[SignatureTermResponse])
async def get_term_by_provider_key(
    provider_key: str,
    term_service: SignatureTermService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Look a term up by the key the provider assigned to it."""
    try:
        return _envelope(await term_service.get_by_provider_key(provider_key))
    except SignatureBaseException as e:
        raise convert_to_http_exception(e) from e


@router.get("/{term_id}", response_model=DataResponse[SignatureTermResponse])
async def get_term(
    term_id: int,
    term_service: SignatureTermService = Depends(),
    current_user: User = Depends(get_current_user),
):
    try:
        return _envelope(await term_service.get(term_id))
    except SignatureBaseException as e:
        raise convert_to_http_exception(e) from e


@router.put("/{term_id}", response_model=DataResponse[SignatureTermResponse])
async def update_term(
    term_id: int,
    term_data: SignatureTermUpdate,
    term_service: SignatureTermService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Update a term. Only draft and ready terms can change."""
    try:
        term = await term_service.update(term_id, term_data, modified_by=current_user.id)
        return _envelope(term)
    except SignatureBaseException as e:
        logger.error("Failed to update term", term_id=term_id, error=e.message)
        raise convert_to_http_exception(e) from e


@router.delete("/{term_id}", response_model=DataResponse[dict])
async def delete_term(
    term_id: int,
    term_service: SignatureTermService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Delete a term. Only draft and ready terms can be deleted."""
    try:
        await term_service.delete(term_id)
        return {"data": {"id": term_id, "deleted": True}}
    except SignatureBaseException as e:
        logger.error("Failed to delete term", term_id=term_id, error=e.message)
        raise convert_to_http_exception(e) from e


# ===================== Lifecycle =====================

@router.post("/{term_id}/validate", response_model=DataResponse[SignatureTermResponse])
async def validate_term(
    term_id: int,
    term_service: SignatureTermService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Run the field rules on a draft term and move it to ready."""
    try:
        return _envelope(await term_service.validate(term_id, modified_by=current_user.id))
    except SignatureBaseException as e:
        raise convert_to_http_exception(e) from e


@router.post("/{term_id}/prepare-for-signing", response_model=DataResponse[SignatureTermResponse])
async def prepare_term_for_signing(
    term_id: int,
    term_service: SignatureTermService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Move a ready term to processing."""
    try:
        return _envelope(await term_service.prepare_for_signing(term_id, modified_by=current_user.id))
    except SignatureBaseException as e:
        raise convert_to_http_exception(e) from e


@router.post("/{term_id}/submit", response_model=DataResponse[SignatureTermResponse])
async def submit_term(
    term_id: int,
    term_service: SignatureTermService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """
    Send a processing term to the provider.
    Retrying after a 502/504 is safe; a term that already has a
    provider key is returned unchanged.
    """
    try:
        return _envelope(await term_service.submit(term_id, modified_by=current_user.id))
    except SignatureBaseException as e:
        logger.error("Failed to submit term", term_id=term_id, code=e.code, error=e.message)
        raise convert_to_http_exception(e) from e
