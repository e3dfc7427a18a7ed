# app/documents/router.py

"""
FastAPI router for documents and their signing lifecycle.
"""

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.documents.schemas import DocumentCreate, DocumentResponse, DocumentUpdate
from app.documents.services import DocumentService
from app.esign.exceptions import SignatureBaseException, convert_to_http_exception
from app.esign.schemas import DataResponse, ListFilters, PaginatedData, SignatureStatus, SortOrder
from app.users.models import User
from app.users.utils import get_current_user
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Documents"], prefix="/documents")


def _envelope(document) -> dict:
    return {"data": DocumentResponse.model_validate(document)}


# ===================== CRUD =====================

@router.post("", response_model=DataResponse[DocumentResponse], status_code=status.HTTP_201_CREATED)
async def create_document(
    document_data: DocumentCreate,
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Create a document in draft. Nothing is sent to the provider yet."""
    try:
        document = await document_service.create(document_data, created_by=current_user.id)
        return _envelope(document)
    except SignatureBaseException as e:
        logger.error("Failed to create document", error=e.message, details=e.details)
        raise convert_to_http_exception(e) from e


@router.get("", response_model=DataResponse[PaginatedData[DocumentResponse]])
async def list_documents(
    status_filter: Optional[SignatureStatus] = Query(None, alias="status", description="Filter by status"),
    search: Optional[str] = Query(None, description="Search term for name or description"),
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(20, ge=1, le=100, description="Items per page"),
    sort_by: str = Query("created_on", description="Sort by field (name, status, created_on, updated_on)"),
    sort_order: SortOrder = Query(SortOrder.DESC, description="Sort order (asc, desc)"),
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Get a paginated list of documents with optional filters."""
    filters = ListFilters(
        status=status_filter, search=search, page=page, per_page=per_page,
        sort_by=sort_by, sort_order=sort_order,
    )
    documents, total_items = await document_service.list(filters)

    return {
        "data": {
            "items": [DocumentResponse.model_validate(d) for d in documents],
            "total_items": total_items,
            "page": page,
            "per_page": per_page,
            "total_pages": math.ceil(total_items / per_page) if per_page > 0 else 0,
        }
    }


@router.get("/provider-key/{provider_key}", response_model=DataResponse[DocumentResponse])
async def get_document_by_provider_key(
    provider_key: str,
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Look a document up by the key the provider assigned to it."""
    try:
        return _envelope(await document_service.get_by_provider_key(provider_key))
    except SignatureBaseException as e:
        raise convert_to_http_exception(e) from e


@router.get("/{document_id}", response_model=DataResponse[DocumentResponse])
async def get_document(
    document_id: int,
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    try:
        return _envelope(await document_service.get(document_id))
    except SignatureBaseException as e:
        raise convert_to_http_exception(e) from e


@router.put("/{document_id}", response_model=DataResponse[DocumentResponse])
async def update_document(
    document_id: int,
    document_data: DocumentUpdate,
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Update a document. Only draft and ready documents can change."""
    try:
        document = await document_service.update(document_id, document_data, modified_by=current_user.id)
        return _envelope(document)
    except SignatureBaseException as e:
        logger.error("Failed to update document", document_id=document_id, error=e.message)
        raise convert_to_http_exception(e) from e


@router.delete("/{document_id}", response_model=DataResponse[dict])
async def delete_document(
    document_id: int,
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Delete a document. Only draft and ready documents can be deleted."""
    try:
        await document_service.delete(document_id)
        return {"data": {"id": document_id, "deleted": True}}
    except SignatureBaseException as e:
        logger.error("Failed to delete document", document_id=document_id, error=e.message)
        raise convert_to_http_exception(e) from e


# ===================== Lifecycle =====================

@router.post("/{document_id}/validate", response_model=DataResponse[DocumentResponse])
async def validate_document(
    document_id: int,
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Run the field rules on a draft document and move it to ready."""
    try:
        return _envelope(await document_service.validate(document_id, modified_by=current_user.id))
    except SignatureBaseException as e:
        raise convert_to_http_exception(e) from e


@router.post("/{document_id}/prepare-for-signing", response_model=DataResponse[DocumentResponse])
async def prepare_document_for_signing(
    document_id: int,
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Move a ready document to processing."""
    try:
        return _envelope(await document_service.prepare_for_signing(document_id, modified_by=current_user.id))
    except SignatureBaseException as e:
        raise convert_to_http_exception(e) from e


@router.post("/{document_id}/submit", response_model=DataResponse[DocumentResponse])
async def submit_document(
    document_id: int,
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """
    Send a processing document to the provider.
    Retrying after a 502/504 is safe; a document that already has a
    provider key is returned unchanged.
    """
    try:
        return _envelope(await document_service.submit(document_id, modified_by=current_user.id))
    except SignatureBaseException as e:
        logger.error("Failed to submit document", document_id=document_id, code=e.code, error=e.message)
        raise convert_to_http_exception(e) from e
