# app/documents/services.py

from typing import List

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_async_db
from app.documents.models import Document
from app.documents.repository import DocumentRepository
from app.documents.utils import validate_document
from app.esign.dto import DOCUMENTS_RESOURCE
from app.esign.services import DocumentSubmission, get_document_submission
from app.esign.workflow import SignatureWorkflowService


class DocumentService(SignatureWorkflowService):
    """Lifecycle of documents: CRUD in draft/ready, then signing."""

    resource_type = DOCUMENTS_RESOURCE
    model = Document

    def __init__(
        self,
        db: AsyncSession = Depends(get_async_db),
        submission: DocumentSubmission = Depends(get_document_submission),
    ):
        super().__init__(db=db, repo=DocumentRepository(db), submission=submission)

    def validate_record(self, record: Document) -> List[str]:
        return validate_document(record)
