# app/signature_terms/services.py

from typing import List

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_async_db
from app.esign.dto import TERMS_RESOURCE
from app.esign.services import AutoSignatureTermSubmission, get_term_submission
from app.esign.workflow import SignatureWorkflowService
from app.signature_terms.models import AutoSignatureTerm
from app.signature_terms.repository import SignatureTermRepository
from app.signature_terms.utils import validate_signature_term


class SignatureTermService(SignatureWorkflowService):
    """Lifecycle of auto signature terms."""

    resource_type = TERMS_RESOURCE
    model = AutoSignatureTerm

    def __init__(
        self,
        db: AsyncSession = Depends(get_async_db),
        submission: AutoSignatureTermSubmission = Depends(get_term_submission),
    ):
        super().__init__(db=db, repo=SignatureTermRepository(db), submission=submission)

    def validate_record(self, record: AutoSignatureTerm) -> List[str]:
        return validate_signature_term(record)
