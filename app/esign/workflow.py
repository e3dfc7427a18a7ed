# app/esign/workflow.py

"""
Lifecycle orchestration shared by documents and auto signature terms.

draft --validate--> ready --prepare-for-signing--> processing --submit--> sent
Terminal states (signed, cancelled, failed) are reached through a terminal
submission failure or through webhook reconciliation only.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.esign.exceptions import (
    ImmutableInStatusException,
    InvalidTransitionException,
    RecordNotFoundException,
    SubmissionError,
    ValidationException,
    provider_exception_for,
)
from app.esign.repository import SignableRepository
from app.esign.schemas import ListFilters, SignatureStatus
from app.esign.services import BaseSubmission
from app.esign.utils import RecordLocks, is_editable, record_locks, validate_state_transition
from app.utils.logger import get_logger

logger = get_logger(__name__)


def failure_payload(error: SubmissionError) -> str:
    """The raw provider body of a failure, or a small JSON note when there was none."""
    if error.body:
        return error.body.decode("utf-8", errors="replace")
    return json.dumps({"error": error.kind.value, "message": error.message})


class SignatureWorkflowService:
    """
    Status-gated CRUD plus the submit-and-persist transaction.

    Subclasses provide ``resource_type``, ``model``, a repository and a
    submission service, and implement ``validate_record``.
    """

    resource_type: str = ""
    model = None

    def __init__(
        self,
        db: AsyncSession,
        repo: SignableRepository,
        submission: BaseSubmission,
        locks: Optional[RecordLocks] = None,
    ):
        self.db = db
        self.repo = repo
        self.submission = submission
        self.locks = locks if locks is not None else record_locks

    def validate_record(self, record) -> List[str]:
        """Return the list of rule violations for ``record``."""
        raise NotImplementedError

    def _ensure_valid(self, record) -> None:
        errors = self.validate_record(record)
        if errors:
            raise ValidationException(f"Invalid {self.resource_type}: {'; '.join(errors)}", errors)

    async def _get_or_404(self, record_id: int, for_update: bool = False):
        record = await self.repo.get_by_id(record_id, for_update=for_update)
        if record is None:
            raise RecordNotFoundException(self.resource_type, record_id)
        return record

    async def _transition(self, record_id: int, new_status: SignatureStatus, modified_by: Optional[int] = None):
        async with self.locks.hold((self.resource_type, record_id)):
            record = await self._get_or_404(record_id, for_update=True)
            is_valid, error_msg = validate_state_transition(record.status, new_status)
            if not is_valid:
                raise InvalidTransitionException(record.status.value, new_status.value, error_msg)

            if new_status == SignatureStatus.READY:
                self._ensure_valid(record)

            previous = record.status
            record.status = new_status
            record.modified_by = modified_by
            record = await self.repo.update(record)
            await self.db.commit()

        logger.info(
            "Status changed",
            resource_type=self.resource_type,
            record_id=record_id,
            previous_status=previous.value,
            new_status=new_status.value,
        )
        return record

    async def create(self, data: BaseModel, created_by: Optional[int] = None):
        """Validate and store a new record in draft. Nothing is sent to the provider."""
        record = self.model(**data.model_dump())
        self._ensure_valid(record)
        record.status = SignatureStatus.DRAFT
        record.created_by = created_by

        record = await self.repo.create(record)
        await self.db.commit()
        logger.info("Record created", resource_type=self.resource_type, record_id=record.id)
        return record

    async def get(self, record_id: int):
        return await self._get_or_404(record_id)

    async def get_by_provider_key(self, provider_key: str):
        record = await self.repo.get_by_provider_key(provider_key)
        if record is None:
            raise RecordNotFoundException(self.resource_type, provider_key=provider_key)
        return record

    async def list(self, filters: ListFilters) -> Tuple[list, int]:
        return await self.repo.list(filters)

    async def update(self, record_id: int, data: BaseModel, modified_by: Optional[int] = None):
        """Apply a partial update. Only draft and ready records are editable."""
        async with self.locks.hold((self.resource_type, record_id)):
            record = await self._get_or_404(record_id, for_update=True)
            if not is_editable(record.status):
                raise ImmutableInStatusException(self.resource_type, record_id, record.status.value)

            changes: Dict[str, Any] = data.model_dump(exclude_unset=True)
            for field, value in changes.items():
                setattr(record, field, value)
            self._ensure_valid(record)

            record.modified_by = modified_by
            record = await self.repo.update(record)
            await self.db.commit()

        logger.info("Record updated", resource_type=self.resource_type, record_id=record_id, fields=sorted(changes))
        return record

    async def delete(self, record_id: int) -> None:
        async with self.locks.hold((self.resource_type, record_id)):
            record = await self._get_or_404(record_id, for_update=True)
            if not is_editable(record.status):
                raise ImmutableInStatusException(self.resource_type, record_id, record.status.value)
            await self.repo.delete(record)
            await self.db.commit()
        logger.info("Record deleted", resource_type=self.resource_type, record_id=record_id)

    async def validate(self, record_id: int, modified_by: Optional[int] = None):
        """draft → ready, after the field rules pass."""
        return await self._transition(record_id, SignatureStatus.READY, modified_by)

    async def prepare_for_signing(self, record_id: int, modified_by: Optional[int] = None):
        """ready → processing."""
        return await self._transition(record_id, SignatureStatus.PROCESSING, modified_by)

    async def submit(self, record_id: int, modified_by: Optional[int] = None):
        """
        Send a processing record to the provider.

        The record is locked for the whole call (in-process lock plus
        SELECT ... FOR UPDATE). A record that already carries a provider
        key is returned unchanged, so retries never create a second
        provider resource.

        Outcomes:
        - accepted: provider key, raw response and "sent" are written in one update.
        - network / timeout / server / rate_limit: nothing is written, the record
          stays in processing and ProviderTransientException is raised.
        - client / malformed / auth: the record moves to failed with the raw
          response and the matching terminal exception is raised.
        """
        async with self.locks.hold((self.resource_type, record_id)):
            record = await self._get_or_404(record_id, for_update=True)

            if record.provider_key:
                logger.info(
                    "Submission skipped, provider key already assigned",
                    resource_type=self.resource_type,
                    record_id=record_id,
                    provider_key=record.provider_key,
                )
                await self.db.commit()
                return record

            if record.status != SignatureStatus.PROCESSING:
                raise InvalidTransitionException(
                    record.status.value,
                    SignatureStatus.SENT.value,
                    "only records in processing can be submitted",
                )

            try:
                result = await self.submission.submit(record)
            except SubmissionError as e:
                if e.kind.is_transient:
                    await self.db.rollback()
                    logger.warning(
                        "Transient provider failure, record left in processing",
                        resource_type=self.resource_type,
                        record_id=record_id,
                        kind=e.kind.value,
                        provider_status=e.status_code,
                    )
                    raise provider_exception_for(e) from e

                record.status = SignatureStatus.FAILED
                record.provider_raw_payload = failure_payload(e)
                record.modified_by = modified_by
                await self.repo.update(record)
                await self.db.commit()
                logger.error(
                    "Provider refused submission, record failed",
                    resource_type=self.resource_type,
                    record_id=record_id,
                    kind=e.kind.value,
                    provider_status=e.status_code,
                )
                raise provider_exception_for(e) from e

            record.provider_key = result.provider_key
            record.provider_raw_payload = result.raw_payload
            record.status = SignatureStatus.SENT
            record.modified_by = modified_by
            try:
                record = await self.repo.update(record)
                await self.db.commit()
            except SQLAlchemyError:
                await self.db.rollback()
                logger.error(
                    "Provider accepted submission but local persist failed, reconciliation pending",
                    resource_type=self.resource_type,
                    record_id=record_id,
                    provider_key=result.provider_key,
                )
                raise

        logger.info(
            "Record sent to provider",
            resource_type=self.resource_type,
            record_id=record_id,
            provider_key=result.provider_key,
        )
        return record
