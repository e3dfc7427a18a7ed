# app/esign/reconciler.py

"""
Applies provider webhook events to local records.

Every delivery is acknowledged (the provider would otherwise redeliver
forever) and, unless it is a repeat of an earlier delivery, leaves one row
in the webhook_events audit table describing what was done. Rows that
could not be matched to a record, or were rejected as anomalies, can be
reprocessed later from their stored payload.
"""

import json
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.documents.repository import DocumentRepository
from app.esign.dto import DOCUMENTS_RESOURCE, TERMS_RESOURCE, ProviderEvent, parse_webhook_event
from app.esign.exceptions import RecordNotFoundException, WebhookNotReprocessableException
from app.esign.models import WebhookEvent
from app.esign.repository import SignableRepository, WebhookEventRepository
from app.esign.schemas import SignatureStatus, WebhookOutcome
from app.esign.utils import (
    STATUS_BY_EVENT_KIND, RecordLocks, is_terminal, payload_digest, record_locks, validate_state_transition,
)
from app.signature_terms.repository import SignatureTermRepository
from app.utils.logger import get_logger

logger = get_logger(__name__)

REPROCESSABLE_OUTCOMES = {WebhookOutcome.UNKNOWN_KEY, WebhookOutcome.ANOMALY}


class WebhookReconciler:
    """Looks the record up by provider key and applies guarded transitions."""

    def __init__(self, db: AsyncSession, locks: Optional[RecordLocks] = None):
        self.db = db
        self.events = WebhookEventRepository(db)
        self.repositories = {
            DOCUMENTS_RESOURCE: DocumentRepository(db),
            TERMS_RESOURCE: SignatureTermRepository(db),
        }
        self.locks = locks if locks is not None else record_locks

    def _lookup_order(self, resource_type: Optional[str]):
        if resource_type in self.repositories:
            others = [name for name in self.repositories if name != resource_type]
            return [resource_type] + others
        return list(self.repositories)

    async def _find_record(self, event: ProviderEvent) -> Tuple[Optional[str], Optional[SignableRepository], Optional[object]]:
        if not event.provider_key:
            return None, None, None
        for resource_type in self._lookup_order(event.resource_type):
            repo = self.repositories[resource_type]
            record = await repo.get_by_provider_key(event.provider_key)
            if record is not None:
                return resource_type, repo, record
        return None, None, None

    async def _find_pending_record(self, event: ProviderEvent) -> Tuple[Optional[str], Optional[SignableRepository], Optional[object]]:
        """
        A record that the provider accepted but whose local commit was lost
        is still in processing without a key. Both request envelopes carry
        the local id in metadata.local_id, which the provider echoes back.
        """
        if event.resource_type not in self.repositories or event.local_id is None or not event.provider_key:
            return None, None, None
        repo = self.repositories[event.resource_type]
        record = await repo.get_by_id(event.local_id)
        if record is None or record.provider_key or record.status != SignatureStatus.PROCESSING:
            return None, None, None
        return event.resource_type, repo, record

    async def _audit(
        self,
        event: ProviderEvent,
        digest: str,
        raw: str,
        outcome: WebhookOutcome,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        previous_status: Optional[SignatureStatus] = None,
        new_status: Optional[SignatureStatus] = None,
        existing: Optional[WebhookEvent] = None,
    ) -> WebhookEvent:
        if existing is not None:
            existing.outcome = outcome
            existing.resource_type = resource_type or event.resource_type
            existing.resource_id = resource_id
            existing.previous_status = previous_status
            existing.new_status = new_status
            return await self.events.update(existing)

        audit = WebhookEvent(
            provider_key=event.provider_key,
            event_name=event.event_name,
            event_kind=event.event_kind,
            resource_type=resource_type or event.resource_type,
            resource_id=resource_id,
            outcome=outcome,
            previous_status=previous_status,
            new_status=new_status,
            payload_digest=digest,
            raw_payload=raw,
        )
        return await self.events.create(audit)

    async def reconcile(self, event: ProviderEvent, raw_body: bytes) -> Tuple[WebhookOutcome, Optional[int]]:
        """
        Process one delivery. Returns the outcome and the id of the audit row
        (the earlier row for duplicate deliveries).
        """
        digest = payload_digest(raw_body)
        raw = raw_body.decode("utf-8", errors="replace")

        previous = await self.events.find_delivery(event.provider_key, event.event_name, digest)
        if previous is not None:
            logger.info(
                "Duplicate webhook delivery acknowledged",
                provider_key=event.provider_key,
                event_name=event.event_name,
                audit_id=previous.id,
            )
            return WebhookOutcome.DUPLICATE, previous.id

        try:
            outcome, audit = await self._apply(event, digest, raw)
        except IntegrityError:
            # A concurrent delivery of the same payload won the insert
            await self.db.rollback()
            logger.info("Concurrent duplicate webhook delivery", provider_key=event.provider_key, event_name=event.event_name)
            previous = await self.events.find_delivery(event.provider_key, event.event_name, digest)
            return WebhookOutcome.DUPLICATE, previous.id if previous else None

        return outcome, audit.id

    async def reprocess(self, event_id: int) -> Tuple[WebhookOutcome, int]:
        """
        Run a stored unknown_key or anomaly delivery through reconciliation
        again, updating its audit row in place.
        """
        stored = await self.events.get_by_id(event_id, for_update=True)
        if stored is None:
            raise RecordNotFoundException("webhook event", event_id)
        if stored.outcome not in REPROCESSABLE_OUTCOMES:
            raise WebhookNotReprocessableException(event_id, stored.outcome.value)

        try:
            payload = json.loads(stored.raw_payload)
        except ValueError:
            payload = None
        event = parse_webhook_event(payload)

        previous_outcome = stored.outcome
        outcome, audit = await self._apply(event, stored.payload_digest, stored.raw_payload, existing=stored)
        logger.info(
            "Webhook event reprocessed",
            audit_id=audit.id,
            previous_outcome=previous_outcome.value,
            outcome=outcome.value,
        )
        return outcome, audit.id

    async def _apply(
        self, event: ProviderEvent, digest: str, raw: str, existing: Optional[WebhookEvent] = None,
    ) -> Tuple[WebhookOutcome, WebhookEvent]:
        """Decide, audit and commit. Record changes commit while the record lock is held."""
        if event.truncated:
            logger.warning(
                "Webhook with oversized event name or key",
                provider_key=event.provider_key,
                event_name=event.event_name,
                anomaly=True,
            )
            audit = await self._audit(event, digest, raw, WebhookOutcome.ANOMALY, existing=existing)
            await self.db.commit()
            return WebhookOutcome.ANOMALY, audit

        resource_type, repo, record = await self._find_record(event)
        if record is None:
            resource_type, repo, record = await self._find_pending_record(event)

        if record is None:
            logger.warning(
                "Webhook for unknown provider key",
                provider_key=event.provider_key,
                event_name=event.event_name,
                anomaly=True,
            )
            audit = await self._audit(event, digest, raw, WebhookOutcome.UNKNOWN_KEY, existing=existing)
            await self.db.commit()
            return WebhookOutcome.UNKNOWN_KEY, audit

        async with self.locks.hold((resource_type, record.id)):
            record = await repo.get_by_id(record.id, for_update=True)
            current = record.status
            target = STATUS_BY_EVENT_KIND.get(event.event_kind)
            is_valid, error_msg = (False, f"Unknown event kind for '{event.event_name}'") if target is None \
                else validate_state_transition(current, target)

            if is_terminal(current):
                logger.info(
                    "Webhook for record in terminal state ignored",
                    resource_type=resource_type,
                    record_id=record.id,
                    status=current.value,
                    event_name=event.event_name,
                )
                outcome = WebhookOutcome.IGNORED
                audit = await self._audit(
                    event, digest, raw, outcome, resource_type, record.id, current, current, existing=existing,
                )
            elif not is_valid:
                logger.warning(
                    "Webhook transition rejected",
                    resource_type=resource_type,
                    record_id=record.id,
                    status=current.value,
                    event_name=event.event_name,
                    reason=error_msg,
                    anomaly=True,
                )
                outcome = WebhookOutcome.ANOMALY
                audit = await self._audit(
                    event, digest, raw, outcome, resource_type, record.id, current, current, existing=existing,
                )
            else:
                if not record.provider_key:
                    logger.warning(
                        "Adopting provider key for reconciliation-pending record",
                        resource_type=resource_type,
                        record_id=record.id,
                        provider_key=event.provider_key,
                    )
                    record.provider_key = event.provider_key

                record.status = target
                record.provider_raw_payload = raw
                await repo.update(record)
                outcome = WebhookOutcome.APPLIED
                audit = await self._audit(
                    event, digest, raw, outcome, resource_type, record.id, current, target, existing=existing,
                )

            await self.db.commit()

        if outcome == WebhookOutcome.APPLIED:
            logger.info(
                "Webhook applied",
                resource_type=resource_type,
                record_id=record.id,
                previous_status=current.value,
                new_status=target.value,
                provider_key=event.provider_key,
            )
        return outcome, audit
