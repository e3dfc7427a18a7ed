import json

import pytest
from sqlalchemy import event, func, select

from app.documents.models import Document
from app.esign.dto import parse_webhook_event
from app.esign.exceptions import RecordNotFoundException, WebhookNotReprocessableException
from app.esign.models import WebhookEvent
from app.esign.reconciler import WebhookReconciler
from app.esign.schemas import SignatureStatus, WebhookOutcome
from app.signature_terms.models import AutoSignatureTerm


def _body(payload: dict) -> bytes:
    return json.dumps(payload).encode()


async def _deliver(session_factory, locks, payload: dict):
    raw = _body(payload)
    async with session_factory() as session:
        return await WebhookReconciler(session, locks=locks).reconcile(parse_webhook_event(payload), raw)


def _audit_rows(sync_db):
    sync_db.expire_all()
    return list(sync_db.execute(select(WebhookEvent).order_by(WebhookEvent.id)).scalars())


# S5: a finished event completes a sent term
async def test_finished_event_signs_sent_term(session_factory, locks, seed_term, sync_db, fetch):
    term_id = seed_term(status=SignatureStatus.SENT, provider_key="pk-1", raw_payload='{"data":{"id":"pk-1"}}')
    payload = {"event": "auto_signature_term.finished", "data": {"id": "pk-1"}}

    outcome, event_id = await _deliver(session_factory, locks, payload)

    assert outcome == WebhookOutcome.APPLIED
    term = fetch(AutoSignatureTerm, term_id)
    assert term.status == SignatureStatus.SIGNED
    assert term.provider_key == "pk-1"
    assert json.loads(term.provider_raw_payload) == payload

    rows = _audit_rows(sync_db)
    assert len(rows) == 1
    assert rows[0].id == event_id
    assert rows[0].previous_status == SignatureStatus.SENT
    assert rows[0].new_status == SignatureStatus.SIGNED
    assert rows[0].resource_type == "auto_signature_terms"
    assert rows[0].resource_id == term_id


# S6: unknown keys are acknowledged, audited and change nothing
async def test_unknown_key_is_acknowledged(session_factory, locks, seed_term, sync_db, fetch):
    term_id = seed_term(status=SignatureStatus.SENT, provider_key="pk-1", raw_payload="{}")

    outcome, _ = await _deliver(
        session_factory, locks, {"event": "auto_signature_term.finished", "data": {"id": "pk-zzz"}}
    )

    assert outcome == WebhookOutcome.UNKNOWN_KEY
    assert fetch(AutoSignatureTerm, term_id).status == SignatureStatus.SENT
    rows = _audit_rows(sync_db)
    assert [r.outcome for r in rows] == [WebhookOutcome.UNKNOWN_KEY]
    assert rows[0].resource_id is None


# Delivering the same payload twice leaves one audit row and the same final state
async def test_duplicate_delivery_is_idempotent(session_factory, locks, seed_term, sync_db, fetch):
    term_id = seed_term(status=SignatureStatus.SENT, provider_key="pk-1", raw_payload="{}")
    payload = {"event": "auto_signature_term.cancelled", "data": {"id": "pk-1"}}

    first = await _deliver(session_factory, locks, payload)
    second = await _deliver(session_factory, locks, payload)

    assert first[0] == WebhookOutcome.APPLIED
    assert second == (WebhookOutcome.DUPLICATE, first[1])
    assert fetch(AutoSignatureTerm, term_id).status == SignatureStatus.CANCELLED
    assert len(_audit_rows(sync_db)) == 1


# Events for terminal records are recorded but never applied
async def test_terminal_record_is_not_changed(session_factory, locks, seed_term, sync_db, fetch):
    term_id = seed_term(status=SignatureStatus.SIGNED, provider_key="pk-1", raw_payload='{"signed":true}')

    outcome, _ = await _deliver(
        session_factory, locks, {"event": "auto_signature_term.cancelled", "data": {"id": "pk-1"}}
    )

    assert outcome == WebhookOutcome.IGNORED
    term = fetch(AutoSignatureTerm, term_id)
    assert term.status == SignatureStatus.SIGNED
    assert term.provider_raw_payload == '{"signed":true}'


# Illegal transitions are recorded as anomalies
@pytest.mark.parametrize(
    "status, event_name",
    [
        (SignatureStatus.DRAFT, "auto_signature_term.finished"),
        (SignatureStatus.READY, "auto_signature_term.cancelled"),
        (SignatureStatus.SENT, "auto_signature_term.sent"),
        (SignatureStatus.SENT, "auto_signature_term.viewed"),
    ],
)
async def test_illegal_transition_is_anomaly(session_factory, locks, seed_term, sync_db, fetch, status, event_name):
    term_id = seed_term(status=status, provider_key="pk-1")

    outcome, _ = await _deliver(session_factory, locks, {"event": event_name, "data": {"id": "pk-1"}})

    assert outcome == WebhookOutcome.ANOMALY
    assert fetch(AutoSignatureTerm, term_id).status == status
    assert _audit_rows(sync_db)[0].outcome == WebhookOutcome.ANOMALY


async def test_processing_record_moves_to_sent(session_factory, locks, seed_document, fetch):
    document_id = seed_document(status=SignatureStatus.PROCESSING, provider_key="doc-1")

    outcome, _ = await _deliver(
        session_factory, locks, {"event": {"name": "upload"}, "document": {"key": "doc-1", "status": "running"}}
    )

    assert outcome == WebhookOutcome.APPLIED
    assert fetch(Document, document_id).status == SignatureStatus.SENT


# A document whose local commit was lost is repaired from its metadata.local_id
async def test_pending_document_adopts_key(session_factory, locks, seed_document, fetch):
    document_id = seed_document(status=SignatureStatus.PROCESSING)
    payload = {
        "event": {"name": "auto_close", "occurred_at": "2024-03-01T10:15:00Z"},
        "document": {"key": "doc-lost", "status": "closed", "metadata": {"local_id": document_id}},
    }

    outcome, _ = await _deliver(session_factory, locks, payload)

    assert outcome == WebhookOutcome.APPLIED
    document = fetch(Document, document_id)
    assert document.provider_key == "doc-lost"
    assert document.status == SignatureStatus.SIGNED


# The key is looked up across both resource tables
async def test_lookup_falls_back_to_other_resource(session_factory, locks, seed_document, fetch):
    document_id = seed_document(status=SignatureStatus.SENT, provider_key="shared-1", raw_payload="{}")

    outcome, _ = await _deliver(session_factory, locks, {"event": "finished", "data": {"id": "shared-1"}})

    assert outcome == WebhookOutcome.APPLIED
    assert fetch(Document, document_id).status == SignatureStatus.SIGNED


async def test_same_event_different_payloads_are_both_audited(session_factory, locks, seed_term, sync_db):
    seed_term(status=SignatureStatus.SENT, provider_key="pk-1", raw_payload="{}")

    await _deliver(session_factory, locks, {"event": "auto_signature_term.finished", "data": {"id": "pk-1"}, "n": 1})
    await _deliver(session_factory, locks, {"event": "auto_signature_term.finished", "data": {"id": "pk-1"}, "n": 2})

    outcomes = [r.outcome for r in _audit_rows(sync_db)]
    assert outcomes == [WebhookOutcome.APPLIED, WebhookOutcome.IGNORED]
    count = sync_db.execute(select(func.count()).select_from(WebhookEvent)).scalar_one()
    assert count == 2


# A term whose local commit was lost is repaired from metadata.local_id, so a retry never resubmits it
async def test_pending_term_adopts_key_and_retry_is_noop(
    session_factory, locks, seed_term, make_term_service, provider, fetch
):
    term_id = seed_term(status=SignatureStatus.PROCESSING)
    payload = {
        "event": "auto_signature_term.finished",
        "data": {"id": "pk-1", "type": "auto_signature_terms", "attributes": {"metadata": {"local_id": term_id}}},
    }

    outcome, _ = await _deliver(session_factory, locks, payload)

    assert outcome == WebhookOutcome.APPLIED
    term = fetch(AutoSignatureTerm, term_id)
    assert term.provider_key == "pk-1"
    assert term.status == SignatureStatus.SIGNED

    async with session_factory() as session:
        retried = await make_term_service(session).submit(term_id)
    assert retried.provider_key == "pk-1"
    assert provider.calls == []


# The local id only repairs records of the event's own resource type
async def test_pending_lookup_respects_resource_type(session_factory, locks, seed_term, fetch):
    term_id = seed_term(status=SignatureStatus.PROCESSING)
    payload = {
        "event": {"name": "auto_close"},
        "document": {"key": "doc-1", "metadata": {"local_id": term_id}},
    }

    outcome, _ = await _deliver(session_factory, locks, payload)

    assert outcome == WebhookOutcome.UNKNOWN_KEY
    assert fetch(AutoSignatureTerm, term_id).provider_key is None


# Oversized event names and keys are audited as anomalies instead of failing the delivery
async def test_oversized_values_are_anomalies(session_factory, locks, seed_term, sync_db, fetch):
    term_id = seed_term(status=SignatureStatus.SENT, provider_key="pk-1", raw_payload="{}")

    outcome, _ = await _deliver(
        session_factory, locks, {"event": "auto_signature_term.finished", "data": {"id": "pk-1" + "x" * 300}}
    )

    assert outcome == WebhookOutcome.ANOMALY
    row = _audit_rows(sync_db)[0]
    assert len(row.provider_key) == 255
    assert fetch(AutoSignatureTerm, term_id).status == SignatureStatus.SENT


# Record changes are committed while the record lock is still held
async def test_commit_happens_under_record_lock(session_factory, locks, seed_term):
    seed_term(status=SignatureStatus.SENT, provider_key="pk-1", raw_payload="{}")
    payload = {"event": "auto_signature_term.finished", "data": {"id": "pk-1"}}
    held_at_commit = []

    async with session_factory() as session:
        event.listen(session.sync_session, "before_commit", lambda s: held_at_commit.append(len(locks) == 1))
        await WebhookReconciler(session, locks=locks).reconcile(parse_webhook_event(payload), _body(payload))

    assert held_at_commit == [True]
    assert len(locks) == 0


# Stored unknown_key rows can be replayed once the record is known
async def test_reprocess_unknown_key(session_factory, locks, seed_term, sync_db, fetch):
    payload = {"event": "auto_signature_term.finished", "data": {"id": "pk-late"}}
    outcome, event_id = await _deliver(session_factory, locks, payload)
    assert outcome == WebhookOutcome.UNKNOWN_KEY

    term_id = seed_term(status=SignatureStatus.SENT, provider_key="pk-late", raw_payload="{}")
    async with session_factory() as session:
        outcome, audit_id = await WebhookReconciler(session, locks=locks).reprocess(event_id)

    assert (outcome, audit_id) == (WebhookOutcome.APPLIED, event_id)
    assert fetch(AutoSignatureTerm, term_id).status == SignatureStatus.SIGNED
    rows = _audit_rows(sync_db)
    assert len(rows) == 1
    assert rows[0].outcome == WebhookOutcome.APPLIED
    assert rows[0].resource_id == term_id
    assert rows[0].new_status == SignatureStatus.SIGNED


async def test_reprocess_rejects_applied_and_missing_rows(session_factory, locks, seed_term):
    seed_term(status=SignatureStatus.SENT, provider_key="pk-1", raw_payload="{}")
    _, event_id = await _deliver(session_factory, locks, {"event": "auto_signature_term.finished", "data": {"id": "pk-1"}})

    async with session_factory() as session:
        reconciler = WebhookReconciler(session, locks=locks)
        with pytest.raises(WebhookNotReprocessableException):
            await reconciler.reprocess(event_id)
        with pytest.raises(RecordNotFoundException):
            await reconciler.reprocess(999)
