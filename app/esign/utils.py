# app/esign/utils.py

import asyncio
import hashlib
import hmac
from contextlib import asynccontextmanager
from typing import Dict, Hashable, Optional, Tuple

from app.core.config import settings
from app.esign.schemas import EventKind, SignatureStatus

HMAC_HEADER = "content-hmac"

EDITABLE_STATUSES = frozenset({SignatureStatus.DRAFT, SignatureStatus.READY})
TERMINAL_STATUSES = frozenset({SignatureStatus.SIGNED, SignatureStatus.CANCELLED, SignatureStatus.FAILED})

VALID_TRANSITIONS = {
    SignatureStatus.DRAFT: [SignatureStatus.READY],
    SignatureStatus.READY: [SignatureStatus.PROCESSING],
    SignatureStatus.PROCESSING: [
        SignatureStatus.SENT,
        SignatureStatus.SIGNED,
        SignatureStatus.CANCELLED,
        SignatureStatus.FAILED,
    ],
    SignatureStatus.SENT: [SignatureStatus.SIGNED, SignatureStatus.CANCELLED, SignatureStatus.FAILED],
    SignatureStatus.SIGNED: [],
    SignatureStatus.CANCELLED: [],
    SignatureStatus.FAILED: [],
}

STATUS_BY_EVENT_KIND = {
    EventKind.SENT: SignatureStatus.SENT,
    EventKind.SIGNED: SignatureStatus.SIGNED,
    EventKind.CANCELLED: SignatureStatus.CANCELLED,
    EventKind.FAILED: SignatureStatus.FAILED,
}


def validate_state_transition(
    current_status: SignatureStatus, new_status: SignatureStatus
) -> Tuple[bool, Optional[str]]:
    """
    Validate if a state transition is allowed.

    Valid transitions:
    - draft → ready
    - ready → processing
    - processing → sent, signed, cancelled, failed
    - sent → signed, cancelled, failed
    - signed, cancelled, failed → (no transitions)

    Returns:
        Tuple of (is_valid, error_message)
    """
    if current_status not in VALID_TRANSITIONS:
        return False, f"Invalid current status: {current_status}"

    if new_status not in VALID_TRANSITIONS[current_status]:
        return False, f"Cannot transition from {current_status.value} to {new_status.value}"

    return True, None


def is_editable(status: SignatureStatus) -> bool:
    return status in EDITABLE_STATUSES


def is_terminal(status: SignatureStatus) -> bool:
    return status in TERMINAL_STATUSES


def payload_digest(raw: bytes) -> str:
    return hashlib.sha256(raw).hexdigest()


def verify_hmac(headers, raw: bytes, secret: Optional[str] = None) -> bool:
    """
    Check the ``Content-Hmac: sha256=<hex>`` header against the raw body.
    Verification is disabled when no webhook secret is configured.
    """
    secret = secret if secret is not None else settings.provider_webhook_secret
    if not secret:
        return True  # HMAC not enabled
    received = headers.get(HMAC_HEADER) or ""
    if not received.startswith("sha256="):
        return False
    calc = hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()
    # compare_digest rejects non-ASCII str
    return hmac.compare_digest(received[len("sha256="):].lower().encode("utf-8"), calc.encode("ascii"))


class RecordLocks:
    """
    In-process per-record locks, so concurrent tasks in one worker touching
    the same record run one after another. Entries are dropped once no task
    holds or waits for them.
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable):
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


record_locks = RecordLocks()
