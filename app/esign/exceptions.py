# app/esign/exceptions.py

"""
Custom exceptions for the signature pipeline.

Two layers live here:
- ProviderError / SubmissionError: transport-level failures raised by the
  provider client and submission services. They carry a ProviderErrorKind
  that is never reclassified as the error travels upward.
- SignatureBaseException and subclasses: user-facing errors with a stable
  machine-readable ``code`` and an HTTP ``status_code``.
"""

from enum import Enum as PyEnum
from typing import Optional

from fastapi import HTTPException


class ProviderErrorKind(str, PyEnum):
    """Classification of a failed provider call. Exactly one per failure."""
    NETWORK = "network"
    TIMEOUT = "timeout"
    SERVER = "server"
    CLIENT = "client"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    MALFORMED = "malformed"

    @property
    def is_transient(self) -> bool:
        return self in TRANSIENT_KINDS


TRANSIENT_KINDS = frozenset({
    ProviderErrorKind.NETWORK,
    ProviderErrorKind.TIMEOUT,
    ProviderErrorKind.SERVER,
    ProviderErrorKind.RATE_LIMIT,
})


class ProviderError(Exception):
    """Raised by the provider HTTP client."""
    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[bytes] = None,
    ):
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(f"[{kind.value}] {message}")


class SubmissionError(ProviderError):
    """A ProviderError enriched with the resource type and endpoint being submitted."""
    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        resource_type: str,
        endpoint: str,
        status_code: Optional[int] = None,
        body: Optional[bytes] = None,
    ):
        self.resource_type = resource_type
        self.endpoint = endpoint
        super().__init__(kind, message, status_code=status_code, body=body)

    @classmethod
    def wrap(cls, error: ProviderError, resource_type: str, endpoint: str) -> "SubmissionError":
        return cls(
            error.kind,
            error.message,
            resource_type=resource_type,
            endpoint=endpoint,
            status_code=error.status_code,
            body=error.body,
        )


class SignatureBaseException(Exception):
    """Base exception for all user-facing signature pipeline errors."""
    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(SignatureBaseException):
    """Raised when a local record fails its field rules."""
    code = "validation"
    status_code = 400

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message, {"errors": errors or []})


class RecordNotFoundException(SignatureBaseException):
    """Raised when a document, term or audit event is not found."""
    code = "not_found"
    status_code = 404

    def __init__(self, resource_type: str, record_id=None, provider_key: Optional[str] = None):
        if provider_key is not None:
            msg = f"{resource_type} with provider key {provider_key} not found"
        else:
            msg = f"{resource_type} with ID {record_id} not found"
        super().__init__(msg, {"resource_type": resource_type, "id": record_id, "provider_key": provider_key})


class ImmutableInStatusException(SignatureBaseException):
    """Raised when an update or delete targets a record that left draft/ready."""
    code = "immutable_in_status"
    status_code = 409

    def __init__(self, resource_type: str, record_id: int, current_status: str):
        msg = f"{resource_type} {record_id} cannot be modified in status '{current_status}'"
        super().__init__(msg, {"id": record_id, "status": current_status})


class InvalidTransitionException(SignatureBaseException):
    """Raised when a state-machine precondition does not hold."""
    code = "invalid_transition"
    status_code = 409

    def __init__(self, current_state: str, attempted_state: str, reason: str):
        msg = f"Cannot transition from {current_state} to {attempted_state}: {reason}"
        super().__init__(
            msg,
            {"current_state": current_state, "attempted_state": attempted_state, "reason": reason}
        )


class ProviderTransientException(SignatureBaseException):
    """Raised when the provider could not be reached or failed temporarily. Retryable."""
    code = "provider_transient"
    status_code = 502

    def __init__(self, error: ProviderError):
        if error.kind == ProviderErrorKind.TIMEOUT:
            self.code = "provider_timeout"
            self.status_code = 504
        super().__init__(
            "The signature provider is temporarily unavailable, please retry",
            {"kind": error.kind.value, "provider_status": error.status_code},
        )


class ProviderRejectedException(SignatureBaseException):
    """Raised when the provider refused the request (4xx other than auth)."""
    code = "provider_rejected"
    status_code = 422

    def __init__(self, error: ProviderError):
        super().__init__(
            "The signature provider rejected the request",
            {"kind": error.kind.value, "provider_status": error.status_code},
        )


class ProviderMalformedException(SignatureBaseException):
    """Raised when the provider answered with an unusable body."""
    code = "provider_malformed"
    status_code = 502

    def __init__(self, error: ProviderError):
        super().__init__(
            "The signature provider returned an unexpected response",
            {"kind": error.kind.value, "provider_status": error.status_code},
        )


class ProviderAuthException(SignatureBaseException):
    """Raised when the provider refused our credentials."""
    code = "provider_auth"
    status_code = 500

    def __init__(self, error: ProviderError):
        super().__init__(
            "The signature provider refused the configured credentials",
            {"kind": error.kind.value, "provider_status": error.status_code},
        )


class WebhookSignatureException(SignatureBaseException):
    """Raised when a webhook call does not carry a valid HMAC."""
    code = "invalid_signature"
    status_code = 401

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message)


class WebhookNotReprocessableException(SignatureBaseException):
    """Raised when a stored delivery was already applied or ignored."""
    code = "not_reprocessable"
    status_code = 409

    def __init__(self, event_id: int, outcome: str):
        super().__init__(
            f"Webhook event {event_id} has outcome '{outcome}' and cannot be reprocessed",
            {"id": event_id, "outcome": outcome},
        )


def provider_exception_for(error: ProviderError) -> SignatureBaseException:
    """Map a classified provider failure to its user-facing exception."""
    if error.kind.is_transient:
        return ProviderTransientException(error)
    if error.kind == ProviderErrorKind.CLIENT:
        return ProviderRejectedException(error)
    if error.kind == ProviderErrorKind.AUTH:
        return ProviderAuthException(error)
    return ProviderMalformedException(error)


def convert_to_http_exception(exc: SignatureBaseException) -> HTTPException:
    """
    Convert a SignatureBaseException to an HTTPException carrying the
    failure envelope as its detail.
    """
    return HTTPException(
        status_code=exc.status_code,
        detail={"message": exc.message, "code": exc.code},
    )
