# app/esign/dto.py

"""
Mapping between local records and the provider's JSON envelopes.

Everything here is pure: no I/O and no logging.
"""

import base64
import re
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.esign.schemas import EventKind

TERMS_RESOURCE = "auto_signature_terms"
DOCUMENTS_RESOURCE = "documents"

# Column widths of the webhook audit table
EVENT_NAME_MAX_LENGTH = 128
PROVIDER_KEY_MAX_LENGTH = 255

MIME_EXTENSIONS = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
}

# Last dotted segment of the provider event name -> kind
EVENT_KIND_BY_SEGMENT = {
    "finished": EventKind.SIGNED,
    "signed": EventKind.SIGNED,
    "closed": EventKind.SIGNED,
    "auto_close": EventKind.SIGNED,
    "cancel": EventKind.CANCELLED,
    "cancelled": EventKind.CANCELLED,
    "refusal": EventKind.CANCELLED,
    "refused": EventKind.CANCELLED,
    "failed": EventKind.FAILED,
    "deadline": EventKind.FAILED,
    "rejected": EventKind.FAILED,
    "sent": EventKind.SENT,
    "upload": EventKind.SENT,
    "created": EventKind.SENT,
}

_INVALID_FILENAME_CHARS = re.compile(r'[/\\:*?"<>|]')
_REPEATED_UNDERSCORES = re.compile(r"_+")


class SignerAttributes(BaseModel):
    documentation: str
    birthday: str
    email: str
    name: str


class AutoSignatureTermAttributes(BaseModel):
    signer: SignerAttributes
    admin_email: str
    api_email: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DocumentAttributes(BaseModel):
    filename: str
    content_base64: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RequestData(BaseModel):
    type: str
    attributes: Dict[str, Any]


class RequestEnvelope(BaseModel):
    """The ``{data: {type, attributes}}`` envelope sent to the provider."""
    data: RequestData


class ProviderEvent(BaseModel):
    """A webhook delivery reduced to what reconciliation needs."""
    provider_key: Optional[str] = None
    event_name: str = ""
    event_kind: EventKind = EventKind.UNKNOWN
    resource_type: Optional[str] = None
    local_id: Optional[int] = None
    occurred_at: Optional[datetime] = None
    # Event name or key was longer than the audit columns and got cut
    truncated: bool = False


def build_auto_signature_term_request(term) -> Dict[str, Any]:
    attributes = AutoSignatureTermAttributes(
        signer=SignerAttributes(
            documentation=term.signer_documentation,
            birthday=term.signer_birthday,
            email=term.signer_email,
            name=term.signer_name,
        ),
        admin_email=term.admin_email,
        api_email=term.api_email,
        metadata={"local_id": term.id},
    )
    envelope = RequestEnvelope(data=RequestData(type=TERMS_RESOURCE, attributes=attributes.model_dump()))
    return envelope.model_dump()


def sanitize_filename(name: str) -> str:
    """Replace characters the provider rejects in filenames."""
    result = _INVALID_FILENAME_CHARS.sub("_", name or "")
    result = _REPEATED_UNDERSCORES.sub("_", result).strip("_")
    return result or "document"


def extension_for_mime_type(mime_type: str) -> str:
    return MIME_EXTENSIONS.get((mime_type or "").lower(), "")


def document_filename(document) -> str:
    return f"{sanitize_filename(document.name)}_{document.id}{extension_for_mime_type(document.mime_type)}"


def data_uri(content: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type.lower()};base64,{encoded}"


def build_document_request(document, content: bytes) -> Dict[str, Any]:
    attributes = DocumentAttributes(
        filename=document_filename(document),
        content_base64=data_uri(content, document.mime_type),
        metadata={"local_id": document.id},
    )
    envelope = RequestEnvelope(data=RequestData(type=DOCUMENTS_RESOURCE, attributes=attributes.model_dump()))
    return envelope.model_dump()


def extract_provider_key(body: Any) -> Optional[str]:
    """Return ``data.id`` when present and non-empty."""
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    if not isinstance(data, dict):
        return None
    key = data.get("id")
    if key is None:
        return None
    key = str(key).strip()
    return key or None


def event_kind_for(event_name: str) -> EventKind:
    segment = (event_name or "").strip().lower().rsplit(".", 1)[-1]
    return EVENT_KIND_BY_SEGMENT.get(segment, EventKind.UNKNOWN)


def _normalize_resource_type(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    value = value.strip().lower()
    if value.startswith("auto_signature_term"):
        return TERMS_RESOURCE
    if value.startswith("document"):
        return DOCUMENTS_RESOURCE
    return None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_local_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def parse_webhook_event(payload: Any) -> ProviderEvent:
    """
    Parse a webhook body. Two shapes are accepted:

    ``{"event": "auto_signature_term.finished", "data": {"id": ..., "type": ..., "attributes": {...}}}``
    and the document callback shape
    ``{"event": {"name": ..., "occurred_at": ...}, "document": {"key": ..., "metadata": {...}}}``.
    Unknown or missing pieces leave the corresponding field empty.
    """
    if not isinstance(payload, dict):
        return ProviderEvent()

    raw_event = payload.get("event")
    occurred_at = None
    if isinstance(raw_event, dict):
        event_name = str(raw_event.get("name") or "")
        occurred_at = _parse_timestamp(raw_event.get("occurred_at"))
    else:
        event_name = str(raw_event or "")

    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    document = payload.get("document") if isinstance(payload.get("document"), dict) else {}
    attributes = data.get("attributes") if isinstance(data.get("attributes"), dict) else {}

    provider_key = extract_provider_key(payload)
    if provider_key is None and document.get("key"):
        provider_key = str(document["key"]).strip() or None

    resource_type = _normalize_resource_type(data.get("type"))
    if resource_type is None and document:
        resource_type = DOCUMENTS_RESOURCE
    if resource_type is None and "." in event_name:
        resource_type = _normalize_resource_type(event_name.split(".", 1)[0])

    metadata = attributes.get("metadata") or document.get("metadata") or {}
    local_id = _parse_local_id(metadata.get("local_id")) if isinstance(metadata, dict) else None

    if occurred_at is None:
        occurred_at = _parse_timestamp(attributes.get("occurred_at") or payload.get("occurred_at"))

    truncated = len(event_name) > EVENT_NAME_MAX_LENGTH or len(provider_key or "") > PROVIDER_KEY_MAX_LENGTH
    if truncated:
        event_name = event_name[:EVENT_NAME_MAX_LENGTH]
        provider_key = provider_key[:PROVIDER_KEY_MAX_LENGTH] if provider_key else provider_key

    return ProviderEvent(
        provider_key=provider_key,
        event_name=event_name,
        truncated=truncated,
        event_kind=event_kind_for(event_name),
        resource_type=resource_type,
        local_id=local_id,
        occurred_at=occurred_at,
    )
