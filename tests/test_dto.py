import base64
import hashlib
import hmac
from types import SimpleNamespace

import pytest

from app.esign import dto
from app.esign.schemas import EventKind
from app.esign.utils import verify_hmac


@pytest.fixture
def term():
    return SimpleNamespace(
        id=3,
        signer_documentation="12345678901",
        signer_birthday="1985-04-12",
        signer_email="signer@empresa.com.br",
        signer_name="Maria Souza",
        admin_email="admin@empresa.com.br",
        api_email="api@empresa.com.br",
    )


def test_term_request_envelope(term):
    request = dto.build_auto_signature_term_request(term)

    assert request == {
        "data": {
            "type": "auto_signature_terms",
            "attributes": {
                "signer": {
                    "documentation": "12345678901",
                    "birthday": "1985-04-12",
                    "email": "signer@empresa.com.br",
                    "name": "Maria Souza",
                },
                "admin_email": "admin@empresa.com.br",
                "api_email": "api@empresa.com.br",
                "metadata": {"local_id": 3},
            },
        }
    }


def test_document_request_envelope():
    document = SimpleNamespace(id=42, name="Contrato:2024/Q1", mime_type="application/pdf")

    request = dto.build_document_request(document, b"%PDF-1.4")

    attributes = request["data"]["attributes"]
    assert request["data"]["type"] == "documents"
    assert attributes["filename"] == "Contrato_2024_Q1_42.pdf"
    assert attributes["content_base64"] == "data:application/pdf;base64," + base64.b64encode(b"%PDF-1.4").decode()
    assert attributes["metadata"] == {"local_id": 42}


@pytest.mark.parametrize(
    "name, expected",
    [
        ("report", "report"),
        ('a/b\\c:d*e?f"g<h>i|j', "a_b_c_d_e_f_g_h_i_j"),
        ("//name//", "name"),
        ("a???b", "a_b"),
        ("***", "document"),
        ("", "document"),
    ],
)
def test_sanitize_filename(name, expected):
    assert dto.sanitize_filename(name) == expected


def test_extension_for_mime_type():
    assert dto.extension_for_mime_type("image/jpeg") == ".jpg"
    assert dto.extension_for_mime_type("IMAGE/PNG") == ".png"
    assert dto.extension_for_mime_type("application/zip") == ""


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"data": {"id": "pk-1"}}, "pk-1"),
        ({"data": {"id": "  pk-2  "}}, "pk-2"),
        ({"data": {"id": ""}}, None),
        ({"data": {}}, None),
        ({"data": None}, None),
        ({}, None),
        ([], None),
        ("pk-1", None),
    ],
)
def test_extract_provider_key(body, expected):
    assert dto.extract_provider_key(body) == expected


@pytest.mark.parametrize(
    "event_name, kind",
    [
        ("auto_signature_term.finished", EventKind.SIGNED),
        ("document.auto_close", EventKind.SIGNED),
        ("document.closed", EventKind.SIGNED),
        ("sign", EventKind.UNKNOWN),
        ("document.cancel", EventKind.CANCELLED),
        ("document.refusal", EventKind.CANCELLED),
        ("document.deadline", EventKind.FAILED),
        ("auto_signature_term.rejected", EventKind.FAILED),
        ("upload", EventKind.SENT),
        ("document.created", EventKind.SENT),
        ("", EventKind.UNKNOWN),
    ],
)
def test_event_kind_for(event_name, kind):
    assert dto.event_kind_for(event_name) == kind


def test_parse_data_envelope_event():
    event = dto.parse_webhook_event(
        {"event": "auto_signature_term.finished", "data": {"id": "pk-1", "attributes": {}}}
    )

    assert event.provider_key == "pk-1"
    assert event.event_name == "auto_signature_term.finished"
    assert event.event_kind == EventKind.SIGNED
    assert event.resource_type == dto.TERMS_RESOURCE
    assert event.local_id is None


def test_parse_document_callback_event():
    event = dto.parse_webhook_event(
        {
            "event": {"name": "auto_close", "occurred_at": "2024-03-01T10:15:00Z"},
            "document": {"key": "doc-key-9", "status": "closed", "metadata": {"local_id": "17"}},
        }
    )

    assert event.provider_key == "doc-key-9"
    assert event.event_kind == EventKind.SIGNED
    assert event.resource_type == dto.DOCUMENTS_RESOURCE
    assert event.local_id == 17
    assert event.occurred_at.year == 2024


def test_parse_garbage_event():
    event = dto.parse_webhook_event(["not", "an", "object"])
    assert event.provider_key is None
    assert event.event_kind == EventKind.UNKNOWN


def test_parse_term_event_with_local_id():
    event = dto.parse_webhook_event(
        {
            "event": "auto_signature_term.finished",
            "data": {"id": "pk-1", "type": "auto_signature_terms", "attributes": {"metadata": {"local_id": 3}}},
        }
    )

    assert event.resource_type == dto.TERMS_RESOURCE
    assert event.local_id == 3


# Values wider than the audit columns are cut and flagged
def test_parse_oversized_event():
    event = dto.parse_webhook_event({"event": "document." + "x" * 300, "data": {"id": "k" * 400}})

    assert event.truncated is True
    assert len(event.event_name) == dto.EVENT_NAME_MAX_LENGTH
    assert len(event.provider_key) == dto.PROVIDER_KEY_MAX_LENGTH


def test_parse_regular_event_is_not_truncated():
    event = dto.parse_webhook_event({"event": "document.closed", "data": {"id": "doc-1"}})
    assert event.truncated is False


def test_verify_hmac():
    body = b'{"event":"finished"}'
    signature = "sha256=" + hmac.new(b"hook-secret", body, hashlib.sha256).hexdigest()

    assert verify_hmac({"content-hmac": signature}, body, secret="hook-secret")
    assert verify_hmac({"content-hmac": signature.upper().replace("SHA256=", "sha256=")}, body, secret="hook-secret")
    assert not verify_hmac({"content-hmac": "sha256=éé"}, body, secret="hook-secret")
    assert not verify_hmac({}, body, secret="hook-secret")
    assert verify_hmac({}, body, secret="")
