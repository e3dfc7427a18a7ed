from app.esign.schemas import SignatureStatus
from app.signature_terms.models import AutoSignatureTerm

from provider_fakes import provider_error, provider_ok


def _create(client, auth_headers, payload):
    response = client.post("/auto-signature-terms", json=payload, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _to_processing(client, auth_headers, term_id):
    assert client.post(f"/auto-signature-terms/{term_id}/validate", headers=auth_headers).status_code == 200
    assert client.post(f"/auto-signature-terms/{term_id}/prepare-for-signing", headers=auth_headers).status_code == 200


# Test the full lifecycle through the API
def test_term_lifecycle(client, auth_headers, term_payload, provider, admin_user):
    provider.queue(provider_ok("pk-1"))

    created = _create(client, auth_headers, term_payload)
    assert created["status"] == "draft"
    assert created["provider_key"] is None
    assert created["created_by"] == admin_user.id
    assert "provider_raw_payload" not in created

    validated = client.post(f"/auto-signature-terms/{created['id']}/validate", headers=auth_headers).json()["data"]
    assert validated["status"] == "ready"

    prepared = client.post(
        f"/auto-signature-terms/{created['id']}/prepare-for-signing", headers=auth_headers
    ).json()["data"]
    assert prepared["status"] == "processing"

    response = client.post(f"/auto-signature-terms/{created['id']}/submit", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "sent"
    assert response.json()["data"]["provider_key"] == "pk-1"

    response = client.get("/auto-signature-terms/provider-key/pk-1", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["id"] == created["id"]


def test_requires_authentication(client, term_payload):
    response = client.post("/auto-signature-terms", json=term_payload)
    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"


def test_create_validation_failure(client, auth_headers, term_payload):
    term_payload["signer_birthday"] = "not-a-date"

    response = client.post("/auto-signature-terms", json=term_payload, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "validation"
    assert response.json()["message"]


def test_create_missing_field(client, auth_headers, term_payload):
    del term_payload["signer_email"]

    response = client.post("/auto-signature-terms", json=term_payload, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "validation"


def test_not_found(client, auth_headers):
    for method, path in [
        ("get", "/auto-signature-terms/999"),
        ("delete", "/auto-signature-terms/999"),
        ("post", "/auto-signature-terms/999/submit"),
        ("get", "/auto-signature-terms/provider-key/missing"),
    ]:
        response = getattr(client, method)(path, headers=auth_headers)
        assert response.status_code == 404, path
        assert response.json()["code"] == "not_found"


def test_update_after_send_conflicts(client, auth_headers, seed_term, fetch):
    term_id = seed_term(status=SignatureStatus.SENT, provider_key="pk-sent", raw_payload="{}")

    response = client.put(f"/auto-signature-terms/{term_id}", json={"signer_name": "Someone Else"}, headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["code"] == "immutable_in_status"
    assert fetch(AutoSignatureTerm, term_id).signer_name == "Maria Souza"


def test_submit_from_draft_conflicts(client, auth_headers, term_payload, provider):
    created = _create(client, auth_headers, term_payload)

    response = client.post(f"/auto-signature-terms/{created['id']}/submit", headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"
    assert provider.calls == []


def test_submit_rejected(client, auth_headers, term_payload, provider, fetch):
    provider.queue(provider_error(422, b'{"errors":["invalid documentation"]}'))
    created = _create(client, auth_headers, term_payload)
    _to_processing(client, auth_headers, created["id"])

    response = client.post(f"/auto-signature-terms/{created['id']}/submit", headers=auth_headers)

    assert response.status_code == 422
    assert response.json()["code"] == "provider_rejected"
    assert fetch(AutoSignatureTerm, created["id"]).status == SignatureStatus.FAILED


def test_submit_transient_then_retry(client, auth_headers, term_payload, provider, fetch):
    provider.queue(provider_error(503), provider_ok("pk-retry"))
    created = _create(client, auth_headers, term_payload)
    _to_processing(client, auth_headers, created["id"])

    response = client.post(f"/auto-signature-terms/{created['id']}/submit", headers=auth_headers)
    assert response.status_code == 502
    assert response.json()["code"] == "provider_transient"
    assert fetch(AutoSignatureTerm, created["id"]).status == SignatureStatus.PROCESSING

    response = client.post(f"/auto-signature-terms/{created['id']}/submit", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["provider_key"] == "pk-retry"


def test_list_terms(client, auth_headers, term_payload, seed_term):
    seed_term(status=SignatureStatus.SENT, provider_key="pk-a", raw_payload="{}")
    _create(client, auth_headers, {**term_payload, "signer_name": "Joao Pereira"})

    response = client.get("/auto-signature-terms", params={"status": "sent"}, headers=auth_headers)
    data = response.json()["data"]
    assert response.status_code == 200
    assert data["total_items"] == 1
    assert data["items"][0]["provider_key"] == "pk-a"

    response = client.get("/auto-signature-terms", params={"search": "joao"}, headers=auth_headers)
    assert [t["signer_name"] for t in response.json()["data"]["items"]] == ["Joao Pereira"]

    response = client.get("/auto-signature-terms", params={"per_page": 1, "page": 2}, headers=auth_headers)
    data = response.json()["data"]
    assert data["total_pages"] == 2
    assert len(data["items"]) == 1


def test_list_rejects_unknown_status(client, auth_headers):
    response = client.get("/auto-signature-terms", params={"status": "archived"}, headers=auth_headers)
    assert response.status_code == 400


def test_delete_draft(client, auth_headers, term_payload):
    created = _create(client, auth_headers, term_payload)

    response = client.delete(f"/auto-signature-terms/{created['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"data": {"id": created["id"], "deleted": True}}
    assert client.get(f"/auto-signature-terms/{created['id']}", headers=auth_headers).status_code == 404
