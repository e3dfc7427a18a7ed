import asyncio
import json

from app.esign.client import ProviderResponse, classify_status
from app.esign.exceptions import ProviderError

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"


def provider_ok(provider_key: str, status: int = 201) -> ProviderResponse:
    body = json.dumps({"data": {"id": provider_key, "type": "auto_signature_terms", "attributes": {}}})
    return ProviderResponse(status=status, body=body.encode(), headers={"Content-Type": "application/json"})


def provider_error(status: int, body: bytes = b"") -> ProviderError:
    return ProviderError(classify_status(status), f"POST returned HTTP {status}", status, body)


class FakeProviderClient:
    """Stands in for ProviderClient; replays queued outcomes and records every call."""

    def __init__(self):
        self.calls = []
        self.outcomes = []
        self.delay = 0.0

    def queue(self, *outcomes):
        self.outcomes.extend(outcomes)

    async def post(self, path, body=None, *, timeout=None):
        self.calls.append({"path": path, "body": body, "timeout": timeout})
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes.pop(0) if self.outcomes else provider_ok(f"pk-{len(self.calls)}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self):
        return None
