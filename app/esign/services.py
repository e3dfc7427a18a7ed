# app/esign/services.py

"""
Submission services: one per provider resource family.

Each ``submit`` builds the request envelope, performs a single POST and
returns the provider key with the verbatim response body, or raises a
SubmissionError whose kind is the one reported by the client.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, Request

from app.core.config import settings
from app.esign import dto
from app.esign.client import ProviderClient
from app.esign.exceptions import ProviderError, ProviderErrorKind, SubmissionError
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    provider_key: str
    raw_payload: str


def get_provider_client(request: Request) -> ProviderClient:
    """Dependency returning the process-wide provider client built at startup."""
    return request.app.state.provider_client


def _decode(body: Optional[bytes]) -> str:
    return (body or b"").decode("utf-8", errors="replace")


class BaseSubmission:
    """Shared request/response handling for provider submissions."""

    resource_type: str = ""
    endpoint: str = ""

    def __init__(self, client: ProviderClient, timeout_seconds: Optional[float] = None):
        self.client = client
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.provider_timeout

    async def build_request(self, record) -> Dict[str, Any]:
        raise NotImplementedError

    async def submit(self, record) -> SubmissionResult:
        try:
            payload = await self.build_request(record)
        except OSError as e:
            raise SubmissionError(
                ProviderErrorKind.MALFORMED,
                f"could not read content for {self.resource_type} {record.id}: {e}",
                resource_type=self.resource_type,
                endpoint=self.endpoint,
            ) from e

        logger.info("Submitting to provider", resource_type=self.resource_type, record_id=record.id, endpoint=self.endpoint)
        try:
            response = await self.client.post(self.endpoint, payload, timeout=self.timeout_seconds)
            body = response.json()
        except ProviderError as e:
            raise SubmissionError.wrap(e, self.resource_type, self.endpoint) from e

        provider_key = dto.extract_provider_key(body)
        if provider_key is None:
            raise SubmissionError(
                ProviderErrorKind.MALFORMED,
                "provider response has no data.id",
                resource_type=self.resource_type,
                endpoint=self.endpoint,
                status_code=response.status,
                body=response.body,
            )

        logger.info(
            "Provider accepted submission",
            resource_type=self.resource_type,
            record_id=record.id,
            provider_key=provider_key,
        )
        return SubmissionResult(provider_key=provider_key, raw_payload=_decode(response.body))


class AutoSignatureTermSubmission(BaseSubmission):
    resource_type = dto.TERMS_RESOURCE
    endpoint = "/api/v3/auto_signature/terms"

    async def build_request(self, term) -> Dict[str, Any]:
        return dto.build_auto_signature_term_request(term)


class DocumentSubmission(BaseSubmission):
    resource_type = dto.DOCUMENTS_RESOURCE
    endpoint = "/api/v3/documents"

    async def build_request(self, document) -> Dict[str, Any]:
        content = await asyncio.to_thread(Path(document.file_path).read_bytes)
        return dto.build_document_request(document, content)


def get_term_submission(client: ProviderClient = Depends(get_provider_client)) -> AutoSignatureTermSubmission:
    return AutoSignatureTermSubmission(client)


def get_document_submission(client: ProviderClient = Depends(get_provider_client)) -> DocumentSubmission:
    return DocumentSubmission(client)
