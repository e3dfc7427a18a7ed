# app/esign/client.py

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import aiohttp

from app.esign.exceptions import ProviderError, ProviderErrorKind
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProviderResponse:
    """A successful (2xx) provider response."""
    status: int
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        """Decode the body as JSON, classifying failures as malformed."""
        if not self.body:
            raise ProviderError(ProviderErrorKind.MALFORMED, "empty response body", self.status, self.body)
        try:
            return json.loads(self.body)
        except (UnicodeDecodeError, ValueError) as e:
            raise ProviderError(
                ProviderErrorKind.MALFORMED, f"unparseable response body: {e}", self.status, self.body
            ) from e


def classify_status(status_code: int) -> ProviderErrorKind:
    """Map a non-2xx HTTP status onto a failure kind."""
    if status_code in (401, 403):
        return ProviderErrorKind.AUTH
    if status_code == 429:
        return ProviderErrorKind.RATE_LIMIT
    if 400 <= status_code < 500:
        return ProviderErrorKind.CLIENT
    return ProviderErrorKind.SERVER


class ProviderClient:
    """
    Authenticated JSON client for the signature provider API.

    Every call resolves the path against the base URL, sends the bearer
    credential and JSON headers, and either returns a ProviderResponse or
    raises a ProviderError with exactly one kind. The client never retries;
    that decision belongs to the caller.

    One aiohttp session (and its connection pool) is shared by all calls, so
    a single instance is safe to use from concurrent tasks.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self._api_key = api_key or ""
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    @classmethod
    def from_settings(cls, settings) -> "ProviderClient":
        return cls(
            base_url=settings.provider_base_url,
            api_key=settings.provider_api_key,
            timeout_seconds=settings.provider_timeout,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Release the connection pool."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None,
        *,
        timeout: Optional[float] = None,
    ) -> ProviderResponse:
        """
        Perform a single request. ``timeout`` (seconds) overrides the client
        default and acts as the deadline for the whole call.
        """
        url = self._url(path)
        data = None
        if body is not None:
            try:
                data = json.dumps(body)
            except (TypeError, ValueError) as e:
                raise ProviderError(ProviderErrorKind.MALFORMED, f"request body is not serializable: {e}") from e

        client_timeout = aiohttp.ClientTimeout(total=timeout if timeout is not None else self.timeout_seconds)
        session = self._get_session()

        try:
            async with session.request(
                method, url, data=data, headers=self._headers(), timeout=client_timeout
            ) as response:
                raw = await response.read()
                status_code = response.status
                headers = dict(response.headers)
        except asyncio.TimeoutError as e:
            logger.warning("Provider request timed out", method=method, path=path)
            raise ProviderError(ProviderErrorKind.TIMEOUT, f"{method} {path} exceeded its deadline") from e
        except aiohttp.ClientError as e:
            logger.warning("Provider request failed", method=method, path=path, error=str(e))
            raise ProviderError(ProviderErrorKind.NETWORK, f"{method} {path} could not reach provider: {e}") from e

        if 200 <= status_code < 300:
            logger.debug("Provider request succeeded", method=method, path=path, status=status_code)
            return ProviderResponse(status=status_code, body=raw, headers=headers)

        kind = classify_status(status_code)
        logger.warning("Provider returned an error status", method=method, path=path, status=status_code, kind=kind.value)
        raise ProviderError(kind, f"{method} {path} returned HTTP {status_code}", status_code, raw)

    async def get(self, path: str, *, timeout: Optional[float] = None) -> ProviderResponse:
        return await self.request("GET", path, timeout=timeout)

    async def post(self, path: str, body: Optional[Any] = None, *, timeout: Optional[float] = None) -> ProviderResponse:
        return await self.request("POST", path, body, timeout=timeout)

    async def put(self, path: str, body: Optional[Any] = None, *, timeout: Optional[float] = None) -> ProviderResponse:
        return await self.request("PUT", path, body, timeout=timeout)

    async def patch(self, path: str, body: Optional[Any] = None, *, timeout: Optional[float] = None) -> ProviderResponse:
        return await self.request("PATCH", path, body, timeout=timeout)

    async def delete(self, path: str, *, timeout: Optional[float] = None) -> ProviderResponse:
        return await self.request("DELETE", path, timeout=timeout)
