"""
Provider client for OpenDiscovery documents.

This module provides an async client that fetches a provider's discovery
document for an identifier and validates it before handing it to the
chain resolver.

Behavior:
- GET ``<base>/.well-known/opendiscovery/<urlencoded id>.json``
- fixed User-Agent, 5s connect and read timeouts, no automatic redirects
- 4xx bodies are parsed like 2xx (providers send structured errors)
- any other status or a failure without a response is a TransportError
- malformed or inconsistent documents are a ProtocolError
"""

import time
from typing import Optional
from urllib.parse import quote_plus

import httpx

from .audit_logger import AuditLogger
from .config import DEFAULT_USER_AGENT
from .enums import FetchErrorCode
from .exceptions import ProtocolError, TransportError
from .models import DiscoveryRecord

WELL_KNOWN_PATH = "/.well-known/opendiscovery/"


class ProviderClient:
    """
    Async client for discovery providers.

    Use as an async context manager, or call ``close()`` when done. An
    ``httpx`` transport may be injected to serve responses without network
    access.
    """

    COMPONENT = "ProviderClient"

    def __init__(
        self,
        connect_timeout: float = 5.0,
        read_timeout: float = 5.0,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the provider client.

        Args:
            connect_timeout: Seconds allowed to establish a connection
            read_timeout: Seconds allowed between received bytes
            user_agent: Value of the User-Agent header
            transport: Optional httpx transport (e.g. httpx.MockTransport)
            logger: Optional audit logger for fetch failures
        """
        self._timeout = httpx.Timeout(
            read_timeout,
            connect=connect_timeout,
            read=read_timeout,
        )
        self._user_agent = user_agent
        self._transport = transport
        self._logger = logger
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ProviderClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=False,
                headers={"User-Agent": self._user_agent},
                transport=self._transport,
            )
        return self._client

    @staticmethod
    def build_url(provider_base_url: str, identifier: str) -> str:
        """Document URL for ``identifier`` at a provider."""
        return (
            f"{provider_base_url.rstrip('/')}{WELL_KNOWN_PATH}"
            f"{quote_plus(identifier)}.json"
        )

    async def fetch(self, provider_base_url: str, identifier: str) -> DiscoveryRecord:
        """
        Fetch and validate the discovery document for an identifier.

        Args:
            provider_base_url: Base URL of the provider
            identifier: Normalized identifier being resolved

        Returns:
            The provider's DiscoveryRecord. Documents carrying a non-empty
            ``error`` field are returned as-is.

        Raises:
            TransportError: On connection failure, timeout or non-2xx/4xx status
            ProtocolError: On invalid JSON, a missing ``id`` or an ``id`` that
                is not a prefix of the identifier
        """
        url = self.build_url(provider_base_url, identifier)
        start_time = time.perf_counter()
        client = self._ensure_client()

        try:
            response = await client.get(url)
        except httpx.TimeoutException as e:
            raise self._fail(TransportError(
                code=FetchErrorCode.TIMEOUT.value,
                message=f"Provider timed out: {e}",
                details={"url": url},
            ), url, start_time)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise self._fail(TransportError(
                code=FetchErrorCode.NETWORK_ERROR.value,
                message=f"Connection error: {e}",
                details={"url": url},
            ), url, start_time)

        status = response.status_code
        if not (200 <= status < 300 or 400 <= status < 500):
            raise self._fail(TransportError(
                code=FetchErrorCode.HTTP_STATUS.value,
                message=f"Unexpected HTTP status: {status}",
                details={"url": url, "http_status_code": status},
            ), url, start_time, status)

        try:
            document = response.json()
        except (ValueError, RecursionError) as e:
            raise self._fail(ProtocolError(
                code=FetchErrorCode.INVALID_JSON.value,
                message=f"Invalid JSON: {e}",
                details={"url": url, "http_status_code": status},
            ), url, start_time, status)

        if not isinstance(document, dict):
            raise self._fail(ProtocolError(
                code=FetchErrorCode.INVALID_JSON.value,
                message="Invalid JSON: document is not an object",
                details={"url": url, "http_status_code": status},
            ), url, start_time, status)

        record = DiscoveryRecord(document=document)
        if record.error:
            return record

        if record.id is None:
            raise self._fail(ProtocolError(
                code=FetchErrorCode.MISSING_ID.value,
                message="Missing ID",
                details={"url": url},
            ), url, start_time, status)

        if not identifier.upper().startswith(record.id.upper()):
            raise self._fail(ProtocolError(
                code=FetchErrorCode.UNKNOWN_ID.value,
                message="Unknown ID returned",
                details={"url": url, "returned_id": record.id, "identifier": identifier},
            ), url, start_time, status)

        return record

    def _fail(
        self,
        error: Exception,
        url: str,
        start_time: float,
        status: Optional[int] = None,
    ) -> Exception:
        if self._logger:
            self._logger.log_error(
                self.COMPONENT,
                "Provider fetch failed",
                error=error,
                request_url=url,
                response_status_code=status,
                additional_data={"elapsed_ms": (time.perf_counter() - start_time) * 1000},
            )
        return error

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
