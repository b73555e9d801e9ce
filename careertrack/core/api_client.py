"""
Backend HTTP Client for CareerTrack

Thin async wrapper around httpx for the job store / AI backend.
Every endpoint answers with the same envelope:

    {"success": true, "data": ..., "message": "..."}

The client unwraps it and turns every kind of failure into a
TransportError or UpstreamError.

Usage:
    from careertrack.core.api_client import get_backend_client

    async with get_backend_client() as client:
        jobs = await client.get("/api/jobs")
"""

import logging
from typing import Optional, Dict, Any

import httpx

from careertrack.core.config import get_settings, BackendSettings
from careertrack.core.errors import TransportError, UpstreamError
from careertrack.core.schemas import APIResponse

logger = logging.getLogger(__name__)


class BackendClient:
    """
    Async client for the CareerTrack backend.

    Handles auth headers, timeouts and envelope unwrapping.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        api_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: Backend root URL
            api_token: Bearer token; omitted from requests when not set
            timeout: Default request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"

        self.base_url = base_url
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport
        )
        logger.info(f"Backend client initialized for {base_url}")

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> Any:
        """
        Send a request and return the envelope's `data`.

        Raises:
            TransportError: connection failure or timeout
            UpstreamError: non-2xx status, unreadable body or success=false
        """
        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                timeout=timeout if timeout is not None else self.timeout
            )
        except httpx.TimeoutException as e:
            logger.error(f"{method} {path} timed out: {e}")
            raise TransportError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise TransportError(f"{method} {path} failed: {e}") from e

        body = self._parse_body(response)

        if response.is_error:
            message = (body or {}).get("message") or f"Backend returned {response.status_code}"
            logger.error(f"{method} {path} -> {response.status_code}: {message}")
            raise UpstreamError(message, status_code=response.status_code)

        if body is None:
            # 204 No Content and friends
            return None

        try:
            envelope = APIResponse(**body)
        except (TypeError, ValueError) as e:
            raise UpstreamError(
                f"Unexpected response from {path}", status_code=response.status_code
            ) from e

        if not envelope.success:
            raise UpstreamError(
                envelope.message or "Request failed", status_code=response.status_code
            )

        return envelope.data

    def _parse_body(self, response: httpx.Response) -> Optional[Dict[str, Any]]:
        """Decode a JSON object body, or None when there is none."""
        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError:
            if response.is_error:
                return None
            raise UpstreamError(
                "Backend returned a non-JSON body", status_code=response.status_code
            )
        return body if isinstance(body, dict) else {"success": True, "data": body}

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Optional[Dict] = None, **kwargs) -> Any:
        return await self.request("PUT", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()


# ============================================================================
# Factory Function
# ============================================================================

def get_backend_client(
    backend: Optional[BackendSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> BackendClient:
    """
    Get a backend client configured from settings.

    Args:
        backend: Backend settings override (defaults to global settings)
        transport: Optional httpx transport for tests

    Returns:
        BackendClient instance
    """
    backend = backend or get_settings().backend
    return BackendClient(
        base_url=backend.base_url,
        api_token=backend.api_token,
        timeout=backend.timeout_seconds,
        transport=transport
    )
