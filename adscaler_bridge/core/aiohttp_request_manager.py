"""
Aiohttp JSON transport shared by the provider clients.
One outbound call per method; no retries at this layer.
"""

import asyncio
import json
import ssl
from typing import TypeVar

import aiohttp
import certifi
from pydantic import BaseModel, ValidationError

from .errors import NetworkError, ProviderError

T = TypeVar("T", bound=BaseModel)


class AiohttpRequestManager:
    """
    Thin aiohttp wrapper that turns provider responses into parsed JSON
    or raises ProviderError / NetworkError.
    """

    def __init__(self, headers: dict | None = None, timeout: float | None = None):
        self._session: aiohttp.ClientSession | None = None
        self._headers = dict(headers or {})
        self._timeout = timeout

    async def ensure_session(self):
        """Lazy session creation with proper SSL context."""
        if self._session is None or self._session.closed:
            # Create SSL context using certifi's CA bundle
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context)
            self._session = aiohttp.ClientSession(connector=connector)

    def _get_headers(self) -> dict:
        """Build request headers, provider auth included."""
        headers = {"Content-Type": "application/json"}
        headers.update(self._headers)
        return headers

    def _client_timeout(self, timeout: float | None) -> aiohttp.ClientTimeout | None:
        total = timeout or self._timeout
        return aiohttp.ClientTimeout(total=total) if total else None

    async def get(
        self,
        url: str,
        params: dict | None = None,
        timeout: float | None = None,
    ):
        """
        GET request, returns parsed JSON.

        Args:
            url: Request URL
            params: Optional query parameters
            timeout: Optional timeout in seconds (overrides default)
        """
        return await self._request("GET", url, params=params, timeout=timeout)

    async def post(
        self,
        url: str,
        data: dict | None = None,
        timeout: float | None = None,
    ):
        """
        POST JSON request, returns parsed JSON.

        Args:
            url: Request URL
            data: JSON data to send
            timeout: Optional timeout in seconds (overrides default)
        """
        return await self._request("POST", url, data=data, timeout=timeout)

    async def put(
        self,
        url: str,
        data: dict | None = None,
        timeout: float | None = None,
    ):
        """PUT JSON request, returns parsed JSON (empty dict for empty bodies)."""
        return await self._request("PUT", url, data=data, timeout=timeout)

    async def patch(
        self,
        url: str,
        data: dict | None = None,
        params: dict | None = None,
        timeout: float | None = None,
    ):
        """PATCH JSON request with optional query parameters, returns parsed JSON."""
        return await self._request("PATCH", url, params=params, data=data, timeout=timeout)

    async def _request(
        self,
        method: str,
        url: str,
        params: dict | None = None,
        data: dict | None = None,
        timeout: float | None = None,
    ):
        await self.ensure_session()
        assert self._session is not None

        try:
            async with self._session.request(
                method,
                url,
                params=params,
                json=data,
                headers=self._get_headers(),
                timeout=self._client_timeout(timeout),
            ) as response:
                return await self._handle_response(response, url)
        except aiohttp.ClientError as e:
            raise NetworkError(str(e) or type(e).__name__, url) from e
        except asyncio.TimeoutError as e:
            raise NetworkError(
                "Connection timed out, the server took too long to respond", url
            ) from e

    async def _handle_response(self, response: aiohttp.ClientResponse, url: str):
        """Handle response, parsing JSON and mapping HTTP errors."""
        text = await response.text()

        if response.status >= 400:
            data = None
            message = text or response.reason or "Request failed"
            try:
                parsed = json.loads(text) if text else None
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, dict):
                data = parsed
                for key in ("message", "error", "detail", "error_message"):
                    if parsed.get(key):
                        message = parsed[key]
                        break
            if not isinstance(message, str):
                message = json.dumps(message)
            raise ProviderError(
                f"{message} ({response.status} {response.reason})",
                url,
                status=response.status,
                data=data,
            )

        if not text.strip():
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            raise ProviderError(
                f"Invalid JSON response ({response.status})",
                url,
                status=response.status,
            )

    async def close(self):
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


def validate_response(model: type[T], data, url: str, provider: str) -> T:
    """Narrow loosely-typed provider JSON into `model` or raise ProviderError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ProviderError(
            f"Unexpected response from {provider}: {e.error_count()} invalid field(s)",
            url,
            data=data if isinstance(data, dict) else None,
        ) from e
