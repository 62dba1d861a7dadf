"""Tests for the aiohttp JSON transport."""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from pydantic import BaseModel

from adscaler_bridge.core.aiohttp_request_manager import (
    AiohttpRequestManager,
    validate_response,
)
from adscaler_bridge.core.errors import NetworkError, ProviderError, RequestError


def _response(status=200, text="", reason="OK"):
    response = AsyncMock()
    response.status = status
    response.reason = reason
    response.text = AsyncMock(return_value=text)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


def _manager(response=None, error=None):
    manager = AiohttpRequestManager(headers={"Authorization": "Key abc"}, timeout=5)
    manager._session = MagicMock()
    manager._session.closed = False
    if error is not None:
        manager._session.request = MagicMock(side_effect=error)
    else:
        manager._session.request = MagicMock(return_value=response)
    return manager


@pytest.mark.asyncio
async def test_get_returns_parsed_json_with_auth_headers():
    manager = _manager(_response(text='{"request_id": "abc"}'))

    data = await manager.get("https://example.test/status", params={"logs": "1"})

    assert data == {"request_id": "abc"}
    method, url = manager._session.request.call_args.args
    kwargs = manager._session.request.call_args.kwargs
    assert (method, url) == ("GET", "https://example.test/status")
    assert kwargs["params"] == {"logs": "1"}
    assert kwargs["headers"]["Authorization"] == "Key abc"
    assert kwargs["headers"]["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_post_sends_json_body():
    manager = _manager(_response(text="[]"))

    data = await manager.post("https://example.test/images", {"template": "t1"})

    assert data == []
    assert manager._session.request.call_args.kwargs["json"] == {"template": "t1"}


@pytest.mark.asyncio
async def test_patch_sends_body_and_filters():
    manager = _manager(_response(text='[{"id": "ARCH-01"}]'))

    data = await manager.patch(
        "https://example.test/rest/v1/agent_status", {"status": "idle"}, params={"id": "eq.ARCH-01"}
    )

    assert data == [{"id": "ARCH-01"}]
    assert manager._session.request.call_args.args[0] == "PATCH"
    kwargs = manager._session.request.call_args.kwargs
    assert kwargs["json"] == {"status": "idle"}
    assert kwargs["params"] == {"id": "eq.ARCH-01"}


@pytest.mark.asyncio
async def test_empty_body_returns_empty_dict():
    manager = _manager(_response(status=202, text=""))
    assert await manager.put("https://example.test/cancel") == {}


@pytest.mark.asyncio
async def test_http_error_uses_provider_message():
    manager = _manager(_response(status=401, reason="Unauthorized", text='{"detail": "Invalid key"}'))

    with pytest.raises(ProviderError) as exc_info:
        await manager.get("https://example.test/images/1")

    error = exc_info.value
    assert error.status == 401
    assert "Invalid key" in str(error)
    assert error.url == "https://example.test/images/1"
    assert error.data == {"detail": "Invalid key"}


@pytest.mark.asyncio
async def test_http_error_with_plain_text_body():
    manager = _manager(_response(status=500, reason="Internal Server Error", text="upstream down"))

    with pytest.raises(ProviderError) as exc_info:
        await manager.get("https://example.test/x")

    assert "upstream down" in str(exc_info.value)
    assert exc_info.value.data is None


@pytest.mark.asyncio
async def test_invalid_json_is_provider_error():
    manager = _manager(_response(text="<html>not json</html>"))

    with pytest.raises(ProviderError, match="Invalid JSON"):
        await manager.get("https://example.test/x")


@pytest.mark.asyncio
async def test_client_error_becomes_network_error():
    manager = _manager(error=aiohttp.ClientConnectionError("connection reset"))

    with pytest.raises(NetworkError) as exc_info:
        await manager.get("https://example.test/x")

    assert isinstance(exc_info.value, RequestError)
    assert "connection reset" in str(exc_info.value)


@pytest.mark.asyncio
async def test_timeout_becomes_network_error():
    manager = _manager(error=asyncio.TimeoutError())

    with pytest.raises(NetworkError, match="timed out"):
        await manager.post("https://example.test/x", {})


@pytest.mark.asyncio
async def test_close_releases_session():
    manager = _manager(_response())
    session = manager._session
    session.close = AsyncMock()

    await manager.close()

    session.close.assert_awaited_once()
    assert manager._session is None


class _Sample(BaseModel):
    uid: str


def test_validate_response_rejects_unexpected_shape():
    with pytest.raises(ProviderError, match="Unexpected response from Bannerbear"):
        validate_response(_Sample, {"id": 1}, "https://example.test", "Bannerbear")


def test_validate_response_returns_model():
    assert validate_response(_Sample, {"uid": "u1"}, "https://example.test", "Bannerbear").uid == "u1"
