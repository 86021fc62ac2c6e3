import asyncio
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from unittest.mock import AsyncMock, MagicMock

from blogapi.client.access import AccessLayer
from blogapi.client.errors import ApiError, ErrorKind
from blogapi.client.transport import AiohttpTransport, TransportResponse, _clean_params, decode_body


def _mock_session(status=200, raw=b'{"success": true}', content_type="application/json", charset="utf-8", headers=None):
    """Session whose request() works as an async context manager."""
    mock_response = MagicMock()
    mock_response.status = status
    mock_response.read = AsyncMock(return_value=raw)
    mock_response.charset = charset
    mock_response.content_type = content_type
    mock_response.headers = headers or {"Content-Type": content_type}

    request_cm = MagicMock()
    request_cm.__aenter__ = AsyncMock(return_value=mock_response)
    request_cm.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.closed = False
    session.request = MagicMock(return_value=request_cm)
    session.close = AsyncMock()
    return session


@pytest.fixture
def transport():
    return AiohttpTransport("http://localhost:3001/", timeout_seconds=5)


def test_decode_body():
    assert decode_body("") is None
    assert decode_body('{"a": 1}', "application/json") == {"a": 1}
    assert decode_body("[1, 2]") == [1, 2]
    assert decode_body("plain text", "text/plain") == "plain text"
    assert decode_body("{broken", "application/json") == "{broken"


def test_clean_params():
    assert _clean_params(None) is None
    assert _clean_params({"tag": None}) is None
    assert _clean_params({"page": 2, "draft": False, "tag": "py", "author": None}) == {
        "page": "2",
        "draft": "false",
        "tag": "py",
    }


def test_transport_response_ok():
    assert TransportResponse(204).ok is True
    assert TransportResponse(302).ok is False
    assert TransportResponse(500).ok is False


def test_base_url_must_be_http():
    with pytest.raises(ValueError):
        AiohttpTransport("ftp://example.com")


def test_url_for(transport):
    assert transport.url_for("/api/v1/blogs") == "http://localhost:3001/api/v1/blogs"
    assert transport.url_for("api/v1/blogs") == "http://localhost:3001/api/v1/blogs"
    assert transport.url_for("https://cdn.example.com/x") == "https://cdn.example.com/x"


@pytest.mark.asyncio
async def test_send_builds_request_and_decodes_response(transport):
    session = _mock_session(status=201, headers={"Retry-After": "3", "Content-Type": "application/json"})
    transport._session = session

    result = await transport.send(
        "POST",
        "/api/v1/auth/login",
        headers={"X-Request-ID": "1-abc"},
        params={"page": 1, "tag": None},
        body={"email": "a@b.c"},
    )

    assert result.status == 201
    assert result.body == {"success": True}
    assert result.headers["retry-after"] == "3"

    args, kwargs = session.request.call_args
    assert args == ("POST", "http://localhost:3001/api/v1/auth/login")
    assert kwargs["params"] == {"page": "1"}
    assert kwargs["json"] == {"email": "a@b.c"}
    assert kwargs["headers"] == {"X-Request-ID": "1-abc"}
    assert kwargs["timeout"].total == 5


@pytest.mark.asyncio
async def test_close_prevents_new_sessions(transport):
    session = _mock_session()
    transport._session = session

    await transport.close()

    session.close.assert_awaited_once()
    with pytest.raises(RuntimeError):
        await transport.send("GET", "/api/v1/blogs")


@pytest.mark.asyncio
async def test_send_replaces_undecodable_bytes(transport):
    transport._session = _mock_session(status=502, raw=b"\xff\xfe", content_type="text/plain")

    result = await transport.send("GET", "/api/v1/blogs")

    assert result.status == 502
    assert result.body == "\ufffd\ufffd"


@pytest.mark.asyncio
async def test_send_unknown_charset_falls_back_to_utf8(transport):
    transport._session = _mock_session(raw='{"name": "café"}'.encode("utf-8"), charset="no-such-charset")

    result = await transport.send("GET", "/api/v1/blogs")

    assert result.body == {"name": "café"}


# Against a local aiohttp server


@asynccontextmanager
async def serve(handler):
    """Run ``handler`` for every path on a local server and yield its base URL."""
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]
    try:
        yield f"http://{host}:{port}"
    finally:
        await runner.cleanup()


@pytest.mark.asyncio
async def test_bad_gateway_with_binary_body_is_retried_then_classified():
    hits = []

    async def handler(request):
        hits.append(request.path)
        return web.Response(status=502, body=b"\xff\xfe bad gateway", content_type="text/plain", charset="utf-8")

    sleep = AsyncMock()
    async with serve(handler) as base_url:
        async with AccessLayer(base_url=base_url, sleep=sleep) as access:
            with pytest.raises(ApiError) as exc_info:
                await access.get("/api/v1/blogs")

    assert exc_info.value.kind == ErrorKind.SERVER_ERROR
    assert exc_info.value.status_code == 502
    assert len(hits) == 4
    assert sleep.await_count == 3


@pytest.mark.asyncio
async def test_real_timeout_is_classified_as_timeout():
    async def handler(request):
        await asyncio.sleep(1)
        return web.json_response({"success": True})

    async with serve(handler) as base_url:
        async with AccessLayer(base_url=base_url, timeout_seconds=0.1, sleep=AsyncMock()) as access:
            with pytest.raises(ApiError) as exc_info:
                await access.get("/api/v1/blogs")

    assert exc_info.value.kind == ErrorKind.TIMEOUT


@pytest.mark.asyncio
async def test_connection_refused_is_classified_as_network_error():
    async def handler(request):
        return web.json_response({"success": True})

    async with serve(handler) as base_url:
        pass

    async with AccessLayer(base_url=base_url, sleep=AsyncMock()) as access:
        with pytest.raises(ApiError) as exc_info:
            await access.get("/api/v1/blogs")

    assert exc_info.value.kind == ErrorKind.NETWORK_ERROR
    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_json_round_trip_against_server():
    async def handler(request):
        return web.json_response(
            {"success": True, "data": {"auth": request.headers.get("Authorization"), "tag": request.query.get("tag")}}
        )

    async with serve(handler) as base_url:
        async with AccessLayer(base_url=base_url) as access:
            access.save_credentials({"accessToken": "abc"})
            result = await access.get("/api/v1/blogs", params={"tag": "python"})

    assert result == {"success": True, "data": {"auth": "Bearer abc", "tag": "python"}}
