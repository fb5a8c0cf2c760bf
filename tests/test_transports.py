from __future__ import annotations

import asyncio
import datetime as dt

import httpx
import pytest

import universal_api_client.transports as transports
from universal_api_client.client import ApiClient, AsyncApiClient
from universal_api_client.config import RequestConfig
from universal_api_client.exceptions import ApiHTTPError, ApiNetworkError, ApiValidationError
from universal_api_client.transports import (
    AsyncHttpxTransport,
    HttpxTransport,
    _coerce_query_params,
    _decode_text_body,
    _encode_body,
    create_async_transport,
    create_transport,
)


def test_coerce_query_params() -> None:
    params = {
        "flag": False,
        "since": dt.date(2024, 5, 1),
        "ids": [1, None, 3],
        "skip": None,
        "q": "x",
    }
    assert _coerce_query_params(params) == [
        ("flag", "false"),
        ("since", "2024-05-01"),
        ("ids", 1),
        ("ids", ""),
        ("ids", 3),
        ("q", "x"),
    ]
    assert _coerce_query_params({"skip": None}) is None
    assert _coerce_query_params(None) is None


def test_encode_body_by_payload_type() -> None:
    assert _encode_body(RequestConfig(method="GET", data={"a": 1})) == ({}, {})
    assert _encode_body(RequestConfig(method="POST")) == ({}, {})
    assert _encode_body(RequestConfig(method="POST", data=b"\x01")) == ({}, {"content": b"\x01"})
    assert _encode_body(RequestConfig(method="POST", data='{"a":1}')) == (
        {"Content-Type": "application/json"},
        {"content": b'{"a":1}'},
    )
    assert _encode_body(
        RequestConfig(method="PUT", data="a=1", headers={"content-type": "application/x-www-form-urlencoded"})
    ) == ({"content-type": "application/x-www-form-urlencoded"}, {"content": b"a=1"})
    assert _encode_body(RequestConfig(method="PATCH", data=[1, 2])) == ({}, {"json": [1, 2]})


def test_decode_text_body() -> None:
    assert _decode_text_body(b"", "", "json") is None
    assert _decode_text_body(b'{"a":1}', '{"a":1}', "json") == {"a": 1}
    assert _decode_text_body(b"oops", "oops", "json") == "oops"
    assert _decode_text_body(b'{"a":1}', '{"a":1}', "text") == '{"a":1}'
    assert _decode_text_body(b"", "", "bytes") == b""


def test_transport_raises_status_error_with_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"message": "conflict"})

    transport = HttpxTransport(httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(transports.ResponseStatusError) as exc_info:
        transport.execute(RequestConfig(method="GET", url="https://api.test/x", response_type="json"))

    assert exc_info.value.response.status == 409
    assert exc_info.value.response.data == {"message": "conflict"}


def test_head_requests_have_no_data() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"X-Total": "9"})

    client = ApiClient(
        base_url="https://api.test",
        httpx_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    response = client.head("/x")
    assert response.data is None
    assert response.header("x-total") == "9"


@pytest.mark.parametrize("with_credentials", [False, True])
def test_cookies_kept_only_with_credentials(with_credentials: bool) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={}, headers={"Set-Cookie": "session=abc; Path=/"})

    http = httpx.Client(transport=httpx.MockTransport(handler))
    client = ApiClient(base_url="https://example.org", with_credentials=with_credentials, httpx_client=http)
    client.get("/login")

    assert ("session" in http.cookies) is with_credentials


def test_injected_httpx_client_is_not_closed() -> None:
    http = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    with ApiClient(httpx_client=http):
        pass
    assert not http.is_closed


def test_transport_factories() -> None:
    assert isinstance(create_transport("httpx"), HttpxTransport)
    assert isinstance(create_async_transport("httpx"), AsyncHttpxTransport)
    with pytest.raises(ApiValidationError):
        create_async_transport("requests")


def test_aiohttp_adapter_requires_optional_dependency(monkeypatch) -> None:
    monkeypatch.setattr(transports, "aiohttp", None)
    with pytest.raises(ApiValidationError, match=r"universal-api-client\[aiohttp\]"):
        AsyncApiClient(adapter="aiohttp")


def test_aiohttp_transport_against_live_server() -> None:
    pytest.importorskip("aiohttp")
    from aiohttp import web
    from aiohttp.test_utils import TestServer

    async def echo(request: web.Request) -> web.Response:
        return web.json_response(
            {
                "method": request.method,
                "query": dict(request.query),
                "body": await request.text(),
                "team": request.headers.get("X-Team"),
            }
        )

    async def missing(request: web.Request) -> web.Response:
        return web.json_response({"message": "nope"}, status=404)

    async def scenario() -> None:
        app = web.Application()
        app.router.add_route("*", "/echo", echo)
        app.router.add_get("/missing", missing)
        server = TestServer(app)
        await server.start_server()
        try:
            async with AsyncApiClient(
                base_url=f"http://{server.host}:{server.port}",
                adapter="aiohttp",
                retries=0,
                headers={"X-Team": "core"},
            ) as client:
                response = await client.post("/echo", {"a": 1}, params={"flag": True, "n": 2})
                assert response.status == 200
                assert response.data == {
                    "method": "POST",
                    "query": {"flag": "true", "n": "2"},
                    "body": '{"a": 1}',
                    "team": "core",
                }
                assert response.header("content-type").startswith("application/json")

                with pytest.raises(ApiHTTPError) as exc_info:
                    await client.get("/missing")
                assert exc_info.value.status == 404
                assert exc_info.value.message == "nope"
        finally:
            await server.close()

        async with AsyncApiClient(base_url="http://127.0.0.1:9", adapter="aiohttp", retries=0) as client:
            with pytest.raises(ApiNetworkError):
                await client.get("/unreachable")

    asyncio.run(scenario())


def test_sync_timeout_applies_to_each_phase() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.extensions["timeout"])
        return httpx.Response(200, json={})

    client = ApiClient(
        base_url="https://api.test",
        timeout=2.5,
        httpx_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    client.get("/x")
    assert seen == {"connect": 2.5, "read": 2.5, "write": 2.5, "pool": 2.5}
