"""JSON-RPC fetcher against a local aiohttp server."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from seashell.config import U64_MAX
from seashell.errors import ErrorCode, FetchError
from seashell.fetcher import RpcAccountFetcher, fetch_account, parse_account_info
from seashell.types import Account, encode_address

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _addr(b: int) -> bytes:
    return bytes([b]) * 32


def _account_value(lamports: int = 5_000_000) -> dict[str, Any]:
    return {
        "lamports": lamports,
        "owner": encode_address(_addr(9)),
        "data": ["AQID", "base64"],
        "executable": False,
        "rentEpoch": U64_MAX,
        "space": 3,
    }


def _ok(value: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "result": {"context": {"slot": 1}, "value": value}, "id": 1}


def _serve(handler: Handler, address: bytes, **kwargs: Any) -> Account:
    app = web.Application()
    app.router.add_post("/", handler)

    async def _go() -> Account:
        async with TestServer(app) as server:
            fetcher = RpcAccountFetcher(str(server.make_url("/")), backoff=0, **kwargs)
            return await fetcher.fetch_async(address)

    return asyncio.run(_go())


def test_existing_account_is_decoded() -> None:
    requests: list[dict[str, Any]] = []

    async def handler(request: web.Request) -> web.Response:
        requests.append(await request.json())
        return web.json_response(_ok(_account_value()))

    acct = _serve(handler, _addr(1))
    assert acct == Account(
        address=_addr(1),
        lamports=5_000_000,
        owner=_addr(9),
        data=b"\x01\x02\x03",
        executable=False,
        rent_epoch=U64_MAX,
    )
    assert len(requests) == 1
    assert requests[0]["method"] == "getAccountInfo"
    assert requests[0]["params"][0] == encode_address(_addr(1))
    assert requests[0]["params"][1]["encoding"] == "base64"


def test_null_value_is_an_empty_account() -> None:
    async def handler(request: web.Request) -> web.Response:
        return web.json_response(_ok(None))

    assert _serve(handler, _addr(2)) == Account.empty(_addr(2))


def test_rpc_error_is_not_retried() -> None:
    calls = []

    async def handler(request: web.Request) -> web.Response:
        calls.append(1)
        return web.json_response(
            {"jsonrpc": "2.0", "error": {"code": -32602, "message": "Invalid param"}, "id": 1}
        )

    with pytest.raises(FetchError) as exc:
        _serve(handler, _addr(1), max_retries=3)
    assert exc.value.code == ErrorCode.FETCH_FAILED
    assert "-32602" in exc.value.reason
    assert len(calls) == 1


def test_malformed_body_is_not_retried() -> None:
    calls = []

    async def handler(request: web.Request) -> web.Response:
        calls.append(1)
        return web.Response(text="<html>gateway</html>", content_type="text/html")

    with pytest.raises(FetchError) as exc:
        _serve(handler, _addr(1), max_retries=3)
    assert "malformed" in exc.value.reason
    assert len(calls) == 1


def test_transient_server_errors_are_retried() -> None:
    calls = []

    async def handler(request: web.Request) -> web.Response:
        calls.append(1)
        if len(calls) < 3:
            return web.Response(status=503)
        return web.json_response(_ok(_account_value(42)))

    acct = _serve(handler, _addr(1), max_retries=3)
    assert acct.lamports == 42
    assert len(calls) == 3


def test_persistent_failure_surfaces_after_retries() -> None:
    calls = []

    async def handler(request: web.Request) -> web.Response:
        calls.append(1)
        return web.Response(status=500)

    with pytest.raises(FetchError) as exc:
        _serve(handler, _addr(1), max_retries=2)
    assert "HTTP 500" in exc.value.reason
    assert "3 attempts" in exc.value.reason
    assert len(calls) == 3


def test_client_error_status_is_not_retried() -> None:
    calls = []

    async def handler(request: web.Request) -> web.Response:
        calls.append(1)
        return web.Response(status=404)

    with pytest.raises(FetchError):
        _serve(handler, _addr(1), max_retries=3)
    assert len(calls) == 1


def test_timeout_is_a_fetch_error() -> None:
    async def handler(request: web.Request) -> web.Response:
        await asyncio.sleep(0.5)
        return web.json_response(_ok(None))

    with pytest.raises(FetchError) as exc:
        _serve(handler, _addr(1), timeout=0.05, max_retries=0)
    assert "timed out" in exc.value.reason


def test_unreachable_endpoint_blocking_fetch() -> None:
    with pytest.raises(FetchError) as exc:
        fetch_account(_addr(1), "http://127.0.0.1:9", timeout=2.0, max_retries=1, backoff=0)
    assert exc.value.endpoint == "http://127.0.0.1:9"
    assert exc.value.address == _addr(1)


def test_unexpected_data_encoding_is_malformed() -> None:
    value = _account_value()
    value["data"] = ["Ldp", "base58"]
    with pytest.raises(FetchError):
        parse_account_info(_addr(1), _ok(value), "http://rpc")


def test_missing_result_is_malformed() -> None:
    with pytest.raises(FetchError):
        parse_account_info(_addr(1), {"jsonrpc": "2.0", "id": 1}, "http://rpc")
    with pytest.raises(FetchError):
        parse_account_info(_addr(1), ["not", "an", "object"], "http://rpc")
