import json
from collections.abc import Callable

import httpx
import pytest
from ethereum_rpc import RPCError, RPCErrorCode

from abicall import HTTPError, HTTPProvider, InvalidResponse, ProviderError, Unreachable

URL = "http://node.example:8545"

Handler = Callable[[httpx.Request], httpx.Response]


def provider(handler: Handler) -> HTTPProvider:
    return HTTPProvider(URL, transport=httpx.MockTransport(handler))


async def test_rpc() -> None:
    requests: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == URL
        body = json.loads(request.content)
        requests.append(body)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x1"})

    http_provider = provider(handler)
    assert http_provider.url == URL

    async with http_provider.session() as session:
        assert await session.rpc("eth_chainId") == "0x1"
        assert await session.rpc("eth_getBalance", "0x" + "00" * 20, "latest") == "0x1"

    assert requests == [
        {"jsonrpc": "2.0", "method": "eth_chainId", "params": [], "id": 0},
        {
            "jsonrpc": "2.0",
            "method": "eth_getBalance",
            "params": ["0x" + "00" * 20, "latest"],
            "id": 1,
        },
    ]


async def test_rpc_error() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        error = {"code": 3, "message": "execution reverted", "data": "0x1234"}
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 0, "error": error})

    async with provider(handler).session() as session:
        with pytest.raises(ProviderError) as exc:
            await session.rpc("eth_call")

    assert isinstance(exc.value.error, RPCError)
    assert exc.value.error.parsed_code == RPCErrorCode.EXECUTION_ERROR
    assert exc.value.error.message == "execution reverted"
    assert exc.value.error.data == b"\x12\x34"


async def test_malformed_error() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 0, "error": "oops"})

    async with provider(handler).session() as session:
        with pytest.raises(ProviderError, match="Failed to parse an error response") as exc:
            await session.rpc("eth_call")
    assert isinstance(exc.value.error, InvalidResponse)


async def test_invalid_responses() -> None:
    responses = [
        httpx.Response(502, text="bad gateway"),
        httpx.Response(200, json=[1, 2]),
        httpx.Response(200, json={"jsonrpc": "2.0", "id": 0}),
    ]
    messages = [
        "Expected a JSON response, got HTTP status 502: bad gateway",
        r"RPC response must be a dictionary, got: \[1, 2\]",
        "`result` is not present in the response",
    ]

    def handler(_request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    async with provider(handler).session() as session:
        for message in messages:
            with pytest.raises(ProviderError, match=message) as exc:
                await session.rpc("eth_blockNumber")
            assert isinstance(exc.value.error, InvalidResponse)


async def test_http_error() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"status": "maintenance"})

    async with provider(handler).session() as session:
        with pytest.raises(ProviderError) as exc:
            await session.rpc("eth_blockNumber")

    assert isinstance(exc.value.error, HTTPError)
    assert exc.value.error.status == 503
    assert "maintenance" in str(exc.value.error)


async def test_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with provider(handler).session() as session:
        with pytest.raises(ProviderError, match="Provider error: connection refused") as exc:
            await session.rpc("eth_blockNumber")

    assert isinstance(exc.value.error, Unreachable)
