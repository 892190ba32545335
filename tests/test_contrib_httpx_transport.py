from __future__ import annotations
import json

import httpx
import pytest
from httpop_core import Client, ClientConfig, HTTPCallError, RetryExhaustedError, RetryPolicy
from httpop_core.contrib.httpx_transport import HTTPXTransport


POLICY = RetryPolicy(
    initial_interval=0.001,
    randomization_factor=0.0,
    max_interval=0.001,
    max_elapsed_time=1.0,
)


class LazyStream(httpx.AsyncByteStream):
    """Body produced only when someone iterates it, like a real socket."""

    def __init__(self, payload: bytes):
        self.payload = payload
        self.iterated = False
        self.closes = 0

    async def __aiter__(self):
        self.iterated = True
        yield self.payload

    async def aclose(self):
        self.closes += 1


def make_handler(log: list, refuse_first: int = 0, streams: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        log.append(request.url.path)
        if len(log) <= refuse_first:
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.path == "/missing":
            return httpx.Response(404, text="nothing here")
        if request.url.path == "/broken":
            return httpx.Response(502, text="bad gateway")
        stream = LazyStream(json.dumps({"path": request.url.path}).encode())
        if streams is not None:
            streams.append(stream)
        return httpx.Response(200, headers={"content-type": "application/json"}, stream=stream)

    return handler


@pytest.mark.asyncio
async def test_success_body_is_left_for_the_caller():
    log: list = []
    streams: list = []
    handler = make_handler(log, streams=streams)
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as hc:
        client = Client(ClientConfig(transport=HTTPXTransport(hc), retry_policy=POLICY))
        response = await client.send(hc.build_request("GET", "http://api.test/items"))
        try:
            assert response.is_closed is False
            assert response.is_stream_consumed is False
            assert streams[0].iterated is False
            await response.aread()
            assert response.json() == {"path": "/items"}
        finally:
            await response.aclose()
    assert log == ["/items"]
    assert streams[0].closes == 1


@pytest.mark.asyncio
async def test_connect_errors_are_retried():
    log: list = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(make_handler(log, refuse_first=2))) as hc:
        client = Client(ClientConfig(transport=HTTPXTransport(hc), retry_policy=POLICY))
        response = await client.send(hc.build_request("GET", "http://api.test/items"))
        await response.aclose()
    assert response.status_code == 200
    assert log == ["/items"] * 3


@pytest.mark.asyncio
async def test_404_is_read_and_not_retried():
    log: list = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(make_handler(log))) as hc:
        client = Client(ClientConfig(transport=HTTPXTransport(hc), retry_policy=POLICY))
        with pytest.raises(RetryExhaustedError) as ei:
            await client.send(hc.build_request("GET", "http://api.test/missing"))
    err = ei.value.last_error
    assert isinstance(err, HTTPCallError)
    assert err.body == "nothing here"
    assert err.response.is_closed
    assert log == ["/missing"]


@pytest.mark.asyncio
async def test_502_is_handed_back():
    log: list = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(make_handler(log))) as hc:
        client = Client(ClientConfig(transport=HTTPXTransport(hc), retry_policy=POLICY))
        response = await client.send(hc.build_request("GET", "http://api.test/broken"))
        body = await response.aread()
        await response.aclose()
    assert response.status_code == 502
    assert body == b"bad gateway"
    assert log == ["/broken"]


@pytest.mark.asyncio
async def test_supplied_async_client_is_not_closed():
    async with httpx.AsyncClient(transport=httpx.MockTransport(make_handler([]))) as hc:
        async with Client(ClientConfig(transport=HTTPXTransport(hc))):
            pass
        assert hc.is_closed is False


@pytest.mark.asyncio
async def test_owned_async_client_is_closed():
    transport = HTTPXTransport(timeout=1.0)
    async with Client(ClientConfig(transport=transport)) as client:
        assert client.transport is transport
    assert transport.client.is_closed is True
