from __future__ import annotations
import httpx
import pytest
from httpop_core import Client, ClientConfig, HTTPCallError, RetryExhaustedError, RetryPolicy


class BodyStream(httpx.AsyncByteStream):
    def __init__(self, *chunks: bytes):
        self.chunks = chunks
        self.iterated = False
        self.closes = 0

    async def __aiter__(self):
        self.iterated = True
        for chunk in self.chunks:
            yield chunk

    async def aclose(self):
        self.closes += 1


class FakeTransport:
    def __init__(self, response: httpx.Response):
        self.response = response
        self.calls = 0

    async def send(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        return self.response


POLICY = RetryPolicy(
    initial_interval=0.001,
    randomization_factor=0.0,
    max_interval=0.001,
    max_elapsed_time=1.0,
)

REQUEST = httpx.Request("GET", "http://api.test/things/1")


@pytest.mark.asyncio
@pytest.mark.parametrize("code", [400, 401, 404, 418, 429, 499])
async def test_4xx_is_permanent_without_retry_policy(code):
    transport = FakeTransport(httpx.Response(code, stream=BodyStream(b"bad ", b"request")))
    client = Client(ClientConfig(transport=transport))

    with pytest.raises(HTTPCallError) as ei:
        await client.send(REQUEST)

    assert ei.value.code == code
    assert ei.value.body == "bad request"
    assert transport.calls == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("code", [400, 403, 404, 429, 499])
async def test_4xx_is_permanent_with_retry_budget_left(code):
    transport = FakeTransport(httpx.Response(code, stream=BodyStream(b"nope")))
    client = Client(ClientConfig(transport=transport, retry_policy=POLICY))

    with pytest.raises(RetryExhaustedError) as ei:
        await client.send(REQUEST)

    err = ei.value.last_error
    assert isinstance(err, HTTPCallError)
    assert ei.value.__cause__ is err
    assert err.code == code
    assert str(ei.value) == f"exhausted all retries: failed HTTP call: {code}: nope"
    assert transport.calls == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("code", [100, 200, 201, 204, 302, 304, 399, 500, 502, 503, 504, 599])
@pytest.mark.parametrize("policy", [None, POLICY], ids=["no-retry", "retry"])
async def test_other_codes_are_returned_untouched(code, policy):
    stream = BodyStream(b"payload")
    response = httpx.Response(code, stream=stream)
    transport = FakeTransport(response)
    client = Client(ClientConfig(transport=transport, retry_policy=policy))

    out = await client.send(REQUEST)

    assert out is response
    assert transport.calls == 1
    assert out.is_closed is False
    assert out.is_stream_consumed is False
    assert stream.iterated is False
    assert stream.closes == 0

    # the caller owns the body now
    assert await out.aread() == b"payload"
    assert stream.closes == 1
