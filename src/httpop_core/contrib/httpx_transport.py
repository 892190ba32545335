from __future__ import annotations
from typing import Optional

import httpx


class HTTPXTransport:
    """
    Transport over an httpx.AsyncClient.

    Responses are sent with stream=True so the body is still unread when the
    client hands it back; whoever ends up owning the response closes it.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, *, timeout: Optional[float] = None):
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def send(self, request: httpx.Request) -> httpx.Response:
        return await self._client.send(request, stream=True)

    async def aclose(self) -> None:
        # A caller-supplied AsyncClient stays open; its owner closes it.
        if self._owns_client:
            await self._client.aclose()
