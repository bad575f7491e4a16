from __future__ import annotations

import asyncio
import itertools
import json

import httpx
import pytest


@pytest.fixture()
def ok_transport() -> httpx.MockTransport:
    """Always answers 200 with a small JSON body."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "ok"})

    return httpx.MockTransport(handler)


@pytest.fixture()
def slow_transport() -> httpx.MockTransport:
    """Never answers within a sub-second timeout."""

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    return httpx.MockTransport(handler)


@pytest.fixture()
def conversation_transport() -> httpx.MockTransport:
    """Fake chat API: POST /conversations creates, POST /messages echoes."""
    ids = itertools.count(1)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/conversations":
            return httpx.Response(201, json={"id": f"c{next(ids)}"})
        if request.url.path == "/messages":
            return httpx.Response(200, json=json.loads(request.content))
        return httpx.Response(404)

    return httpx.MockTransport(handler)
