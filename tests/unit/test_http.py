from __future__ import annotations

import asyncio

import aiohttp
import pytest

from waterpoints.common.http import HttpClient, HttpRequestError


class FakeResponse:
    def __init__(self, status: int, payload=None, raises_json: bool = False):
        self.status = status
        self._payload = payload
        self._raises_json = raises_json

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_exc):
        return False

    async def json(self, content_type=None):
        if self._raises_json:
            raise ValueError("bad json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls: list[dict] = []

    def get(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


def test_http_get_json_success():
    session = FakeSession(FakeResponse(200, {"ok": True}))
    client = HttpClient(session=session)

    payload = asyncio.run(client.get_json("https://example.com", params={"a": "1"}, headers={"X": "y"}))

    assert payload == {"ok": True}
    assert session.calls == [{"url": "https://example.com", "params": {"a": "1"}, "headers": {"X": "y"}}]


def test_http_error_status_raises():
    client = HttpClient(session=FakeSession(FakeResponse(503, {"x": 1})))

    with pytest.raises(HttpRequestError, match="503"):
        asyncio.run(client.get_json("https://example.com"))


def test_http_invalid_json_raises():
    client = HttpClient(session=FakeSession(FakeResponse(200, raises_json=True)))

    with pytest.raises(HttpRequestError, match="Invalid JSON"):
        asyncio.run(client.get_json("https://example.com"))


def test_http_transport_error_is_wrapped():
    client = HttpClient(session=FakeSession(error=aiohttp.ClientConnectionError("refused")))

    with pytest.raises(HttpRequestError) as excinfo:
        asyncio.run(client.get_json("https://example.com"))

    assert excinfo.value.error_code == "HTTP_ERROR"


def test_http_close_leaves_injected_session_open():
    session = FakeSession(FakeResponse(200, []))
    client = HttpClient(session=session)

    asyncio.run(client.close())

    assert client.session is session
