"""Tests for the HTTP adapter."""
import json

import httpx
import pytest

from blobdrive.errors import RemoteUnavailableError
from blobdrive.services.api_client import HTTPAPIClient


def client_for(handler, **kwargs):
    return HTTPAPIClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), **kwargs)


@pytest.mark.asyncio
async def test_post_json_returns_decoded_body():
    def handler(request):
        assert request.method == "POST"
        assert json.loads(request.read()) == {"size": 10, "epochs": 1}
        return httpx.Response(200, json={"price": 0.1})

    api = client_for(handler)
    assert await api.post_json("http://relay/v1/quote", json={"size": 10, "epochs": 1}) == {"price": 0.1}


@pytest.mark.asyncio
async def test_text_body_is_returned_as_text():
    api = client_for(lambda request: httpx.Response(200, text="stored: abc"))
    assert await api.get_json("http://relay/status") == "stored: abc"


@pytest.mark.asyncio
async def test_empty_body_is_none():
    api = client_for(lambda request: httpx.Response(204))
    assert await api.get_json("http://relay/status") is None


@pytest.mark.asyncio
async def test_client_error_raises():
    api = client_for(lambda request: httpx.Response(404, json={"error": "missing"}))

    with pytest.raises(RemoteUnavailableError, match="HTTP 404"):
        await api.get_json("http://relay/missing")


@pytest.mark.asyncio
async def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    api = client_for(handler)

    with pytest.raises(RemoteUnavailableError, match="refused"):
        await api.delete("http://publisher/v1/store/abc")


@pytest.mark.asyncio
async def test_server_error_is_retried():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(500)
        return httpx.Response(200, json={"ok": True})

    api = client_for(handler, max_retries=2)

    assert await api.get_json("http://rates") == {"ok": True}
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_server_error_without_retries_raises():
    api = client_for(lambda request: httpx.Response(503, text="busy"))

    with pytest.raises(RemoteUnavailableError, match="HTTP 503"):
        await api.get_json("http://rates")


@pytest.mark.asyncio
async def test_put_bytes_sets_content_type():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"newlyCreated": {"blobObject": {"blobId": "abc"}}})

    api = client_for(handler)
    await api.put_bytes("http://publisher/v1/store?epochs=1", b"payload", "image/png")

    assert seen[0].method == "PUT"
    assert seen[0].headers["content-type"] == "image/png"
    assert seen[0].content == b"payload"


@pytest.mark.asyncio
async def test_post_multipart_sends_file_and_fields():
    seen = []

    def handler(request):
        seen.append(request.read())
        return httpx.Response(200, json={"blobId": "abc"})

    api = client_for(handler)
    body = await api.post_multipart(
        "http://relay/upload",
        files={"file": ("a.txt", b"hello", "text/plain")},
        data={"epochs": "2"},
    )

    assert body == {"blobId": "abc"}
    assert b'name="file"; filename="a.txt"' in seen[0]
    assert b'name="epochs"' in seen[0]
    assert b"hello" in seen[0]


@pytest.mark.asyncio
async def test_context_manager_creates_and_closes_client():
    async with HTTPAPIClient() as api:
        assert api._client is not None
    assert api._client is None


@pytest.mark.asyncio
async def test_get_bytes_returns_raw_body():
    payload = b"\x00\x01{not json"

    def handler(request):
        assert request.method == "GET"
        assert str(request.url) == "http://aggregator/v1/blob-abc12345"
        return httpx.Response(200, content=payload)

    api = client_for(handler)
    assert await api.get_bytes("http://aggregator/v1/blob-abc12345") == payload


@pytest.mark.asyncio
async def test_get_bytes_missing_blob_raises():
    api = client_for(lambda request: httpx.Response(404, text="blob not found"))

    with pytest.raises(RemoteUnavailableError, match="HTTP 404"):
        await api.get_bytes("http://aggregator/v1/blob-abc12345")
