"""Tests for BlobStoreClient URL helpers and read-back."""
import logging
from unittest.mock import AsyncMock

import pytest

from blobdrive.services.blob_client import BlobStoreClient


def client_for(api):
    return BlobStoreClient(api, "http://publisher", "http://aggregator/", "https://explorer/home")


def test_remote_url():
    blob_client = client_for(AsyncMock())
    assert blob_client.remote_url("blob-abc12345") == "http://aggregator/v1/blob-abc12345"
    assert blob_client.remote_url("mock-blob-1-abcdefghi") == "#"


def test_explorer_url():
    blob_client = client_for(AsyncMock())
    assert blob_client.explorer_url("a/b") == "https://explorer/home?q=a%2Fb"
    assert blob_client.explorer_url("mock-blob-1-abcdefghi") == "https://explorer/home"


@pytest.mark.asyncio
async def test_fetch_reads_from_aggregator():
    api = AsyncMock()
    api.get_bytes.return_value = b"\x89PNG...."

    assert await client_for(api).fetch("blob-abc12345") == b"\x89PNG...."
    api.get_bytes.assert_awaited_once_with("http://aggregator/v1/blob-abc12345")


@pytest.mark.asyncio
@pytest.mark.parametrize("content_id", ["mock-blob-1-abcdefghi", ""])
async def test_fetch_synthetic_id_skips_remote(content_id):
    api = AsyncMock()

    assert await client_for(api).fetch(content_id) is None
    api.get_bytes.assert_not_called()


@pytest.mark.asyncio
async def test_fetch_failure_returns_none(failing_api, caplog):
    with caplog.at_level(logging.WARNING):
        assert await client_for(failing_api).fetch("blob-abc12345") is None
    assert "Fetch failed for blob-abc12345" in caplog.text


@pytest.mark.asyncio
async def test_delete_reports_outcome(failing_api):
    api = AsyncMock()
    assert await client_for(api).delete("blob-abc12345") is True
    api.delete.assert_awaited_once_with("http://publisher/v1/store/blob-abc12345")

    assert await client_for(failing_api).delete("blob-abc12345") is False
