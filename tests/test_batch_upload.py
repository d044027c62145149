"""Tests for the batch upload orchestrator."""
import re
from unittest.mock import AsyncMock, MagicMock

import pytest

from blobdrive.models import ConfirmationDecision, ItemStatus, MediaKind, UploadItem
from blobdrive.orchestrator.batch_upload import UploadOrchestrator, batch_progress
from blobdrive.orchestrator.confirmation import AutoApproveSurface, ConfirmationBridge
from blobdrive.orchestrator.library import FileLibrary
from blobdrive.services.blob_client import BlobStoreClient
from blobdrive.services.pricing import PricingEstimator
from blobdrive.services.upload_chain import UploadFallbackChain
from blobdrive.utils.events import BATCH_COMPLETE, ITEM_STATUS, PROGRESS

MB = 1024 * 1024


class ScriptedSurface:
    """Answers confirmations from a fixed list of decisions."""

    def __init__(self, *decisions):
        self._decisions = list(decisions)
        self.quotes = []

    def __call__(self, quote):
        self.quotes.append(quote)
        return self._decisions.pop(0)


def build(api, store, surface=None, estimator=None, library=None):
    ids = iter(f"rec-{n}" for n in range(1, 100))
    return UploadOrchestrator(
        estimator or PricingEstimator(api, ["http://relay/v1/quote"]),
        ConfirmationBridge(surface or AutoApproveSurface()),
        UploadFallbackChain(api, ["http://relay/upload"], "http://publisher"),
        store,
        BlobStoreClient(api, "http://publisher", "http://aggregator", "https://explorer/home"),
        library=library,
        id_factory=lambda: next(ids),
    )


def write_file(tmp_path, name, size):
    path = tmp_path / name
    path.write_bytes(b"\0" * size)
    return UploadItem.from_path(path)


@pytest.mark.parametrize("completed, total, expected", [
    (1, 3, 33),
    (2, 3, 67),
    (3, 3, 100),
    (1, 8, 13),
    (0, 0, 100),
])
def test_batch_progress(completed, total, expected):
    assert batch_progress(completed, total) == expected


@pytest.mark.asyncio
async def test_offline_upload_gets_synthetic_id(failing_api, store, tmp_path):
    item = write_file(tmp_path, "photo.png", 3 * MB)
    orchestrator = build(failing_api, store)

    result = await orchestrator.run([item])

    assert result.progress == 100
    assert item.status is ItemStatus.UPLOADED
    record = item.record
    assert re.match(r"^mock-blob-\d+-[0-9a-z]{9}$", record.content_id)
    assert record.media_kind is MediaKind.IMAGE
    assert record.size_bytes == 3 * MB
    assert record.tier_key == "standard"
    assert record.remote_url == "#"
    assert record.explorer_url == "https://explorer/home"
    assert record.preview_url.startswith("file://")
    assert [r.id for r in await store.list_all()] == ["rec-1"]


@pytest.mark.asyncio
async def test_cancelled_item_is_not_persisted(failing_api, store, tmp_path):
    items = [write_file(tmp_path, f"f{n}.png", 1024) for n in range(3)]
    surface = ScriptedSurface(
        ConfirmationDecision.approve("basic"),
        ConfirmationDecision.cancel(),
        ConfirmationDecision.approve("pro"),
    )
    orchestrator = build(failing_api, store, surface=surface)

    result = await orchestrator.run(items)

    assert [i.status for i in items] == [
        ItemStatus.UPLOADED, ItemStatus.CANCELLED, ItemStatus.UPLOADED,
    ]
    assert result.uploaded == 2
    assert result.cancelled == 1
    assert [r.tier_key for r in result.records] == ["basic", "pro"]
    stored = await store.list_all()
    assert sorted(r.name for r in stored) == ["f0.png", "f2.png"]
    assert len(surface.quotes) == 3


@pytest.mark.asyncio
async def test_estimate_failure_skips_confirmation(failing_api, store, tmp_path):
    estimator = AsyncMock()
    estimator.estimate.side_effect = RuntimeError("pricing down")
    surface = MagicMock()
    item = write_file(tmp_path, "doc.pdf", 10)
    orchestrator = build(failing_api, store, surface=surface, estimator=estimator)

    await orchestrator.run([item])

    surface.assert_not_called()
    assert item.status is ItemStatus.UPLOADED
    assert item.record.tier_key is None
    assert item.record.media_kind is MediaKind.DOCUMENT


@pytest.mark.asyncio
async def test_item_failure_does_not_stop_batch(failing_api, store, tmp_path):
    missing = UploadItem(name="gone.png", path=tmp_path / "gone.png")
    ok = write_file(tmp_path, "ok.png", 10)
    orchestrator = build(failing_api, store)

    result = await orchestrator.run([missing, ok])

    assert missing.status is ItemStatus.ERROR
    assert missing.error
    assert ok.status is ItemStatus.UPLOADED
    assert result.failed == 1
    assert result.progress == 100


@pytest.mark.asyncio
async def test_progress_and_status_events(failing_api, store, tmp_path):
    items = [UploadItem(name=f"b{n}.bin", data=b"x" * 10) for n in range(3)]
    orchestrator = build(failing_api, store)
    progress, statuses, completed = [], [], []
    orchestrator.events.on(PROGRESS, progress.append)
    orchestrator.events.on(ITEM_STATUS, lambda p: statuses.append((p.index, p.status)))
    orchestrator.events.on(BATCH_COMPLETE, completed.append)

    result = await orchestrator.run(items)

    assert progress == [33, 67, 100]
    assert [s for i, s in statuses if i == 0] == [
        "estimating", "awaiting_confirmation", "uploading", "uploaded",
    ]
    assert completed == [result]


@pytest.mark.asyncio
async def test_empty_batch(failing_api, store):
    orchestrator = build(failing_api, store)
    completed = []
    orchestrator.events.on(BATCH_COMPLETE, completed.append)

    result = await orchestrator.run([])

    assert result.progress == 100
    assert result.items == []
    assert len(completed) == 1


@pytest.mark.asyncio
async def test_uploaded_record_added_to_library(failing_api, store):
    library = FileLibrary(store)
    orchestrator = build(failing_api, store, library=library)

    await orchestrator.run([UploadItem(name="clip.mp4", data=b"v" * 10, content_type="video/mp4")])

    assert [r.name for r in library.active()] == ["clip.mp4"]
    assert library.active()[0].media_kind is MediaKind.VIDEO


@pytest.mark.asyncio
async def test_chain_receives_tier_and_caller(store):
    api = AsyncMock()
    api.post_json.return_value = {"tiers": [{"name": "fast", "price": 0.5}]}
    api.post_multipart.return_value = {"blobId": "relay-blob-1"}
    orchestrator = build(api, store)

    result = await orchestrator.run(
        [UploadItem(name="a.txt", data=b"abc", content_type="text/plain")],
        authorized_caller="0xabc",
        epochs=4,
    )

    record = result.records[0]
    assert record.content_id == "relay-blob-1"
    assert record.remote_url == "http://aggregator/v1/relay-blob-1"
    assert record.explorer_url == "https://explorer/home?q=relay-blob-1"
    assert record.epochs == 4
    assert record.tier_key == "fast"
    form = api.post_multipart.call_args.kwargs["data"]
    assert form["plan"] == "fast"
    assert form["signerAddress"] == "0xabc"
    assert form["epochs"] == "4"
