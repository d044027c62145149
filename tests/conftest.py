"""Shared fixtures for blobdrive tests."""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from blobdrive.errors import RemoteUnavailableError
from blobdrive.models import CostStep, FileRecord, MediaKind, PriceQuote, PriceTier
from blobdrive.services.metadata_store import MetadataStore

BASE_TIME = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path):
    return MetadataStore(tmp_path / "files.json")


@pytest.fixture
def make_record():
    """Factory for FileRecord with sensible defaults; ``age`` in minutes."""
    def _make(record_id="f1", content_id="blob-abc12345", age=0, **overrides):
        values = dict(
            id=record_id,
            content_id=content_id,
            name=f"{record_id}.png",
            size_bytes=2048,
            media_kind=MediaKind.IMAGE,
            created_at=BASE_TIME - timedelta(minutes=age),
            content_type="image/png",
        )
        values.update(overrides)
        return FileRecord(**values)

    return _make


@pytest.fixture
def quote():
    tiers = (
        PriceTier("basic", "Basic", 0.01, 0.01),
        PriceTier("standard", "Standard", 0.02, 0.02),
        PriceTier("pro", "Pro", 0.05, 0.05),
    )
    return PriceQuote(
        id="sim-test",
        size_bytes=1024,
        size_mb=1,
        epochs=1,
        tiers=tiers,
        recommended_tier_key="standard",
        steps=(CostStep("encode", "", 0.0),),
    )


@pytest.fixture
def failing_api():
    """API client where every remote call is unreachable."""
    api = AsyncMock()
    down = RemoteUnavailableError("connection refused")
    api.post_json.side_effect = down
    api.post_multipart.side_effect = down
    api.put_bytes.side_effect = down
    api.get_json.side_effect = down
    api.get_bytes.side_effect = down
    api.delete.side_effect = down
    return api
