"""
Content-id extraction from heterogeneous upload responses.

Each extractor has a narrow precondition and returns the id or None. They are
tried in tuple order; the first hit wins.
"""
import json
import re
from typing import Any, Callable, Optional, Sequence, Tuple

Extractor = Callable[[Any], Optional[str]]

TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_-]{8,}")


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _path(body: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(body, dict):
            return None
        body = body.get(key)
    return body


def blob_id(body: Any) -> Optional[str]:
    return _non_empty_str(_path(body, "blobId"))


def newly_created(body: Any) -> Optional[str]:
    return _non_empty_str(_path(body, "newlyCreated", "blobObject", "blobId"))


def already_certified(body: Any) -> Optional[str]:
    return _non_empty_str(_path(body, "alreadyCertified", "blobId"))


def plain_id(body: Any) -> Optional[str]:
    return _non_empty_str(_path(body, "id"))


def cid(body: Any) -> Optional[str]:
    return _non_empty_str(_path(body, "cid"))


def token_scan(body: Any) -> Optional[str]:
    """Last resort: first id-looking run in the serialised body."""
    if body is None:
        return None
    try:
        serialised = json.dumps(body)
    except (TypeError, ValueError):
        serialised = str(body)
    match = TOKEN_PATTERN.search(serialised)
    return match.group(0) if match else None


RELAY_EXTRACTORS: Tuple[Tuple[str, Extractor], ...] = (
    ("blob_id", blob_id),
    ("newly_created", newly_created),
    ("already_certified", already_certified),
    ("id", plain_id),
    ("cid", cid),
    ("token_scan", token_scan),
)

PUBLISHER_EXTRACTORS: Tuple[Tuple[str, Extractor], ...] = (
    ("newly_created", newly_created),
    ("already_certified", already_certified),
)


def extract_content_id(
    body: Any,
    extractors: Sequence[Tuple[str, Extractor]] = RELAY_EXTRACTORS,
) -> Optional[Tuple[str, str]]:
    """Return ``(extractor_name, content_id)`` for the first match, else None."""
    for name, extractor in extractors:
        value = extractor(body)
        if value:
            return name, value
    return None
