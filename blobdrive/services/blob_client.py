"""
Blob store client - native writer, URL helpers and best-effort delete.

The native writer owns one lazily created connection; ``reset`` drops it so the
next write starts from a clean connection.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import httpx

from ..errors import RemoteUnavailableError, RetryableStoreError
from ..models import DEFAULT_AGGREGATOR_URL, DEFAULT_EXPLORER_URL, DEFAULT_PUBLISHER_URL
from ..protocols import IAPIClient
from .api_client import decode_body
from .extractors import PUBLISHER_EXTRACTORS, extract_content_id

logger = logging.getLogger(__name__)

SYNTHETIC_PREFIX = "mock-"


def is_synthetic(content_id: Optional[str]) -> bool:
    """True for placeholder ids produced when no remote tier stored the bytes."""
    return not content_id or content_id.startswith(SYNTHETIC_PREFIX)


class NativeBlobWriter:
    """
    Authenticated writer against the publisher store API.

    Implements IBlobWriter. Blobs are written with ``send_object_to`` so the
    resulting blob object is owned by the signer. Transport errors and 5xx
    answers raise RetryableStoreError; other failures raise
    RemoteUnavailableError.
    """

    def __init__(
        self,
        publisher_url: str = DEFAULT_PUBLISHER_URL,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._publisher_url = publisher_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._stale: List[httpx.AsyncClient] = []

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._publisher_url, timeout=self._timeout, transport=self._transport
            )
        return self._client

    def reset(self) -> None:
        if self._client is not None:
            self._stale.append(self._client)
            self._client = None
            logger.debug("NativeBlobWriter: connection reset")

    async def aclose(self) -> None:
        self.reset()
        for client in self._stale:
            await client.aclose()
        self._stale.clear()

    async def _write_one(
        self, file: Dict[str, Any], epochs: int, deletable: bool, signer: str
    ) -> Dict[str, Any]:
        params = {"epochs": epochs, "send_object_to": signer}
        if deletable:
            params["deletable"] = "true"
        headers = {"Content-Type": file.get("content_type") or "application/octet-stream"}
        try:
            response = await self._ensure_client().put(
                "/v1/blobs", params=params, content=file["contents"], headers=headers
            )
        except (httpx.RequestError, httpx.TimeoutException) as exc:
            raise RetryableStoreError(f"native write failed: {exc}") from exc

        if response.status_code >= 500:
            raise RetryableStoreError(f"native write failed: HTTP {response.status_code}")
        if response.status_code >= 400:
            raise RemoteUnavailableError(f"native write rejected: HTTP {response.status_code}")

        body = decode_body(response)
        found = extract_content_id(body, PUBLISHER_EXTRACTORS)
        if not found:
            raise RemoteUnavailableError(f"unexpected native write response: {body!r}")
        return {"blobId": found[1], "identifier": file.get("identifier"), "details": body}

    async def write_files(
        self,
        files: Sequence[Dict[str, Any]],
        epochs: int,
        deletable: bool,
        signer: str,
    ) -> List[Dict[str, Any]]:
        """
        Write each file and return one ``{"blobId", "identifier", "details"}`` per file.

        Args:
            files: dicts with ``contents`` (bytes), ``identifier`` and ``content_type``
            epochs: Storage duration units
            deletable: Whether the blob can later be deleted
            signer: Address that receives the blob object
        """
        return [await self._write_one(f, epochs, deletable, signer) for f in files]


class BlobStoreClient:
    """URL derivation and best-effort remote delete for stored blobs."""

    def __init__(
        self,
        api_client: IAPIClient,
        publisher_url: str = DEFAULT_PUBLISHER_URL,
        aggregator_url: str = DEFAULT_AGGREGATOR_URL,
        explorer_url: str = DEFAULT_EXPLORER_URL,
    ):
        self._api = api_client
        self._publisher_url = publisher_url.rstrip("/")
        self._aggregator_url = aggregator_url.rstrip("/")
        self._explorer_url = explorer_url

    def remote_url(self, content_id: str) -> str:
        if is_synthetic(content_id):
            return "#"
        return f"{self._aggregator_url}/v1/{content_id}"

    def explorer_url(self, content_id: str) -> str:
        if is_synthetic(content_id):
            return self._explorer_url
        return f"{self._explorer_url}?q={quote(content_id, safe='')}"

    async def fetch(self, content_id: str) -> Optional[bytes]:
        """
        Read a blob back from the aggregator.

        Returns:
            The stored bytes, or None for synthetic ids and on any failure (never raises)
        """
        if is_synthetic(content_id):
            logger.debug("fetch: %s was never stored remotely", content_id)
            return None
        try:
            return await self._api.get_bytes(self.remote_url(content_id))
        except RemoteUnavailableError as e:
            logger.warning("Fetch failed for %s: %s", content_id, e)
            return None

    async def delete(self, content_id: str) -> bool:
        """
        Ask the publisher to delete a blob.

        Returns:
            True on 2xx, False on any failure (never raises)
        """
        url = f"{self._publisher_url}/v1/store/{quote(content_id, safe='')}"
        try:
            await self._api.delete(url)
            return True
        except RemoteUnavailableError as e:
            logger.warning("Remote delete failed for %s: %s", content_id, e)
            return False
