"""HTTP adapter for blob-store, relay and rate endpoints."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import RemoteUnavailableError

logger = logging.getLogger(__name__)


def decode_body(response: httpx.Response) -> Any:
    """Return the JSON body, or the raw text when the body is not JSON."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HTTPAPIClient:
    """
    HTTP client adapter for remote calls.

    Implements IAPIClient protocol. Every failure (transport error, timeout,
    4xx/5xx) surfaces as RemoteUnavailableError.
    """

    def __init__(
        self,
        timeout: float = 30,
        max_retries: int = 1,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._client: Optional[httpx.AsyncClient] = client
        self._owns_client = client is None

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        # Lazily created on first use; no teardown required for process-lifetime use.
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
            self._owns_client = True
        return self._client

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        client = self._ensure_client()
        last_exception: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                response = await client.request(method, url, **kwargs)

                if response.status_code >= 500 and attempt < self._max_retries - 1:
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue

                if response.status_code >= 400:
                    try:
                        error_detail = response.json()
                    except Exception:
                        error_detail = response.text
                    raise RemoteUnavailableError(
                        f"HTTP {response.status_code} on {method} {url}: {error_detail}"
                    )

                return response
            except (httpx.RequestError, httpx.TimeoutException) as exc:
                last_exception = exc
                if attempt < self._max_retries - 1:
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise RemoteUnavailableError(f"{method} {url} failed: {exc}") from exc

        raise RemoteUnavailableError(
            f"{method} {url} failed after {self._max_retries} attempts: {last_exception}"
        )

    async def post_json(self, url: str, json: Dict) -> Any:
        response = await self._request("POST", url, json=json)
        return decode_body(response)

    async def post_multipart(self, url: str, files: Dict, data: Dict) -> Any:
        response = await self._request("POST", url, files=files, data=data)
        return decode_body(response)

    async def put_bytes(self, url: str, content: bytes, content_type: str) -> Any:
        response = await self._request(
            "PUT", url, content=content, headers={"Content-Type": content_type}
        )
        return decode_body(response)

    async def get_json(self, url: str) -> Any:
        response = await self._request("GET", url)
        return decode_body(response)

    async def get_bytes(self, url: str) -> bytes:
        response = await self._request("GET", url)
        return response.content

    async def delete(self, url: str) -> None:
        await self._request("DELETE", url)
