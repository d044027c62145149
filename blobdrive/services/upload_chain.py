"""
Upload fallback chain - place bytes in the remote store without ever failing.

Tiers, each tried only when the previous one is unavailable or fails:
1. Authenticated native write (only with an authorized caller)
2. Relay multipart POST across candidate endpoints
3. Publisher PUT
4. Synthetic ``mock-blob-`` identifier
"""
import logging
import random
import string
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlencode

from ..errors import RetryableStoreError
from ..models import DEFAULT_PUBLISHER_URL
from ..protocols import IAPIClient, IBlobWriter
from .blob_client import SYNTHETIC_PREFIX
from .extractors import PUBLISHER_EXTRACTORS, RELAY_EXTRACTORS, extract_content_id

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class UploadOptions:
    """Options for one upload through the chain."""
    identifier: Optional[str] = None
    epochs: int = 1
    deletable: bool = True
    authorized_caller: Optional[str] = None
    chosen_tier_key: Optional[str] = None
    content_type: Optional[str] = None


@dataclass(frozen=True)
class UploadAttempt:
    """Outcome of one tier attempt."""
    tier: str
    ok: bool
    detail: str = ""


@dataclass
class UploadTrace:
    """Content id plus the attempts that produced it."""
    content_id: str
    attempts: List[UploadAttempt] = field(default_factory=list)

    @property
    def tier(self) -> str:
        for attempt in self.attempts:
            if attempt.ok:
                return attempt.tier
        return "synthetic"


def synthetic_content_id() -> str:
    """Locally unique placeholder: ``mock-blob-<ms>-<9 base36 chars>``."""
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=9))
    return f"{SYNTHETIC_PREFIX}blob-{int(time.time() * 1000)}-{suffix}"


class UploadFallbackChain:
    """
    Ordered transport tiers for one file.

    ``upload`` always returns a non-empty content id. Callers detect the
    synthetic fallback with ``is_synthetic``.
    """

    def __init__(
        self,
        api_client: IAPIClient,
        relay_urls: Sequence[str] = (),
        publisher_url: str = DEFAULT_PUBLISHER_URL,
        writer: Optional[IBlobWriter] = None,
    ):
        """
        Initialize chain.

        Args:
            api_client: HTTP client for relay and publisher calls
            relay_urls: Relay upload candidates, tried in order (empty disables the tier)
            publisher_url: Publisher base URL
            writer: Native writer for the authenticated tier
        """
        self._api = api_client
        self._relay_urls = list(relay_urls)
        self._publisher_url = publisher_url.rstrip("/")
        self._writer = writer

    async def upload(self, data: bytes, options: Optional[UploadOptions] = None) -> str:
        trace = await self.upload_with_trace(data, options)
        return trace.content_id

    async def upload_with_trace(self, data: bytes, options: Optional[UploadOptions] = None) -> UploadTrace:
        options = options or UploadOptions()
        attempts: List[UploadAttempt] = []

        for tier, attempt in (
            ("native", self._try_native),
            ("relay", self._try_relay),
            ("publisher", self._try_publisher),
        ):
            try:
                content_id, detail = await attempt(data, options)
            except Exception as e:
                # Tier boundary: nothing escapes past here
                logger.warning("Upload tier %s raised: %s", tier, e)
                content_id, detail = None, str(e)
            if content_id:
                attempts.append(UploadAttempt(tier, True, detail))
                logger.info("Uploaded %s via %s: %s", options.identifier or "blob", tier, content_id)
                return UploadTrace(content_id, attempts)
            attempts.append(UploadAttempt(tier, False, detail))

        content_id = synthetic_content_id()
        attempts.append(UploadAttempt("synthetic", True, "all remote tiers unavailable"))
        logger.warning(
            "All remote upload tiers failed for %s; using synthetic id %s",
            options.identifier or "blob", content_id,
        )
        return UploadTrace(content_id, attempts)

    async def _try_native(self, data: bytes, options: UploadOptions) -> Tuple[Optional[str], str]:
        if not options.authorized_caller or self._writer is None:
            return None, "skipped: no authorized caller"
        try:
            results = await self._writer.write_files(
                [{"contents": data, "identifier": options.identifier, "content_type": options.content_type}],
                epochs=options.epochs,
                deletable=options.deletable,
                signer=options.authorized_caller,
            )
        except RetryableStoreError as e:
            logger.warning("Native write failed (retryable), resetting client: %s", e)
            self._writer.reset()
            return None, f"retryable: {e}"
        except Exception as e:
            logger.warning("Native write failed: %s", e)
            return None, str(e)

        first = results[0] if results else None
        content_id = first.get("blobId") if isinstance(first, dict) else None
        if isinstance(content_id, str) and content_id:
            return content_id, "native write"
        return None, f"no blobId in native result: {results!r}"

    async def _try_relay(self, data: bytes, options: UploadOptions) -> Tuple[Optional[str], str]:
        if not self._relay_urls:
            return None, "skipped: relay disabled"

        form = {}
        if options.epochs:
            form["epochs"] = str(options.epochs)
        if options.identifier:
            form["identifier"] = options.identifier
        if options.chosen_tier_key:
            form["plan"] = options.chosen_tier_key
        if options.authorized_caller:
            form["signerAddress"] = options.authorized_caller
        filename = options.identifier or "blob"
        content_type = options.content_type or "application/octet-stream"

        errors = []
        for url in self._relay_urls:
            try:
                body = await self._api.post_multipart(
                    url, files={"file": (filename, data, content_type)}, data=form
                )
            except Exception as e:
                logger.debug("Relay %s unavailable: %s", url, e)
                errors.append(f"{url}: {e}")
                continue
            found = extract_content_id(body, RELAY_EXTRACTORS)
            if found:
                extractor, content_id = found
                return content_id, f"{url} ({extractor})"
            errors.append(f"{url}: no identifier in response")
        return None, "; ".join(errors)

    async def _try_publisher(self, data: bytes, options: UploadOptions) -> Tuple[Optional[str], str]:
        params = {"epochs": options.epochs or 1}
        if options.chosen_tier_key:
            params["plan"] = options.chosen_tier_key
        url = f"{self._publisher_url}/v1/store?{urlencode(params)}"

        body = await self._api.put_bytes(url, data, options.content_type or "application/octet-stream")
        found = extract_content_id(body, PUBLISHER_EXTRACTORS)
        if found:
            return found[1], url
        return None, f"unexpected publisher response: {body!r}"
