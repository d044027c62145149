"""
ExchangeRateCache - single-slot cache for the native-currency USD rate.

One value and its fetch time are kept; readers inside the freshness window get
the cached value, the first reader after it triggers a refetch.
"""
import logging
import time
from typing import Callable, Optional

from ..errors import RemoteUnavailableError
from ..models import DEFAULT_RATE_URL
from ..protocols import IAPIClient

logger = logging.getLogger(__name__)

DEFAULT_TTL = 60.0


class ExchangeRateCache:
    """USD-per-native-unit rate with a time-to-live."""

    def __init__(
        self,
        api_client: IAPIClient,
        url: str = DEFAULT_RATE_URL,
        asset: str = "sui",
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._api = api_client
        self._url = url
        self._asset = asset
        self._ttl = ttl
        self._clock = clock
        self._value: Optional[float] = None
        self._fetched_at: float = 0.0

    @property
    def cached_value(self) -> Optional[float]:
        return self._value

    def is_fresh(self) -> bool:
        return self._value is not None and self._clock() - self._fetched_at < self._ttl

    async def get_rate(self) -> Optional[float]:
        """
        Return USD per native unit, or None when unavailable.

        Never raises.
        """
        if self.is_fresh():
            return self._value

        try:
            body = await self._api.get_json(self._url)
        except RemoteUnavailableError as e:
            logger.debug("ExchangeRateCache: fetch failed: %s", e)
            return None

        entry = body.get(self._asset) if isinstance(body, dict) else None
        value = entry.get("usd") if isinstance(entry, dict) else None
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            logger.debug("ExchangeRateCache: unexpected rate body: %r", body)
            return None

        self._value = float(value)
        self._fetched_at = self._clock()
        logger.debug("ExchangeRateCache: %s = %s USD", self._asset, self._value)
        return self._value

    def invalidate(self) -> None:
        self._value = None
        self._fetched_at = 0.0


# Process-wide instance, created on first use
_global_cache: Optional[ExchangeRateCache] = None


def get_exchange_rate_cache(api_client: IAPIClient, **kwargs) -> ExchangeRateCache:
    """Get the process-wide rate cache (created on first call)."""
    global _global_cache

    if _global_cache is None:
        _global_cache = ExchangeRateCache(api_client, **kwargs)

    return _global_cache
