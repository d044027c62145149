"""
Pricing Service - cost tiers for a prospective upload.

Flow:
1. Probe relay quote endpoints → first well-formed body wins
2. Otherwise heuristic basic/standard/pro tiers from configured rates
3. Overlay native-currency equivalents when a rate is available
4. Attach the encode/register/upload/certify breakdown
"""
import logging
import math
import time
from typing import Any, List, Optional, Sequence

from ..errors import RemoteUnavailableError
from ..models import CostStep, PriceQuote, PriceTier, PricingRates, utcnow
from ..protocols import IAPIClient
from .rate_cache import ExchangeRateCache

logger = logging.getLogger(__name__)

MB = 1024 * 1024
RECOMMENDED_KEY = "standard"

# (step, description, share of recommended total)
COST_STEPS = (
    ("encode", "Encode file, compute multihash, prepare chunks", 0.0),
    ("register", "Register upload intent on relay", 0.3),
    ("upload", "Upload content to publishers/aggregators", 0.6),
    ("certify", "Certify the file; finalization step", 0.1),
)


def size_in_mb(size_bytes: int) -> int:
    """Whole megabytes, rounded up, never below 1."""
    return max(1, math.ceil(size_bytes / MB))


def _to_base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def parse_remote_tiers(body: Any) -> Optional[List[PriceTier]]:
    """
    Map a relay quote body to tiers, or None if it is not well-formed.

    Accepts ``{"tiers": [{name|id, price_usd|price, ...}]}`` or a single
    aggregate ``{"price": n}`` / ``{"total": n}``.
    """
    if not isinstance(body, dict):
        return None

    raw_tiers = body.get("tiers")
    if isinstance(raw_tiers, list) and raw_tiers:
        tiers = []
        for raw in raw_tiers:
            if not isinstance(raw, dict):
                continue
            price_usd = raw.get("price_usd")
            price = _number(price_usd if price_usd is not None else raw.get("price"))
            if price is None or price < 0:
                continue
            key = raw.get("name") or raw.get("id") or str(price)
            tiers.append(PriceTier(
                key=str(key),
                name=str(raw.get("name") or "Plan"),
                unit_price=price,
                total_price=price,
                description=str(raw.get("description") or ""),
            ))
        return tiers or None

    aggregate = _number(body.get("price", body.get("total")))
    if aggregate is not None and aggregate >= 0:
        return [PriceTier(
            key="relay",
            name="Relay Price",
            unit_price=aggregate,
            total_price=aggregate,
            description="Price from relay",
        )]
    return None


def heuristic_tiers(size_mb: int, epochs: int, rates: PricingRates) -> List[PriceTier]:
    return [
        PriceTier(
            key=key,
            name=name,
            unit_price=rate,
            total_price=round(size_mb * rate * epochs, 4),
            description=f"Approx {rate}$/MB/epoch",
        )
        for key, name, rate in rates.as_tiers()
    ]


def _native(amount: Optional[float], rate: float) -> Optional[float]:
    if amount is None:
        return None
    return round(amount / rate, 6)


class PricingEstimator:
    """
    Estimate upload cost.

    ``estimate`` never raises: remote failures advance to the next endpoint and
    finally to the heuristic rates.
    """

    def __init__(
        self,
        api_client: IAPIClient,
        quote_urls: Sequence[str],
        rates: Optional[PricingRates] = None,
        rate_cache: Optional[ExchangeRateCache] = None,
    ):
        self._api = api_client
        self._quote_urls = list(quote_urls)
        self._rates = rates or PricingRates()
        self._rate_cache = rate_cache

    async def fetch_remote_tiers(self, size_bytes: int, epochs: int) -> Optional[List[PriceTier]]:
        for url in self._quote_urls:
            try:
                body = await self._api.post_json(url, json={"size": size_bytes, "epochs": epochs})
            except RemoteUnavailableError as e:
                logger.debug("Quote endpoint %s unavailable: %s", url, e)
                continue
            tiers = parse_remote_tiers(body)
            if tiers:
                logger.debug("Quote from %s: %d tier(s)", url, len(tiers))
                return tiers
            logger.debug("Quote endpoint %s returned unusable body", url)
        return None

    async def _native_rate(self) -> Optional[float]:
        if self._rate_cache is None:
            return None
        try:
            return await self._rate_cache.get_rate()
        except Exception as e:
            logger.debug("Exchange rate lookup failed: %s", e)
            return None

    async def estimate(self, size_bytes: int, epochs: int = 1) -> PriceQuote:
        """
        Build a PriceQuote for ``size_bytes`` stored for ``epochs``.

        Args:
            size_bytes: Upload size
            epochs: Storage duration units

        Returns:
            PriceQuote with at least one tier
        """
        size_mb = size_in_mb(size_bytes)

        source = "remote"
        try:
            tiers = await self.fetch_remote_tiers(size_bytes, epochs)
        except Exception as e:
            logger.warning("Remote quote failed unexpectedly: %s", e)
            tiers = None
        if not tiers:
            source = "heuristic"
            tiers = heuristic_tiers(size_mb, epochs, self._rates)

        keys = [t.key for t in tiers]
        recommended_key = RECOMMENDED_KEY if RECOMMENDED_KEY in keys else keys[0]
        recommended_total = next(t.total_price for t in tiers if t.key == recommended_key)

        steps = [
            CostStep(step=name, description=description, fee=round(recommended_total * share, 4))
            for name, description, share in COST_STEPS
        ]

        rate = await self._native_rate()
        if rate:
            tiers = [
                PriceTier(
                    key=t.key,
                    name=t.name,
                    unit_price=t.unit_price,
                    total_price=t.total_price,
                    description=t.description,
                    native_unit_price=_native(t.unit_price, rate),
                    native_total_price=_native(t.total_price, rate),
                )
                for t in tiers
            ]
            steps = [
                CostStep(step=s.step, description=s.description, fee=s.fee, native_fee=_native(s.fee, rate))
                for s in steps
            ]

        return PriceQuote(
            id=f"sim-{_to_base36(int(time.time() * 1000))}",
            size_bytes=size_bytes,
            size_mb=size_mb,
            epochs=epochs,
            tiers=tuple(tiers),
            recommended_tier_key=recommended_key,
            steps=tuple(steps),
            source=source,
            native_rate=rate,
            created_at=utcnow(),
        )
