"""Human-in-the-loop confirmation of a quote before upload."""
import asyncio
import inspect
import logging
from typing import Optional

from ..errors import ConfirmationPendingError, NoPendingConfirmationError
from ..models import ConfirmationDecision, PriceQuote
from ..protocols import IConfirmationSurface

logger = logging.getLogger(__name__)


class AutoApproveSurface:
    """Surface that approves every quote with its recommended tier."""

    def __call__(self, quote: PriceQuote) -> ConfirmationDecision:
        return ConfirmationDecision.approve(quote.recommended_tier_key)


class ConfirmationBridge:
    """
    Single-slot request/response channel between the batch loop and a human.

    ``request_confirmation`` hands the quote to the surface and suspends until
    ``resolve`` or ``cancel`` is called. A surface may also return a
    ConfirmationDecision directly, which resolves the request at once. Only
    one request may be outstanding.
    """

    def __init__(self, surface: Optional[IConfirmationSurface] = None):
        self._surface = surface
        self._future: Optional[asyncio.Future] = None
        self._quote: Optional[PriceQuote] = None

    @property
    def pending(self) -> Optional[PriceQuote]:
        """Quote awaiting a decision, if any."""
        return self._quote

    @property
    def is_pending(self) -> bool:
        return self._future is not None

    async def request_confirmation(self, quote: PriceQuote) -> ConfirmationDecision:
        """
        Present ``quote`` and wait for the decision.

        Raises:
            ConfirmationPendingError: if another request is still outstanding
        """
        if self._future is not None:
            raise ConfirmationPendingError(
                f"Confirmation for quote {self._quote.id if self._quote else '?'} is still pending"
            )

        future = asyncio.get_running_loop().create_future()
        self._future = future
        self._quote = quote

        try:
            if self._surface is not None:
                returned = self._surface(quote)
                if inspect.isawaitable(returned):
                    returned = await returned
                if isinstance(returned, ConfirmationDecision) and not future.done():
                    self._settle(returned)
            decision = await future
        finally:
            if self._future is future:
                self._future = None
                self._quote = None

        logger.debug("Confirmation for %s: proceed=%s tier=%s", quote.id, decision.proceed, decision.chosen_tier_key)
        return decision

    def _settle(self, decision: ConfirmationDecision) -> None:
        future, quote = self._future, self._quote
        if future is None or future.done():
            raise NoPendingConfirmationError("No confirmation request is pending")

        if decision.proceed and quote is not None and quote.tier(decision.chosen_tier_key) is None:
            if decision.chosen_tier_key is not None:
                logger.warning(
                    "Unknown tier %r chosen; using recommended %r",
                    decision.chosen_tier_key, quote.recommended_tier_key,
                )
            decision = ConfirmationDecision.approve(quote.recommended_tier_key)

        # Clear the slot before waking the waiter so the next request can start.
        self._future = None
        self._quote = None
        future.set_result(decision)

    def resolve(self, proceed: bool, chosen_tier_key: Optional[str] = None) -> None:
        """
        Report the human decision for the pending quote.

        Raises:
            NoPendingConfirmationError: if nothing is pending
        """
        self._settle(ConfirmationDecision(proceed=proceed, chosen_tier_key=chosen_tier_key))

    def cancel(self) -> None:
        self.resolve(False)
