import inspect
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

# Event names published by the batch upload loop
ITEM_STATUS = "item_status"
PROGRESS = "progress"
BATCH_COMPLETE = "batch_complete"


@dataclass
class ItemProgress:
    """Status change of one batch item."""
    index: int
    name: str
    status: str
    content_id: str = ""
    error: str = ""


class EventEmitter:
    """
    In-process publish/subscribe for batch events.

    Listeners may be plain callables or coroutine functions. A listener that
    raises is logged and skipped; it never interrupts the upload loop.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, callback: Callable) -> None:
        callbacks = self._listeners.setdefault(event_name, [])
        if callback not in callbacks:
            callbacks.append(callback)

    def off(self, event_name: str, callback: Callable) -> None:
        callbacks = self._listeners.get(event_name, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    async def emit(self, event_name: str, *args, **kwargs) -> None:
        # Snapshot so listeners can unsubscribe while being called
        for callback in list(self._listeners.get(event_name, [])):
            try:
                returned = callback(*args, **kwargs)
                if inspect.isawaitable(returned):
                    await returned
            except Exception as e:
                logger.error("Listener for %s failed: %s", event_name, e)
