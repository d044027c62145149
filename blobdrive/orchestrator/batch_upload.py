"""Batch upload: estimate → confirm → upload → persist → report, one file at a time."""
import logging
import uuid
from typing import Callable, Iterable, Optional, TYPE_CHECKING

from ..models import BatchResult, FileRecord, ItemStatus, MediaKind, UploadItem, utcnow
from ..protocols import IMetadataStore
from ..services.blob_client import BlobStoreClient, is_synthetic
from ..services.pricing import PricingEstimator
from ..services.upload_chain import UploadFallbackChain, UploadOptions
from ..utils.events import BATCH_COMPLETE, ITEM_STATUS, PROGRESS, EventEmitter, ItemProgress
from .confirmation import ConfirmationBridge

if TYPE_CHECKING:
    from .library import FileLibrary

logger = logging.getLogger(__name__)


def batch_progress(completed: int, total: int) -> int:
    """Percentage of terminal items, half-up rounded."""
    if total <= 0:
        return 100
    return int(completed * 100 / total + 0.5)


def new_record_id() -> str:
    return uuid.uuid4().hex


class UploadOrchestrator:
    """
    Drives one batch of files end to end.

    Items are processed strictly in order so confirmation prompts appear one
    at a time and progress only moves forward. A failure or cancellation is
    contained to its own item.
    """

    def __init__(
        self,
        estimator: PricingEstimator,
        bridge: ConfirmationBridge,
        chain: UploadFallbackChain,
        store: IMetadataStore,
        blob_client: BlobStoreClient,
        events: Optional[EventEmitter] = None,
        library: Optional["FileLibrary"] = None,
        epochs: int = 1,
        deletable: bool = True,
        id_factory: Callable[[], str] = new_record_id,
    ):
        self._estimator = estimator
        self._bridge = bridge
        self._chain = chain
        self._store = store
        self._blob_client = blob_client
        self._events = events or EventEmitter()
        self._library = library
        self._epochs = epochs
        self._deletable = deletable
        self._id_factory = id_factory

    @property
    def events(self) -> EventEmitter:
        return self._events

    async def _set_status(self, index: int, item: UploadItem, status: ItemStatus) -> None:
        item.status = status
        await self._events.emit(ITEM_STATUS, ItemProgress(
            index=index,
            name=item.name,
            status=status.value,
            content_id=item.record.content_id if item.record else "",
            error=item.error or "",
        ))

    async def run(
        self,
        items: Iterable[UploadItem],
        authorized_caller: Optional[str] = None,
        epochs: Optional[int] = None,
    ) -> BatchResult:
        """
        Upload every item in order.

        Args:
            items: Files to upload
            authorized_caller: Signer address enabling the authenticated tier
            epochs: Storage duration (default from config)

        Returns:
            BatchResult with per-item status and created records
        """
        result = BatchResult(items=list(items))
        total = len(result.items)
        epochs = epochs or self._epochs

        if total == 0:
            result.progress = 100
            await self._events.emit(BATCH_COMPLETE, result)
            return result

        logger.info("Starting batch of %d file(s)", total)
        for index, item in enumerate(result.items):
            try:
                await self._process_item(index, item, epochs, authorized_caller)
            except Exception as e:
                logger.error("Upload failed for %s: %s", item.name, e, exc_info=True)
                item.error = str(e)
                await self._set_status(index, item, ItemStatus.ERROR)

            result.progress = batch_progress(index + 1, total)
            await self._events.emit(PROGRESS, result.progress)

        logger.info(
            "Batch complete: %d uploaded, %d cancelled, %d failed",
            result.uploaded, result.cancelled, result.failed,
        )
        await self._events.emit(BATCH_COMPLETE, result)
        return result

    async def _process_item(
        self,
        index: int,
        item: UploadItem,
        epochs: int,
        authorized_caller: Optional[str],
    ) -> None:
        size_bytes = item.size_bytes
        chosen_tier: Optional[str] = None

        # 1. Estimate
        await self._set_status(index, item, ItemStatus.ESTIMATING)
        try:
            quote = await self._estimator.estimate(size_bytes, epochs)
        except Exception as e:
            logger.warning("Estimation failed for %s, uploading without a tier: %s", item.name, e)
            quote = None

        # 2. Confirm
        if quote is not None:
            await self._set_status(index, item, ItemStatus.AWAITING_CONFIRMATION)
            decision = await self._bridge.request_confirmation(quote)
            if not decision.proceed:
                logger.info("Upload of %s cancelled by user", item.name)
                await self._set_status(index, item, ItemStatus.CANCELLED)
                return
            chosen_tier = decision.chosen_tier_key

        # 3. Upload
        await self._set_status(index, item, ItemStatus.UPLOADING)
        content_id = await self._chain.upload(item.read_bytes(), UploadOptions(
            identifier=item.name,
            epochs=epochs,
            deletable=self._deletable,
            authorized_caller=authorized_caller,
            chosen_tier_key=chosen_tier,
            content_type=item.content_type,
        ))
        if is_synthetic(content_id):
            logger.warning("%s stored under synthetic id %s", item.name, content_id)

        # 4. Persist
        record = FileRecord(
            id=self._id_factory(),
            content_id=content_id,
            name=item.name,
            size_bytes=size_bytes,
            media_kind=MediaKind.from_content_type(item.content_type),
            created_at=utcnow(),
            content_type=item.content_type,
            epochs=epochs,
            tier_key=chosen_tier,
            remote_url=self._blob_client.remote_url(content_id),
            explorer_url=self._blob_client.explorer_url(content_id),
            preview_url=item.path.resolve().as_uri() if item.path is not None else None,
        )
        await self._store.put(record)
        item.record = record
        if self._library is not None:
            self._library.add(record)

        await self._set_status(index, item, ItemStatus.UPLOADED)
