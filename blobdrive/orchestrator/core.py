"""Core orchestrator - wires services and handlers from a DriveConfig."""
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from ..errors import NotFoundError
from ..models import BatchResult, DriveConfig, FileRecord, PriceQuote, UploadItem
from ..protocols import IBlobWriter, IConfirmationSurface, IMetadataStore
from ..services.api_client import HTTPAPIClient
from ..services.blob_client import BlobStoreClient, NativeBlobWriter
from ..services.metadata_store import MetadataStore
from ..services.pricing import PricingEstimator
from ..services.rate_cache import ExchangeRateCache
from ..services.upload_chain import UploadFallbackChain
from ..utils.events import EventEmitter

from .batch_upload import UploadOrchestrator
from .confirmation import ConfirmationBridge
from .library import DeletionOrchestrator, FileLibrary


class DriveOrchestrator:
    """
    Facade over the upload and lifecycle core.

    Follows:
    - Dependency Injection (services injected or built from config)
    - Single Responsibility (delegates to handlers)

    Usage:
        async with DriveOrchestrator(config, surface=AutoApproveSurface()) as drive:
            await drive.load()
            result = await drive.upload([UploadItem.from_path(path)])
            await drive.trash(result.records[0].id)
    """

    def __init__(
        self,
        config: Optional[DriveConfig] = None,
        surface: Optional[IConfirmationSurface] = None,
        store: Optional[IMetadataStore] = None,
        api_client: Optional[HTTPAPIClient] = None,
        writer: Optional[IBlobWriter] = None,
        rate_cache: Optional[ExchangeRateCache] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            config: Endpoints, rates and store location
            surface: Human-facing confirmation surface
            store: Metadata store (default: JSON file at config.store_path)
            api_client: HTTP client (default: built from config)
            writer: Native writer for the authenticated tier
            rate_cache: Exchange-rate cache (default: built from config)
        """
        self._config = config or DriveConfig()
        self._external_api = api_client
        self._api_client = api_client or HTTPAPIClient(
            timeout=self._config.timeout, max_retries=self._config.max_retries
        )
        self._store = store or MetadataStore(Path(self._config.store_path))
        self._writer = writer or NativeBlobWriter(self._config.publisher_url, timeout=self._config.timeout)
        self._rate_cache = rate_cache or ExchangeRateCache(
            self._api_client,
            url=self._config.rate_url,
            asset=self._config.rate_asset,
            ttl=self._config.rate_ttl,
        )

        self.events = EventEmitter()
        self.bridge = ConfirmationBridge(surface)
        self.blob_client = BlobStoreClient(
            self._api_client,
            publisher_url=self._config.publisher_url,
            aggregator_url=self._config.aggregator_url,
            explorer_url=self._config.explorer_url,
        )
        self.estimator = PricingEstimator(
            self._api_client,
            quote_urls=self._config.quote_urls,
            rates=self._config.rates,
            rate_cache=self._rate_cache,
        )
        self.chain = UploadFallbackChain(
            self._api_client,
            relay_urls=self._config.relay_upload_urls if self._config.enable_relay else (),
            publisher_url=self._config.publisher_url,
            writer=self._writer,
        )
        self.library = FileLibrary(self._store)
        self._uploads = UploadOrchestrator(
            self.estimator,
            self.bridge,
            self.chain,
            self._store,
            self.blob_client,
            events=self.events,
            library=self.library,
            epochs=self._config.default_epochs,
            deletable=self._config.deletable,
        )
        self._deletions = DeletionOrchestrator(self.library, self.blob_client)

    @property
    def config(self) -> DriveConfig:
        return self._config

    @property
    def store(self) -> IMetadataStore:
        return self._store

    async def __aenter__(self):
        if self._external_api is None:
            await self._api_client.__aenter__()
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._external_api is None:
            await self._api_client.__aexit__(*args)
        aclose = getattr(self._writer, "aclose", None)
        if callable(aclose):
            await aclose()

    async def load(self, seed: Iterable[FileRecord] = ()) -> List[FileRecord]:
        return await self.library.load(seed)

    async def estimate(self, size_bytes: int, epochs: Optional[int] = None) -> PriceQuote:
        return await self.estimator.estimate(size_bytes, epochs or self._config.default_epochs)

    async def upload(
        self,
        items: Iterable[UploadItem],
        authorized_caller: Optional[str] = None,
        epochs: Optional[int] = None,
    ) -> BatchResult:
        """Run one batch through estimate → confirm → upload → persist."""
        return await self._uploads.run(items, authorized_caller=authorized_caller, epochs=epochs)

    def view(self, name: str = "active") -> List[FileRecord]:
        return self.library.view(name)

    async def toggle_star(self, record_id: str) -> Optional[FileRecord]:
        return await self.library.toggle_star(record_id)

    async def trash(self, record_id: str) -> Optional[FileRecord]:
        return await self.library.trash(record_id)

    async def restore(self, record_id: str) -> Optional[FileRecord]:
        return await self.library.restore(record_id)

    async def fetch(self, record_id: str) -> Tuple[FileRecord, Optional[bytes]]:
        """
        Read a file's bytes back from the store.

        Raises:
            NotFoundError: if no record has this id
        """
        record = self.library.find(record_id) or await self._store.get(record_id)
        if record is None:
            raise NotFoundError(record_id)
        return record, await self.blob_client.fetch(record.content_id)

    async def permanently_delete(self, record_id: str) -> List[FileRecord]:
        return await self._deletions.permanently_delete(record_id)
