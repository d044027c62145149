"""
File library - in-memory view over the metadata store.

Soft operations (star, trash, restore) update the view first and persist
second; a persistence failure is logged and the view keeps the optimistic
state. Destructive operations always reload the view from the store.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from ..errors import BlobDriveError, NotFoundError, PersistenceError
from ..models import FileRecord
from ..protocols import IMetadataStore
from ..services.blob_client import BlobStoreClient, is_synthetic

logger = logging.getLogger(__name__)

VIEWS = {
    "active": "active",
    "recent": "recent",
    "starred": "starred",
    "trash": "trashed",
}


def newest_first(records: Iterable[FileRecord]) -> List[FileRecord]:
    return sorted(records, key=lambda r: r.created_at, reverse=True)


class FileLibrary:
    """
    Cache view of file records plus the durable store behind it.

    ``records`` is the view; ``reconcile`` replaces it with the store's
    contents and only falls back to the cached view when the store cannot be
    read.
    """

    def __init__(self, store: IMetadataStore):
        self._store = store
        self._records: List[FileRecord] = []

    @property
    def store(self) -> IMetadataStore:
        return self._store

    @property
    def records(self) -> List[FileRecord]:
        return list(self._records)

    def find(self, record_id: str) -> Optional[FileRecord]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    async def load(self, seed: Iterable[FileRecord] = ()) -> List[FileRecord]:
        """
        Load the view from the store.

        When the store is empty and ``seed`` records are given, they are
        written to the store and shown. Seeding failures are ignored per record.
        """
        try:
            stored = await self._store.list_all()
        except PersistenceError as e:
            logger.warning("Failed to load from store, keeping in-memory view: %s", e)
            return self.records

        seed = list(seed)
        if not stored and seed:
            for record in seed:
                try:
                    await self._store.put(record)
                except PersistenceError as e:
                    logger.debug("Seeding %s failed: %s", record.id, e)
            stored = seed

        self._records = newest_first(stored)
        return self.records

    # -- views ------------------------------------------------------------

    def active(self) -> List[FileRecord]:
        return [r for r in self._records if not r.trashed]

    def recent(self) -> List[FileRecord]:
        return newest_first(self.active())

    def starred(self) -> List[FileRecord]:
        return [r for r in self._records if r.starred and not r.trashed]

    def trashed(self) -> List[FileRecord]:
        return [r for r in self._records if r.trashed]

    def view(self, name: str) -> List[FileRecord]:
        if name not in VIEWS:
            raise ValueError(f"Unknown view {name!r}; expected one of {', '.join(VIEWS)}")
        return getattr(self, VIEWS[name])()

    # -- mutations --------------------------------------------------------

    def add(self, record: FileRecord) -> None:
        """Show a freshly stored record at the top of the view."""
        self._records = [record] + [r for r in self._records if r.id != record.id]

    def _apply_locally(self, record_id: str, patch: Dict[str, Any]) -> Optional[FileRecord]:
        updated = None
        records = []
        for record in self._records:
            if record.id == record_id:
                record = record.with_patch(patch)
                updated = record
            records.append(record)
        self._records = records
        return updated

    async def _soft_update(self, record_id: str, patch: Dict[str, Any], action: str) -> Optional[FileRecord]:
        updated = self._apply_locally(record_id, patch)
        try:
            await self._store.update(record_id, patch)
        except (NotFoundError, PersistenceError) as e:
            logger.warning("Failed to persist %s state for %s: %s", action, record_id, e)
        return updated

    async def toggle_star(self, record_id: str) -> Optional[FileRecord]:
        current = self.find(record_id)
        if current is None:
            logger.warning("toggle_star: %s is not in the current view", record_id)
            return None
        return await self._soft_update(record_id, {"starred": not current.starred}, "star")

    async def trash(self, record_id: str) -> Optional[FileRecord]:
        return await self._soft_update(record_id, {"trashed": True}, "trash")

    async def restore(self, record_id: str) -> Optional[FileRecord]:
        return await self._soft_update(record_id, {"trashed": False}, "restore")

    async def reconcile(self, removed_id: Optional[str] = None) -> List[FileRecord]:
        """
        Replace the view with the store's contents.

        If the store cannot be read, drop ``removed_id`` from the cached view instead.
        """
        try:
            remaining = await self._store.list_all()
        except Exception as e:
            logger.warning("Failed to reload files from store: %s", e)
            if removed_id is not None:
                self._records = [r for r in self._records if r.id != removed_id]
            return self.records

        logger.debug("Reloaded %d file(s) from store", len(remaining))
        self._records = newest_first(remaining)
        return self.records


class DeletionOrchestrator:
    """Permanent delete: best-effort remote delete, durable removal, reconcile."""

    def __init__(self, library: FileLibrary, blob_client: BlobStoreClient):
        self._library = library
        self._blob_client = blob_client

    async def permanently_delete(self, record_id: str) -> List[FileRecord]:
        """
        Delete a record everywhere it can be deleted.

        Returns:
            The reconciled view
        """
        store = self._library.store
        target = self._library.find(record_id)
        if target is None:
            try:
                target = await store.get(record_id)
            except PersistenceError as e:
                logger.warning("Lookup of %s failed: %s", record_id, e)

        content_id = target.content_id if target else None
        logger.debug("Permanent delete id=%s content_id=%s", record_id, content_id)
        if content_id and not is_synthetic(content_id):
            try:
                await self._blob_client.delete(content_id)
            except Exception as e:
                logger.warning("Permanent delete failed at network level: %s", e)

        try:
            await store.delete(record_id)
        except BlobDriveError as e:
            logger.warning("Failed to remove %s from store: %s", record_id, e)

        return await self._library.reconcile(removed_id=record_id)
