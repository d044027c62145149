"""
MetadataStore - durable file-record storage on local disk.

Records live in one JSON document keyed by record id. Every call reads the
document from disk and every mutation rewrites it (temp file + rename) before
returning, so the file is always the source of truth. Mutations run one at a
time under a per-store lock.
"""
import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Dict, Any, List

from ..errors import NotFoundError, PersistenceError
from ..models import FileRecord, DEFAULT_STORE_PATH
from ..protocols import IMetadataStore

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def _decode(data: Any) -> FileRecord:
    if not isinstance(data, dict):
        raise ValueError(f"expected an object, got {type(data).__name__}")
    return FileRecord.from_dict(data)


class MetadataStore(IMetadataStore):
    """
    JSON-file backed key-value store for FileRecord.

    Every load-modify-save holds ``_write_lock``, so writers on different ids
    never drop each other's record. ``update`` reads the current record before
    taking the lock: two callers updating the same id concurrently can still
    lose one writer's change (last write wins on the whole record).
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize store.

        Args:
            path: JSON file to persist to (default: ~/.local/share/blobdrive/files.json)
        """
        self._path = Path(path) if path else DEFAULT_STORE_PATH
        self._write_lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read metadata store {self._path}: {e}") from e
        files = document.get("files", {}) if isinstance(document, dict) else {}
        return files if isinstance(files, dict) else {}

    def _write(self, files: Dict[str, Any]) -> None:
        tmp_name = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump({"version": SCHEMA_VERSION, "files": files}, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"Cannot write metadata store {self._path}: {e}") from e

    async def _load(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._read)

    async def _save(self, files: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, files)

    async def list_all(self) -> List[FileRecord]:
        files = await self._load()
        records = []
        for record_id, data in files.items():
            try:
                records.append(_decode(data))
            except (TypeError, ValueError) as e:
                logger.warning("MetadataStore: skipping malformed record %s: %s", record_id, e)
        return records

    async def get(self, record_id: str) -> Optional[FileRecord]:
        """
        Return one record or None.

        Raises:
            PersistenceError: if the stored entry cannot be decoded
        """
        files = await self._load()
        data = files.get(record_id)
        if data is None:
            return None
        try:
            return _decode(data)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed record {record_id} in {self._path}: {e}") from e

    async def put(self, record: FileRecord) -> None:
        async with self._write_lock:
            files = await self._load()
            files[record.id] = record.to_dict()
            await self._save(files)
        logger.debug("MetadataStore: put %s (%s)", record.id, record.name)

    async def update(self, record_id: str, patch: Dict[str, Any]) -> FileRecord:
        """
        Read the current record, overwrite the patched fields, write it back.

        Raises:
            NotFoundError: if the id is absent
            PersistenceError: if the stored entry is malformed or the write fails
            ValueError: if the patch names unknown or immutable fields
        """
        current = await self.get(record_id)
        if current is None:
            raise NotFoundError(record_id)
        updated = current.with_patch(patch)

        async with self._write_lock:
            files = await self._load()
            files[record_id] = updated.to_dict()
            await self._save(files)
        logger.debug("MetadataStore: updated %s with %s", record_id, sorted(patch))
        return updated

    async def delete(self, record_id: str) -> bool:
        async with self._write_lock:
            files = await self._load()
            if record_id not in files:
                logger.debug("MetadataStore: delete %s (already absent)", record_id)
                return True
            del files[record_id]
            await self._save(files)
        logger.debug("MetadataStore: deleted %s", record_id)
        return True

    async def clear(self) -> None:
        async with self._write_lock:
            await self._save({})
        logger.info("MetadataStore: cleared all records")
