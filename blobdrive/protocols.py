"""
Protocols (Interfaces) for Dependency Inversion.

Small, focused interfaces; concrete services are injected into orchestrators.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List, Protocol, Sequence, runtime_checkable

from .models import FileRecord, PriceQuote


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for HTTP operations against remote services."""

    async def post_json(self, url: str, json: Dict) -> Any:
        """POST a JSON body, return the decoded response body."""
        ...

    async def post_multipart(self, url: str, files: Dict, data: Dict) -> Any:
        """POST a multipart form, return the decoded response body."""
        ...

    async def put_bytes(self, url: str, content: bytes, content_type: str) -> Any:
        """PUT raw bytes, return the decoded response body."""
        ...

    async def get_json(self, url: str) -> Any:
        """GET and decode a JSON body."""
        ...

    async def get_bytes(self, url: str) -> bytes:
        """GET a resource and return the raw body."""
        ...

    async def delete(self, url: str) -> None:
        """DELETE a resource."""
        ...


@runtime_checkable
class IBlobWriter(Protocol):
    """Interface for the native authenticated blob client."""

    async def write_files(
        self,
        files: Sequence[Dict[str, Any]],
        epochs: int,
        deletable: bool,
        signer: str,
    ) -> List[Dict[str, Any]]:
        """Write files, return one result dict (with ``blobId``) per file."""
        ...

    def reset(self) -> None:
        """Drop connection state after a retryable failure."""
        ...


@runtime_checkable
class IConfirmationSurface(Protocol):
    """Human-facing surface that is shown a quote and later reports a decision."""

    def __call__(self, quote: PriceQuote) -> Any:
        ...


class IMetadataStore(ABC):
    """Interface for durable file-record storage (Repository Pattern)."""

    @abstractmethod
    async def list_all(self) -> List[FileRecord]:
        """Return every record, in unspecified order."""

    @abstractmethod
    async def get(self, record_id: str) -> Optional[FileRecord]:
        """Return one record or None."""

    @abstractmethod
    async def put(self, record: FileRecord) -> None:
        """Upsert a record keyed by id."""

    @abstractmethod
    async def update(self, record_id: str, patch: Dict[str, Any]) -> FileRecord:
        """Apply a partial overwrite; raise NotFoundError if absent."""

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        """Remove a record; absent ids are not an error."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every record."""
