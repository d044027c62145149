"""Exception hierarchy for blobdrive."""


class BlobDriveError(Exception):
    """Base class for all blobdrive errors."""


class RemoteUnavailableError(BlobDriveError):
    """Remote service timed out, refused the connection or answered with an unexpected shape."""


class RetryableStoreError(RemoteUnavailableError):
    """Native client failure after which the connection state should be reset."""


class NotFoundError(BlobDriveError):
    """Record id is absent from the metadata store."""

    def __init__(self, record_id: str):
        super().__init__(f"File record not found: {record_id}")
        self.record_id = record_id


class PersistenceError(BlobDriveError):
    """Durable store could not be read or written."""


class ConfirmationPendingError(BlobDriveError):
    """A confirmation request is already outstanding."""


class NoPendingConfirmationError(BlobDriveError):
    """A decision was reported while no confirmation was outstanding."""
