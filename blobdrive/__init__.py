"""
blobdrive - upload orchestration and file-record lifecycle for a
content-addressed blob store.

Usage:
    from blobdrive import DriveOrchestrator, DriveConfig, UploadItem, AutoApproveSurface

    async with DriveOrchestrator(DriveConfig.from_env(), surface=AutoApproveSurface()) as drive:
        await drive.load()

        # Estimate, confirm, upload and persist a batch
        result = await drive.upload([UploadItem.from_path(path)])

        # Lifecycle
        record = result.records[0]
        await drive.toggle_star(record.id)
        await drive.trash(record.id)
        await drive.restore(record.id)
        await drive.permanently_delete(record.id)
"""
from .orchestrator import (
    DriveOrchestrator,
    UploadOrchestrator,
    AutoApproveSurface,
    ConfirmationBridge,
    DeletionOrchestrator,
    FileLibrary,
)
from .models import (
    BatchResult,
    ConfirmationDecision,
    DriveConfig,
    FileRecord,
    ItemStatus,
    MediaKind,
    PriceQuote,
    PriceTier,
    PricingRates,
    UploadItem,
)
from .services import (
    ExchangeRateCache,
    MetadataStore,
    PricingEstimator,
    UploadFallbackChain,
    UploadOptions,
    is_synthetic,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "DriveOrchestrator",
    "UploadOrchestrator",
    "DeletionOrchestrator",
    "FileLibrary",
    "ConfirmationBridge",
    "AutoApproveSurface",
    # Models
    "BatchResult",
    "ConfirmationDecision",
    "DriveConfig",
    "FileRecord",
    "ItemStatus",
    "MediaKind",
    "PriceQuote",
    "PriceTier",
    "PricingRates",
    "UploadItem",
    # Services
    "ExchangeRateCache",
    "MetadataStore",
    "PricingEstimator",
    "UploadFallbackChain",
    "UploadOptions",
    "is_synthetic",
]
