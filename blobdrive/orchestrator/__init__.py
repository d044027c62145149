"""Orchestration of uploads and record lifecycle."""
from .core import DriveOrchestrator
from .batch_upload import UploadOrchestrator
from .confirmation import AutoApproveSurface, ConfirmationBridge
from .library import DeletionOrchestrator, FileLibrary

__all__ = [
    "DriveOrchestrator",
    "UploadOrchestrator",
    "AutoApproveSurface",
    "ConfirmationBridge",
    "DeletionOrchestrator",
    "FileLibrary",
]
