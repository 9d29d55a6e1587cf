"""Core engine: naming, key resolution, relocation and reconciliation."""

from .sanitizer import sanitize
from .path_builder import PathBuilder, build_folder, build_target_key
from .key_resolver import KeyResolver, KeyResolution, default_strategies
from .upload_context import FileContext, UploadContext
from .mover import ObjectMover
from .reconciler import BatchReconciler, RelocationReport, HygieneReport, ItemResult
from .operation_history import RelocationJournal, journal_session
from .upload import StorageProvider, UploadOrchestrator
from .media_signing import resolve_media_key, sign_media_urls

__all__ = [
    "sanitize",
    "PathBuilder",
    "build_folder",
    "build_target_key",
    "KeyResolver",
    "KeyResolution",
    "default_strategies",
    "FileContext",
    "UploadContext",
    "ObjectMover",
    "BatchReconciler",
    "RelocationReport",
    "HygieneReport",
    "ItemResult",
    "RelocationJournal",
    "journal_session",
    "StorageProvider",
    "UploadOrchestrator",
    "resolve_media_key",
    "sign_media_urls",
]
