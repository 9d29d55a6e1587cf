"""Media Organizer

Keeps media files in an S3 bucket arranged under folders derived from the
course catalog that owns them, and keeps the catalog pointing at them.
"""

__version__ = "0.1.0"

from .core.sanitizer import sanitize
from .core.path_builder import PathBuilder, build_target_key
from .core.key_resolver import KeyResolver
from .core.upload_context import FileContext, UploadContext
from .core.mover import ObjectMover
from .core.reconciler import BatchReconciler, RelocationReport, HygieneReport
from .core.operation_history import RelocationJournal, journal_session
from .core.upload import StorageProvider, UploadOrchestrator
from .core.media_signing import sign_media_urls
from .models.config import Config, load_config
from .exceptions import MediaOrganizerError

__all__ = [
    "sanitize",
    "PathBuilder",
    "build_target_key",
    "KeyResolver",
    "FileContext",
    "UploadContext",
    "ObjectMover",
    "BatchReconciler",
    "RelocationReport",
    "HygieneReport",
    "RelocationJournal",
    "journal_session",
    "StorageProvider",
    "UploadOrchestrator",
    "sign_media_urls",
    "Config",
    "load_config",
    "MediaOrganizerError",
]
