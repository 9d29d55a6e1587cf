"""Object store adapters."""

from .base import ObjectStore, ListPage
from .memory_store import InMemoryObjectStore
from .s3_store import S3ObjectStore

__all__ = ["ObjectStore", "ListPage", "InMemoryObjectStore", "S3ObjectStore"]
