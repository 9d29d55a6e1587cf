"""Custom exceptions for media organizer."""

from typing import List, Optional


class MediaOrganizerError(Exception):
    """Base exception for media organizer errors."""
    pass


class ConfigurationError(MediaOrganizerError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class CatalogError(MediaOrganizerError):
    """Raised when the catalog database cannot be read or updated."""
    pass


class StorageError(MediaOrganizerError):
    """Raised when an object store call fails."""
    pass


class ObjectNotFoundError(StorageError):
    """Raised when an object does not exist in the store."""

    def __init__(self, key: str):
        super().__init__(f"Object not found: {key}")
        self.key = key


class RelocationError(MediaOrganizerError):
    """Raised when copying or deleting during a relocate fails."""

    def __init__(self, message: str, source_key: str, destination_key: str,
                 cause: Optional[BaseException] = None):
        super().__init__(message)
        self.source_key = source_key
        self.destination_key = destination_key
        self.cause = cause


class JournalError(MediaOrganizerError):
    """Raised when the relocation journal cannot record a session."""
    pass
