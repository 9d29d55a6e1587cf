"""Data models for media organizer."""

from .media_file import StoredObject, IncomingFile, ObjectHead, parse_provider_metadata
from .catalog import CatalogLineage, LineageLevel, LinkRecord, LinkTarget
from .relocation import RelocatePlan, RelocateOutcome
from .config import Config, StorageConfig, DatabaseConfig, ReorganizeConfig, load_config, save_config

__all__ = [
    "StoredObject",
    "IncomingFile",
    "ObjectHead",
    "parse_provider_metadata",
    "CatalogLineage",
    "LineageLevel",
    "LinkRecord",
    "LinkTarget",
    "RelocatePlan",
    "RelocateOutcome",
    "Config",
    "StorageConfig",
    "DatabaseConfig",
    "ReorganizeConfig",
    "load_config",
    "save_config",
]
