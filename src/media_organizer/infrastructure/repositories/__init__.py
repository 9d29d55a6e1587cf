"""Catalog repository implementations."""

from .sqlite_catalog import SQLiteCatalogRepository, CatalogSchema

__all__ = ["SQLiteCatalogRepository", "CatalogSchema"]
