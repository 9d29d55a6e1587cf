"""Canonical object keys derived from catalog lineage."""

from typing import Optional

from ..models.catalog import CatalogLineage
from ..models.media_file import StoredObject
from .sanitizer import sanitize, FALLBACK_SEGMENT


def _segment_fallback(kind: Optional[str]) -> str:
    return f"unknown-{sanitize(kind)}" if kind else FALLBACK_SEGMENT


def build_folder(lineage: CatalogLineage) -> str:
    """Join the sanitized lineage titles with ``/``."""
    return "/".join(
        sanitize(level.title, fallback=_segment_fallback(level.kind))
        for level in lineage
    )


def build_file_name(file_name: str, extension: Optional[str] = None,
                    disambiguator: Optional[str] = None) -> str:
    """Sanitized ``stem[-disambiguator]ext``.

    When ``extension`` is omitted it is taken from ``file_name``; when the
    name already ends with it the extension is not repeated.
    """
    name = file_name or ""
    if extension is None:
        dot = name.rfind(".")
        extension = name[dot:] if dot > 0 else ""
    if extension and not extension.startswith("."):
        extension = f".{extension}"
    if extension and name.lower().endswith(extension.lower()):
        name = name[: -len(extension)]

    stem = sanitize(name, fallback="file")
    if disambiguator:
        stem = f"{stem}-{sanitize(disambiguator)}"

    suffix = sanitize(extension, fallback="") if extension else ""
    return f"{stem}.{suffix}" if suffix else stem


def build_target_key(lineage: CatalogLineage, file_name: str,
                     extension: Optional[str] = None,
                     disambiguator: Optional[str] = None) -> str:
    """Deterministic key ``<level>/<level>/.../<file>`` for a lineage."""
    folder = build_folder(lineage)
    leaf = build_file_name(file_name, extension, disambiguator)
    return f"{folder}/{leaf}" if folder else leaf


class PathBuilder:
    """Applies the configured naming policy to stored objects."""

    def __init__(self, append_hash_suffix: bool = False):
        self.append_hash_suffix = append_hash_suffix

    def folder_for(self, lineage: CatalogLineage) -> str:
        return build_folder(lineage)

    def file_name_for(self, name: Optional[str], extension: Optional[str] = None,
                      content_hash: Optional[str] = None) -> str:
        """Leaf name for an object, with the hash appended when configured."""
        disambiguator = content_hash if self.append_hash_suffix else None
        return build_file_name(name or content_hash or "file", extension or None, disambiguator)

    def target_key_for(self, lineage: CatalogLineage, stored_object: StoredObject) -> str:
        folder = self.folder_for(lineage)
        leaf = self.file_name_for(stored_object.logical_name, stored_object.extension, stored_object.content_hash)
        return f"{folder}/{leaf}" if folder else leaf
