"""Stored object model representing media files held in the object store."""

import json
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Dict, Optional, Union

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def parse_provider_metadata(raw: Union[str, bytes, Dict[str, Any], None]) -> Dict[str, Any]:
    """Decode the provider metadata column, tolerating junk.

    The column is written by several generations of upload code, so it may
    hold a JSON string, an already-decoded mapping, or garbage.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return decoded if isinstance(decoded, dict) else {}


@dataclass(slots=True)
class StoredObject:
    """A binary object accepted by the store and tracked by the catalog."""

    id: int
    logical_name: str
    extension: str = ""
    content_type: str = DEFAULT_CONTENT_TYPE
    content_hash: Optional[str] = None
    current_key: Optional[str] = None
    size_bytes: Optional[float] = None
    url: Optional[str] = None
    provider_metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "StoredObject":
        """Build from a ``files`` table row."""
        metadata = parse_provider_metadata(row.get("provider_metadata"))
        key = metadata.get("key")
        return cls(
            id=row["id"],
            logical_name=row.get("name") or "",
            extension=row.get("ext") or "",
            content_type=row.get("mime") or DEFAULT_CONTENT_TYPE,
            content_hash=row.get("hash"),
            current_key=key if isinstance(key, str) and key else None,
            size_bytes=row.get("size"),
            url=row.get("url"),
            provider_metadata=metadata,
        )

    @property
    def stem(self) -> str:
        """Logical name without its extension."""
        name = self.logical_name or self.content_hash or "file"
        if self.extension and name.lower().endswith(self.extension.lower()):
            return name[: -len(self.extension)]
        return PurePosixPath(name).stem or name

    def get_display_name(self) -> str:
        return f"#{self.id} {self.logical_name}" if self.logical_name else f"#{self.id}"


@dataclass(slots=True)
class IncomingFile:
    """A file handed to the upload flow before it reaches the store."""

    name: str
    body: bytes
    content_type: str = DEFAULT_CONTENT_TYPE
    slot_name: Optional[str] = None
    hash: Optional[str] = None
    key: Optional[str] = None
    url: Optional[str] = None
    provider_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def extension(self) -> str:
        return PurePosixPath(self.name).suffix

    @property
    def stem(self) -> str:
        return PurePosixPath(self.name).stem

    @property
    def size_kb(self) -> float:
        return round(len(self.body) / 1024, 2)


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Result of a HEAD request against the store."""

    key: str
    size: int
    etag: Optional[str] = None
    content_type: Optional[str] = None

    @property
    def is_multipart(self) -> bool:
        return bool(self.etag and "-" in self.etag)
