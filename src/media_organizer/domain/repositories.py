"""Catalog repository interface.

The catalog is the relational database owned by the content management
system. The organizer reads entity lineage and link rows from it and writes
back object locations.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..models.catalog import CatalogLineage, LinkRecord, LinkTarget
from ..models.media_file import StoredObject
from .result import Result

LESSON_TYPE = "api::lesson.lesson"


class CatalogRepository(ABC):
    """Read/write access to the catalog."""

    @abstractmethod
    async def get_lineage(self, entity_id: int) -> Optional[CatalogLineage]:
        """Lineage of an owner entity, or None when the entity does not exist."""
        pass

    @abstractmethod
    async def get_object(self, object_id: int) -> Optional[StoredObject]:
        pass

    @abstractmethod
    async def update_object_location(self, object_id: int, key: str, url: str, bucket: str) -> None:
        """Point a stored object at its new key."""
        pass

    @abstractmethod
    async def iter_link_targets(self, slot_names: Iterable[str], published_only: bool = True) -> List[LinkTarget]:
        """Every link whose owner has a complete lineage."""
        pass

    @abstractmethod
    async def list_links(self, owner_entity_type: Optional[str] = None,
                         slot_names: Optional[Iterable[str]] = None) -> List[Tuple[LinkRecord, StoredObject]]:
        """Links joined with their stored objects."""
        pass

    @abstractmethod
    async def find_orphaned_links(self) -> List[LinkRecord]:
        """Links whose object no longer exists."""
        pass

    @abstractmethod
    async def find_dangling_links(self) -> List[LinkRecord]:
        """Links whose owner entity no longer exists."""
        pass

    @abstractmethod
    async def find_duplicate_links(self) -> List[LinkRecord]:
        """Surplus copies of links, never including the copy that is kept."""
        pass

    @abstractmethod
    async def delete_link(self, link_id: int) -> Result[int, str]:
        """Delete one link row; the success value is the number of rows removed."""
        pass

    @abstractmethod
    async def insert_object(self, name: str, ext: str, mime: str, content_hash: str,
                            size_kb: float, url: str, provider_metadata: Dict[str, Any]) -> StoredObject:
        pass

    @abstractmethod
    async def insert_link(self, object_id: int, owner_entity_id: int,
                          owner_entity_type: str, slot_name: Optional[str]) -> LinkRecord:
        pass

    @abstractmethod
    async def find_slot_occupant(self, owner_entity_id: int, owner_entity_type: str,
                                 slot_name: str) -> Optional[Tuple[LinkRecord, StoredObject]]:
        pass

    @abstractmethod
    async def delete_object(self, object_id: int) -> None:
        """Delete a stored object row together with its links."""
        pass
