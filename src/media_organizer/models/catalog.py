"""Catalog records: lineage of owning entities and the link table rows."""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from .media_file import StoredObject


@dataclass(frozen=True, slots=True)
class LineageLevel:
    """One named level of a catalog hierarchy, e.g. a course or a lesson."""

    kind: str
    title: Optional[str]
    entity_id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class CatalogLineage:
    """Ordered chain of ancestor levels, outermost first."""

    levels: Tuple[LineageLevel, ...]

    @classmethod
    def of(cls, *titles: Optional[str], kinds: Tuple[str, ...] = ("course", "module", "lesson")) -> "CatalogLineage":
        """Build a lineage from bare titles, mostly for tests and scripts."""
        if len(titles) > len(kinds):
            kinds = kinds + tuple(f"level{i}" for i in range(len(kinds), len(titles)))
        return cls(tuple(LineageLevel(kind=kind, title=title) for kind, title in zip(kinds, titles)))

    def __iter__(self) -> Iterator[LineageLevel]:
        return iter(self.levels)

    def __len__(self) -> int:
        return len(self.levels)

    @property
    def leaf(self) -> Optional[LineageLevel]:
        return self.levels[-1] if self.levels else None

    def titles(self) -> Tuple[Optional[str], ...]:
        return tuple(level.title for level in self.levels)

    @property
    def is_complete(self) -> bool:
        """Whether every ancestor entity was found in the catalog."""
        return bool(self.levels) and all(level.entity_id is not None for level in self.levels)


@dataclass(frozen=True, slots=True)
class LinkRecord:
    """Join-table row: ``object_id`` fills ``slot_name`` on an owner entity."""

    id: int
    object_id: int
    owner_entity_id: int
    owner_entity_type: str
    slot_name: Optional[str]

    @property
    def identity(self) -> Tuple[int, int, str, Optional[str]]:
        """Fields that make two rows duplicates of each other."""
        return (self.object_id, self.owner_entity_id, self.owner_entity_type, self.slot_name)


@dataclass(frozen=True, slots=True)
class LinkTarget:
    """A link joined with its stored object and the owner's lineage."""

    link: LinkRecord
    stored_object: StoredObject
    lineage: CatalogLineage
