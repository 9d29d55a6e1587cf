"""SQLite catalog repository.

Reads the content management system's tables directly. The upload link table
has shipped under two names over the CMS's lifetime, and the course title
column under two spellings, so both are probed once when the repository is
opened and cached in a ``CatalogSchema``.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from ...domain.repositories import CatalogRepository, LESSON_TYPE
from ...domain.result import Result, Success, Failure
from ...exceptions import CatalogError
from ...models.catalog import CatalogLineage, LineageLevel, LinkRecord, LinkTarget
from ...models.media_file import StoredObject

logger = logging.getLogger(__name__)

LINK_TABLE_CANDIDATES = ("files_related_morphs", "files_related_mph")
COURSE_TITLE_CANDIDATES = ("course_title", "title")

# Owner type -> table holding the owner rows
ENTITY_TABLES = {
    LESSON_TYPE: "lessons",
    "api::module.module": "modules",
    "api::course.course": "courses",
}

_OBJECT_COLUMNS = ("id", "name", "ext", "mime", "hash", "size", "url", "provider_metadata")


@dataclass(frozen=True)
class CatalogSchema:
    """Table and column names discovered in the catalog database."""

    link_table: str
    course_title_column: str
    link_has_order: bool = False
    entity_tables: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def probe(cls, conn: sqlite3.Connection) -> "CatalogSchema":
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}

        link_table = next((t for t in LINK_TABLE_CANDIDATES if t in tables), None)
        if link_table is None:
            raise CatalogError(
                "Could not find upload relation table. Tried: " + ", ".join(LINK_TABLE_CANDIDATES)
            )

        for required in ("files", "lessons", "lessons_module_lnk", "modules", "modules_course_lnk", "courses"):
            if required not in tables:
                raise CatalogError(f"Catalog table '{required}' is missing")

        course_columns = {row[1] for row in conn.execute("PRAGMA table_info(courses)")}
        course_title = next((c for c in COURSE_TITLE_CANDIDATES if c in course_columns), None)
        if course_title is None:
            raise CatalogError("Table 'courses' has no title column")

        link_columns = {row[1] for row in conn.execute(f"PRAGMA table_info({link_table})")}

        return cls(
            link_table=link_table,
            course_title_column=course_title,
            link_has_order="order" in link_columns,
            entity_tables={t: name for t, name in ENTITY_TABLES.items() if name in tables},
        )


def _object_from(row: sqlite3.Row, prefix: str = "f_") -> StoredObject:
    return StoredObject.from_row({column: row[f"{prefix}{column}"] for column in _OBJECT_COLUMNS})


def _link_from(row: sqlite3.Row) -> LinkRecord:
    return LinkRecord(
        id=row["link_id"],
        object_id=row["file_id"],
        owner_entity_id=row["related_id"],
        owner_entity_type=row["related_type"],
        slot_name=row["field"],
    )


class SQLiteCatalogRepository(CatalogRepository):
    """Catalog repository over the CMS's SQLite database."""

    def __init__(self, db_path: Path, schema: Optional[CatalogSchema] = None):
        self.db_path = Path(db_path)
        if not self.db_path.exists():
            raise CatalogError(f"Catalog database not found: {self.db_path}")
        if schema is None:
            with self._connect() as conn:
                schema = CatalogSchema.probe(conn)
            logger.info(f"Using upload relation table: {schema.link_table}")
        self.schema = schema

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(f"file:{self.db_path}?mode=rw", uri=True)
        except sqlite3.Error as e:
            raise CatalogError(f"Cannot open catalog database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise CatalogError(f"Catalog query failed: {e}") from e
        finally:
            conn.close()

    def _object_select(self, alias: str = "f") -> str:
        return ", ".join(f"{alias}.{column} AS f_{column}" for column in _OBJECT_COLUMNS)

    def _link_select(self, alias: str = "frm") -> str:
        return (f"{alias}.id AS link_id, {alias}.file_id AS file_id, {alias}.related_id AS related_id, "
                f"{alias}.related_type AS related_type, {alias}.field AS field")

    async def get_lineage(self, entity_id: int) -> Optional[CatalogLineage]:
        course_title = self.schema.course_title_column
        with self._connect() as conn:
            row = conn.execute(
                f"""SELECT l.id AS lesson_id, l.title AS lesson_title,
                           m.id AS module_id, m.title AS module_title,
                           c.id AS course_id, c.{course_title} AS course_title
                    FROM lessons l
                    LEFT JOIN lessons_module_lnk lml ON lml.lesson_id = l.id
                    LEFT JOIN modules m ON m.id = lml.module_id
                    LEFT JOIN modules_course_lnk mcl ON mcl.module_id = m.id
                    LEFT JOIN courses c ON c.id = mcl.course_id
                    WHERE l.id = ?
                    LIMIT 1""",
                (entity_id,)
            ).fetchone()

        if row is None:
            return None
        return self._lineage_from(row)

    @staticmethod
    def _lineage_from(row: sqlite3.Row) -> CatalogLineage:
        return CatalogLineage((
            LineageLevel("course", row["course_title"], row["course_id"]),
            LineageLevel("module", row["module_title"], row["module_id"]),
            LineageLevel("lesson", row["lesson_title"], row["lesson_id"]),
        ))

    async def get_object(self, object_id: int) -> Optional[StoredObject]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {self._object_select()} FROM files f WHERE f.id = ?", (object_id,)
            ).fetchone()
        return _object_from(row) if row else None

    async def update_object_location(self, object_id: int, key: str, url: str, bucket: str) -> None:
        metadata = json.dumps({"key": key, "bucket": bucket})
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE files SET url = ?, provider_metadata = ? WHERE id = ?",
                (url, metadata, object_id)
            )
            if cursor.rowcount == 0:
                raise CatalogError(f"Stored object {object_id} not found")
        logger.debug(f"Catalog pointer for object {object_id} set to {key}")

    async def iter_link_targets(self, slot_names: Iterable[str], published_only: bool = True) -> List[LinkTarget]:
        slots = list(slot_names)
        if not slots:
            return []

        course_title = self.schema.course_title_column
        placeholders = ", ".join("?" for _ in slots)
        published = "AND l.published_at IS NOT NULL" if published_only else ""

        with self._connect() as conn:
            rows = conn.execute(
                f"""SELECT {self._link_select()}, {self._object_select()},
                           l.id AS lesson_id, l.title AS lesson_title,
                           m.id AS module_id, m.title AS module_title,
                           c.id AS course_id, c.{course_title} AS course_title
                    FROM {self.schema.link_table} frm
                    INNER JOIN files f ON f.id = frm.file_id
                    INNER JOIN lessons l ON l.id = frm.related_id
                    INNER JOIN lessons_module_lnk lml ON lml.lesson_id = l.id
                    INNER JOIN modules m ON m.id = lml.module_id
                    INNER JOIN modules_course_lnk mcl ON mcl.module_id = m.id
                    INNER JOIN courses c ON c.id = mcl.course_id
                    WHERE frm.related_type = ?
                      AND frm.field IN ({placeholders})
                      {published}
                    ORDER BY c.{course_title}, m.title, l.title, frm.id""",
                (LESSON_TYPE, *slots)
            ).fetchall()

        return [LinkTarget(_link_from(row), _object_from(row), self._lineage_from(row)) for row in rows]

    async def list_links(self, owner_entity_type: Optional[str] = None,
                         slot_names: Optional[Iterable[str]] = None) -> List[Tuple[LinkRecord, StoredObject]]:
        clauses = []
        params: List[Any] = []
        if owner_entity_type:
            clauses.append("frm.related_type = ?")
            params.append(owner_entity_type)
        if slot_names is not None:
            slots = list(slot_names)
            if not slots:
                return []
            clauses.append(f"frm.field IN ({', '.join('?' for _ in slots)})")
            params.extend(slots)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._connect() as conn:
            rows = conn.execute(
                f"""SELECT {self._link_select()}, {self._object_select()}
                    FROM {self.schema.link_table} frm
                    INNER JOIN files f ON f.id = frm.file_id
                    {where}
                    ORDER BY frm.id""",
                params
            ).fetchall()

        return [(_link_from(row), _object_from(row)) for row in rows]

    async def find_orphaned_links(self) -> List[LinkRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                f"""SELECT {self._link_select()}
                    FROM {self.schema.link_table} frm
                    LEFT JOIN files f ON f.id = frm.file_id
                    WHERE f.id IS NULL
                    ORDER BY frm.id"""
            ).fetchall()
        return [_link_from(row) for row in rows]

    async def find_dangling_links(self) -> List[LinkRecord]:
        dangling: List[LinkRecord] = []
        with self._connect() as conn:
            for owner_type, table in self.schema.entity_tables.items():
                rows = conn.execute(
                    f"""SELECT {self._link_select()}
                        FROM {self.schema.link_table} frm
                        LEFT JOIN {table} owner ON owner.id = frm.related_id
                        WHERE frm.related_type = ? AND owner.id IS NULL
                        ORDER BY frm.id""",
                    (owner_type,)
                ).fetchall()
                dangling.extend(_link_from(row) for row in rows)
        return dangling

    async def find_duplicate_links(self) -> List[LinkRecord]:
        table = self.schema.link_table
        with self._connect() as conn:
            rows = conn.execute(
                f"""SELECT {self._link_select()}
                    FROM {table} frm
                    WHERE frm.id NOT IN (
                        SELECT MIN(id) FROM {table}
                        GROUP BY file_id, related_id, related_type, field
                    )
                    ORDER BY frm.id"""
            ).fetchall()
        return [_link_from(row) for row in rows]

    async def delete_link(self, link_id: int) -> Result[int, str]:
        try:
            with self._connect() as conn:
                cursor = conn.execute(f"DELETE FROM {self.schema.link_table} WHERE id = ?", (link_id,))
                return Success(cursor.rowcount)
        except CatalogError as e:
            return Failure(f"Failed to delete link {link_id}: {e}")

    async def insert_object(self, name: str, ext: str, mime: str, content_hash: str,
                            size_kb: float, url: str, provider_metadata: Dict[str, Any]) -> StoredObject:
        with self._connect() as conn:
            cursor = conn.execute(
                """INSERT INTO files (name, ext, mime, hash, size, url, provider_metadata)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (name, ext, mime, content_hash, size_kb, url, json.dumps(provider_metadata))
            )
            object_id = cursor.lastrowid

        return StoredObject.from_row({
            "id": object_id,
            "name": name,
            "ext": ext,
            "mime": mime,
            "hash": content_hash,
            "size": size_kb,
            "url": url,
            "provider_metadata": provider_metadata,
        })

    async def insert_link(self, object_id: int, owner_entity_id: int,
                          owner_entity_type: str, slot_name: Optional[str]) -> LinkRecord:
        table = self.schema.link_table
        with self._connect() as conn:
            if self.schema.link_has_order:
                cursor = conn.execute(
                    f"""INSERT INTO {table} (file_id, related_id, related_type, field, "order")
                        VALUES (?, ?, ?, ?, 1)""",
                    (object_id, owner_entity_id, owner_entity_type, slot_name)
                )
            else:
                cursor = conn.execute(
                    f"INSERT INTO {table} (file_id, related_id, related_type, field) VALUES (?, ?, ?, ?)",
                    (object_id, owner_entity_id, owner_entity_type, slot_name)
                )
            link_id = cursor.lastrowid

        return LinkRecord(link_id, object_id, owner_entity_id, owner_entity_type, slot_name)

    async def find_slot_occupant(self, owner_entity_id: int, owner_entity_type: str,
                                 slot_name: str) -> Optional[Tuple[LinkRecord, StoredObject]]:
        with self._connect() as conn:
            row = conn.execute(
                f"""SELECT {self._link_select()}, {self._object_select()}
                    FROM {self.schema.link_table} frm
                    INNER JOIN files f ON f.id = frm.file_id
                    WHERE frm.related_id = ? AND frm.related_type = ? AND frm.field = ?
                    ORDER BY frm.id
                    LIMIT 1""",
                (owner_entity_id, owner_entity_type, slot_name)
            ).fetchone()
        return (_link_from(row), _object_from(row)) if row else None

    async def delete_object(self, object_id: int) -> None:
        with self._connect() as conn:
            conn.execute(f"DELETE FROM {self.schema.link_table} WHERE file_id = ?", (object_id,))
            conn.execute("DELETE FROM files WHERE id = ?", (object_id,))
