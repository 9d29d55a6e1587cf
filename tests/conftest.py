"""Shared fixtures: a CMS-shaped SQLite catalog and an in-memory store."""

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

import pytest

from media_organizer.domain.repositories import LESSON_TYPE
from media_organizer.infrastructure.object_store import InMemoryObjectStore
from media_organizer.infrastructure.repositories import SQLiteCatalogRepository


def create_schema(conn: sqlite3.Connection, link_table: str, course_title_column: str) -> None:
    conn.executescript(f"""
        CREATE TABLE files (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT,
            ext TEXT,
            mime TEXT,
            hash TEXT,
            size REAL,
            url TEXT,
            provider_metadata TEXT
        );
        CREATE TABLE {link_table} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            file_id INTEGER,
            related_id INTEGER,
            related_type TEXT,
            field TEXT,
            "order" INTEGER
        );
        CREATE TABLE lessons (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            document_id TEXT,
            title TEXT,
            published_at TEXT
        );
        CREATE TABLE lessons_module_lnk (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            lesson_id INTEGER,
            module_id INTEGER
        );
        CREATE TABLE modules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT
        );
        CREATE TABLE modules_course_lnk (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            module_id INTEGER,
            course_id INTEGER
        );
        CREATE TABLE courses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            {course_title_column} TEXT
        );
    """)


class CatalogFixture:
    """Builds catalog rows for a test."""

    def __init__(self, path: Path, link_table: str = "files_related_mph",
                 course_title_column: str = "course_title", bucket: str = "test-bucket"):
        self.path = path
        self.link_table = link_table
        self.course_title_column = course_title_column
        self.bucket = bucket
        with self._connect() as conn:
            create_schema(conn, link_table, course_title_column)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def _insert(self, sql: str, params: tuple) -> int:
        conn = self._connect()
        with conn:
            row_id = conn.execute(sql, params).lastrowid
        conn.close()
        return row_id

    def query(self, sql: str, params: tuple = ()):
        conn = self._connect()
        rows = conn.execute(sql, params).fetchall()
        conn.close()
        return rows

    def execute(self, sql: str, params: tuple = ()) -> None:
        conn = self._connect()
        with conn:
            conn.execute(sql, params)
        conn.close()

    def add_course(self, title: str) -> int:
        return self._insert(f"INSERT INTO courses ({self.course_title_column}) VALUES (?)", (title,))

    def add_module(self, title: str, course_id: Optional[int] = None) -> int:
        module_id = self._insert("INSERT INTO modules (title) VALUES (?)", (title,))
        if course_id is not None:
            self._insert("INSERT INTO modules_course_lnk (module_id, course_id) VALUES (?, ?)",
                         (module_id, course_id))
        return module_id

    def add_lesson(self, title: str, module_id: Optional[int] = None, published: bool = True) -> int:
        lesson_id = self._insert(
            "INSERT INTO lessons (document_id, title, published_at) VALUES (?, ?, ?)",
            (f"doc-{title}", title, datetime.now().isoformat() if published else None)
        )
        if module_id is not None:
            self._insert("INSERT INTO lessons_module_lnk (lesson_id, module_id) VALUES (?, ?)",
                         (lesson_id, module_id))
        return lesson_id

    def add_lineage(self, course: str, module: str, lesson: str, published: bool = True) -> int:
        """Course, module and lesson chained together; returns the lesson id."""
        course_id = self.add_course(course)
        module_id = self.add_module(module, course_id)
        return self.add_lesson(lesson, module_id, published)

    def add_file(self, name: str, ext: str = ".pdf", mime: str = "application/pdf",
                 content_hash: Optional[str] = None, key: Optional[str] = None,
                 url: Optional[str] = None, provider_metadata: Optional[str] = None) -> int:
        if provider_metadata is None and key is not None:
            provider_metadata = json.dumps({"key": key, "bucket": self.bucket})
        return self._insert(
            "INSERT INTO files (name, ext, mime, hash, size, url, provider_metadata) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (name, ext, mime, content_hash, 1.5, url, provider_metadata)
        )

    def add_link(self, file_id: int, related_id: int, field: str = "student_file",
                 related_type: str = LESSON_TYPE) -> int:
        return self._insert(
            f"INSERT INTO {self.link_table} (file_id, related_id, related_type, field, \"order\") "
            f"VALUES (?, ?, ?, ?, 1)",
            (file_id, related_id, related_type, field)
        )

    def link_ids(self):
        return [row["id"] for row in self.query(f"SELECT id FROM {self.link_table} ORDER BY id")]

    def file_row(self, file_id: int):
        return self.query("SELECT * FROM files WHERE id = ?", (file_id,))[0]

    def metadata_key(self, file_id: int) -> Optional[str]:
        raw = self.file_row(file_id)["provider_metadata"]
        return json.loads(raw).get("key") if raw else None

    def repository(self) -> SQLiteCatalogRepository:
        return SQLiteCatalogRepository(self.path)


@pytest.fixture
def catalog(tmp_path):
    """Catalog using the older link table name."""
    return CatalogFixture(tmp_path / "catalog.db")


@pytest.fixture
def make_catalog(tmp_path):
    """Factory for catalogs with a chosen schema flavour."""
    counter = {"n": 0}

    def factory(link_table: str = "files_related_mph", course_title_column: str = "course_title"):
        counter["n"] += 1
        return CatalogFixture(tmp_path / f"catalog_{counter['n']}.db", link_table, course_title_column)

    return factory


@pytest.fixture
def store():
    return InMemoryObjectStore(bucket="test-bucket", region="us-east-1")
