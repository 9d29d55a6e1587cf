"""Relocation journal.

Every executed relocation pass is recorded as a session in a small SQLite
database, with one record per relocate attempt, so that operators can see
what a run moved and where it left objects.
"""

import json
import logging
import sqlite3
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..domain.result import Result, Success, Failure
from ..exceptions import JournalError
from ..models.relocation import RelocateOutcome

logger = logging.getLogger(__name__)

DEFAULT_JOURNAL_PATH = Path.home() / ".cache" / "media-organizer" / "relocations.db"

COUNTER_NAMES = ("processed", "moved", "skipped", "unresolvable", "errored")


class RecordStatus(Enum):
    """Status of a journaled relocate attempt."""
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class RelocationRecord:
    """One relocate attempt."""
    id: str
    session_id: str
    timestamp: datetime
    object_id: int
    source_key: Optional[str]
    destination_key: Optional[str]
    status: RecordStatus
    outcome: Optional[RelocateOutcome] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
            "object_id": self.object_id,
            "source_key": self.source_key,
            "destination_key": self.destination_key,
            "status": self.status.value,
            "outcome": self.outcome.value if self.outcome else None,
            "error_message": self.error_message,
        }


@dataclass(slots=True, frozen=True)
class RelocationSession:
    """One executed run of the reconciler."""
    session_id: str
    start_time: datetime
    end_time: Optional[datetime]
    bucket: str
    status: str  # "running", "completed", "failed"
    counters: Dict[str, int] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "bucket": self.bucket,
            "status": self.status,
            "counters": dict(self.counters),
            "metadata": self.metadata,
        }


def _session_from_row(row: sqlite3.Row) -> RelocationSession:
    return RelocationSession(
        session_id=row["session_id"],
        start_time=datetime.fromisoformat(row["start_time"]),
        end_time=datetime.fromisoformat(row["end_time"]) if row["end_time"] else None,
        bucket=row["bucket"],
        status=row["status"],
        counters={name: row[name] for name in COUNTER_NAMES},
        metadata=json.loads(row["metadata"]) if row["metadata"] else {},
    )


def _record_from_row(row: sqlite3.Row) -> RelocationRecord:
    return RelocationRecord(
        id=row["id"],
        session_id=row["session_id"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
        object_id=row["object_id"],
        source_key=row["source_key"],
        destination_key=row["destination_key"],
        status=RecordStatus(row["status"]),
        outcome=RelocateOutcome(row["outcome"]) if row["outcome"] else None,
        error_message=row["error_message"],
    )


class RelocationJournal:
    """Persistent history of relocation sessions."""

    def __init__(self, db_path: Optional[Path] = None):
        if db_path is None:
            db_path = DEFAULT_JOURNAL_PATH
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db_path = db_path
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_database(self) -> None:
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS relocation_sessions (
                    session_id TEXT PRIMARY KEY,
                    start_time TEXT NOT NULL,
                    end_time TEXT,
                    bucket TEXT NOT NULL,
                    status TEXT NOT NULL,
                    processed INTEGER DEFAULT 0,
                    moved INTEGER DEFAULT 0,
                    skipped INTEGER DEFAULT 0,
                    unresolvable INTEGER DEFAULT 0,
                    errored INTEGER DEFAULT 0,
                    metadata TEXT
                );

                CREATE TABLE IF NOT EXISTS relocation_records (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    object_id INTEGER NOT NULL,
                    source_key TEXT,
                    destination_key TEXT,
                    status TEXT NOT NULL,
                    outcome TEXT,
                    error_message TEXT,
                    FOREIGN KEY (session_id) REFERENCES relocation_sessions(session_id)
                );

                CREATE INDEX IF NOT EXISTS idx_records_session ON relocation_records(session_id);
            """)
        conn.close()

    async def start_session(self, session_id: str, bucket: str,
                            metadata: Optional[Dict[str, Any]] = None) -> Result[RelocationSession, str]:
        """Open a new session in the running state."""
        session = RelocationSession(
            session_id=session_id,
            start_time=datetime.now(),
            end_time=None,
            bucket=bucket,
            status="running",
            counters={name: 0 for name in COUNTER_NAMES},
            metadata=metadata or {},
        )
        try:
            with self._connect() as conn:
                conn.execute(
                    """INSERT INTO relocation_sessions (session_id, start_time, bucket, status, metadata)
                       VALUES (?, ?, ?, ?, ?)""",
                    (session_id, session.start_time.isoformat(), bucket, session.status,
                     json.dumps(session.metadata))
                )
            conn.close()
            return Success(session)
        except sqlite3.Error as e:
            return Failure(f"Failed to start session: {e}")

    async def record_relocation(self, record: RelocationRecord) -> Result[None, str]:
        try:
            with self._connect() as conn:
                conn.execute(
                    """INSERT INTO relocation_records
                       (id, session_id, timestamp, object_id, source_key, destination_key,
                        status, outcome, error_message)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        record.id,
                        record.session_id,
                        record.timestamp.isoformat(),
                        record.object_id,
                        record.source_key,
                        record.destination_key,
                        record.status.value,
                        record.outcome.value if record.outcome else None,
                        record.error_message,
                    )
                )
            conn.close()
            return Success(None)
        except sqlite3.Error as e:
            return Failure(f"Failed to record relocation: {e}")

    async def end_session(self, session_id: str, status: str = "completed",
                          counters: Optional[Dict[str, int]] = None) -> Result[RelocationSession, str]:
        """Close a session, storing the final counters."""
        counters = counters or {}
        assignments = ", ".join(f"{name} = ?" for name in COUNTER_NAMES if name in counters)
        values = [counters[name] for name in COUNTER_NAMES if name in counters]
        try:
            with self._connect() as conn:
                conn.execute(
                    f"""UPDATE relocation_sessions
                        SET end_time = ?, status = ?{', ' + assignments if assignments else ''}
                        WHERE session_id = ?""",
                    (datetime.now().isoformat(), status, *values, session_id)
                )
                row = conn.execute(
                    "SELECT * FROM relocation_sessions WHERE session_id = ?", (session_id,)
                ).fetchone()
            conn.close()
        except sqlite3.Error as e:
            return Failure(f"Failed to end session: {e}")

        if row is None:
            return Failure(f"Session {session_id} not found")
        return Success(_session_from_row(row))

    async def get_session(self, session_id: str) -> Optional[RelocationSession]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM relocation_sessions WHERE session_id = ?", (session_id,)
            ).fetchone()
        conn.close()
        return _session_from_row(row) if row else None

    async def get_session_records(self, session_id: str,
                                  status_filter: Optional[RecordStatus] = None) -> List[RelocationRecord]:
        """All records of a session in the order they were written."""
        with self._connect() as conn:
            if status_filter:
                rows = conn.execute(
                    """SELECT * FROM relocation_records
                       WHERE session_id = ? AND status = ?
                       ORDER BY timestamp, rowid""",
                    (session_id, status_filter.value)
                ).fetchall()
            else:
                rows = conn.execute(
                    """SELECT * FROM relocation_records
                       WHERE session_id = ?
                       ORDER BY timestamp, rowid""",
                    (session_id,)
                ).fetchall()
        conn.close()
        return [_record_from_row(row) for row in rows]

    async def list_sessions(self, limit: int = 50) -> List[RelocationSession]:
        """Most recent sessions first."""
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT * FROM relocation_sessions
                   ORDER BY start_time DESC, rowid DESC
                   LIMIT ?""",
                (limit,)
            ).fetchall()
        conn.close()
        return [_session_from_row(row) for row in rows]


@asynccontextmanager
async def journal_session(journal: RelocationJournal, bucket: str,
                          session_id: Optional[str] = None,
                          metadata: Optional[Dict[str, Any]] = None):
    """Open a session and mark it completed or failed on exit.

    The yielded dict collects the final counters; the caller fills it before
    the block ends.
    """
    if session_id is None:
        session_id = datetime.now().strftime("%Y%m%d_%H%M%S_%f")

    session_result = await journal.start_session(session_id, bucket, metadata)
    if session_result.is_failure():
        raise JournalError(session_result.error())

    counters: Dict[str, int] = {}
    try:
        yield session_result.value(), counters
    except BaseException:
        await journal.end_session(session_id, "failed", counters)
        raise
    await journal.end_session(session_id, "completed", counters)


def create_relocation_record(session_id: str, object_id: int,
                             source_key: Optional[str], destination_key: Optional[str],
                             outcome: Optional[RelocateOutcome] = None,
                             error_message: Optional[str] = None) -> RelocationRecord:
    """Build a record with a generated id; failed when an error is given."""
    return RelocationRecord(
        id=str(uuid.uuid4()),
        session_id=session_id,
        timestamp=datetime.now(),
        object_id=object_id,
        source_key=source_key,
        destination_key=destination_key,
        status=RecordStatus.FAILED if error_message else RecordStatus.COMPLETED,
        outcome=outcome,
        error_message=error_message,
    )
