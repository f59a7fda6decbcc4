"""SQLite storage adapter.

Implements the core MasterStorePort using a simple SQLite database.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional

from core.config import GLOBAL_MASTER
from core.errors import NameConflictError, PersistenceError
from core.masters import normalize_master_name
from core.models import MasterSet, ProcessingLogEntry


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _master_from_row(row: sqlite3.Row) -> MasterSet:
    return MasterSet(
        id=int(row["id"]),
        name=row["tag_name"],
        phone_count=int(row["phone_count"]),
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the MasterStorePort contract."""

    def __init__(self, db_path: str, global_master: str = GLOBAL_MASTER) -> None:
        self._db_path = db_path
        self._global_master = global_master

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside a transaction, closing it afterwards.

        Any sqlite3 failure is re-raised as PersistenceError so callers only
        deal with core error types.
        """

        try:
            conn = sqlite3.connect(self._db_path, timeout=30)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open database {self._db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc)) from exc
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create tables if they do not exist and seed the global master.

        Tables:
        - phone_numbers: catalogue of every normalized phone ever discovered
        - master_lists: named master sets with a maintained phone_count
        - phone_master_mapping: many-to-many membership between the two
        - processing_logs: append-only log, one row per batch
        """

        parent = Path(self._db_path).parent
        parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            # Fields:
            # - normalized_phone: 10-digit canonical key (UNIQUE)
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS phone_numbers (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    normalized_phone TEXT NOT NULL UNIQUE,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            # Fields:
            # - tag_name: upper-cased master name (UNIQUE)
            # - phone_count: recomputed from phone_master_mapping after every merge
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS master_lists (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    tag_name TEXT NOT NULL UNIQUE,
                    phone_count INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )
            # The composite primary key makes membership inserts idempotent.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS phone_master_mapping (
                    phone_id INTEGER NOT NULL REFERENCES phone_numbers(id),
                    master_list_id INTEGER NOT NULL REFERENCES master_lists(id),
                    PRIMARY KEY (phone_id, master_list_id)
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_mapping_master
                ON phone_master_mapping (master_list_id)
                """
            )
            # Fields:
            # - batch_name: batch id shared with artifact locations
            # - source_tag: comma-separated source tags of the batch
            # - scrubbed_against / artifact_locations: JSON documents
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS processing_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    batch_name TEXT NOT NULL,
                    source_tag TEXT,
                    files_processed INTEGER,
                    scrubbed_against TEXT,
                    original_count INTEGER,
                    duplicates_removed INTEGER,
                    final_count INTEGER,
                    artifact_locations TEXT,
                    processed_at TIMESTAMP NOT NULL
                )
                """
            )
        self.find_or_create_master(self._global_master)

    def load_phones(self, names: Iterable[str]) -> set[str]:
        """Return the distinct phones mapped to any of the named masters."""

        names = list(names)
        if not names:
            return set()
        placeholders = ",".join("?" for _ in names)
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT DISTINCT pn.normalized_phone
                FROM phone_numbers pn
                JOIN phone_master_mapping pmm ON pn.id = pmm.phone_id
                JOIN master_lists ml ON pmm.master_list_id = ml.id
                WHERE ml.tag_name IN ({placeholders})
                """,
                names,
            ).fetchall()
        return {row["normalized_phone"] for row in rows}

    def get_master(self, name: str) -> Optional[MasterSet]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM master_lists WHERE tag_name = ?",
                (normalize_master_name(name),),
            ).fetchone()
        return _master_from_row(row) if row else None

    def create_master(self, name: str) -> MasterSet:
        """Insert a new master with a zero count; raise NameConflictError if taken."""

        tag_name = normalize_master_name(name)
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO master_lists (tag_name, phone_count, created_at, updated_at)
                VALUES (?, 0, ?, ?)
                """,
                (tag_name, now, now),
            )
            master_id = cur.lastrowid
            created = cur.rowcount == 1
        if not created:
            raise NameConflictError(f'Master list "{tag_name}" already exists')
        return MasterSet(
            id=int(master_id),
            name=tag_name,
            phone_count=0,
            created_at=_parse_ts(now),
            updated_at=_parse_ts(now),
        )

    def find_or_create_master(self, name: str) -> MasterSet:
        """Return the named master, creating it if needed.

        A concurrent creator winning the race is handled by re-fetching.
        """

        existing = self.get_master(name)
        if existing is not None:
            return existing
        try:
            return self.create_master(name)
        except NameConflictError:
            existing = self.get_master(name)
            if existing is None:
                raise PersistenceError(f"Master {name} vanished after a name conflict")
            return existing

    def list_masters(self) -> list[MasterSet]:
        """Return all masters, global first and the rest alphabetically."""

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM master_lists
                ORDER BY CASE WHEN tag_name = ? THEN 0 ELSE 1 END, tag_name ASC
                """,
                (self._global_master,),
            ).fetchall()
        return [_master_from_row(row) for row in rows]

    def insert_phones(self, numbers: Iterable[str]) -> int:
        """Insert phones that are not catalogued yet and return how many were new."""

        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            before = conn.total_changes
            conn.executemany(
                "INSERT OR IGNORE INTO phone_numbers (normalized_phone, created_at) VALUES (?, ?)",
                ((number, now) for number in numbers),
            )
            return conn.total_changes - before

    def insert_memberships(self, master_id: int, numbers: Iterable[str]) -> int:
        """Map catalogued phones to a master, ignoring pairs that already exist."""

        with self._connect() as conn:
            # Temp tables live per connection, so each call starts clean.
            conn.execute("CREATE TEMP TABLE IF NOT EXISTS temp_phones (normalized_phone TEXT NOT NULL)")
            conn.execute("DELETE FROM temp_phones")
            conn.executemany(
                "INSERT INTO temp_phones (normalized_phone) VALUES (?)",
                ((number,) for number in numbers),
            )
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO phone_master_mapping (phone_id, master_list_id)
                SELECT pn.id, ?
                FROM phone_numbers pn
                INNER JOIN temp_phones tp ON pn.normalized_phone = tp.normalized_phone
                """,
                (master_id,),
            )
            inserted = cur.rowcount
            conn.execute("DROP TABLE temp_phones")
        return inserted

    def recount_master(self, master_id: int) -> int:
        """Recompute phone_count from the mapping table and return it."""

        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE master_lists
                SET phone_count = (
                    SELECT COUNT(*) FROM phone_master_mapping WHERE master_list_id = ?
                ),
                updated_at = ?
                WHERE id = ?
                """,
                (master_id, now, master_id),
            )
            row = conn.execute(
                "SELECT phone_count FROM master_lists WHERE id = ?",
                (master_id,),
            ).fetchone()
        return int(row["phone_count"]) if row else 0

    def append_log(self, entry: ProcessingLogEntry) -> None:
        """Persist one batch summary to the append-only processing log."""

        processed_at = entry.processed_at or datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO processing_logs (
                    batch_name,
                    source_tag,
                    files_processed,
                    scrubbed_against,
                    original_count,
                    duplicates_removed,
                    final_count,
                    artifact_locations,
                    processed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.batch_id,
                    ",".join(entry.source_tags),
                    entry.files_processed,
                    json.dumps(entry.scrubbed_against),
                    entry.original_count,
                    entry.duplicates_removed,
                    entry.final_count,
                    json.dumps(entry.artifact_locations),
                    processed_at.isoformat(),
                ),
            )

    def list_logs(self, limit: int = 100) -> list[ProcessingLogEntry]:
        """Return the most recent processing log entries, newest first."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM processing_logs ORDER BY processed_at DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            ProcessingLogEntry(
                batch_id=row["batch_name"],
                source_tags=[tag for tag in (row["source_tag"] or "").split(",") if tag],
                files_processed=int(row["files_processed"] or 0),
                scrubbed_against=json.loads(row["scrubbed_against"] or "[]"),
                original_count=int(row["original_count"] or 0),
                duplicates_removed=int(row["duplicates_removed"] or 0),
                final_count=int(row["final_count"] or 0),
                artifact_locations=json.loads(row["artifact_locations"] or "{}"),
                processed_at=_parse_ts(row["processed_at"]),
            )
            for row in rows
        ]
