"""
SQLite-backed document store and simple migration system.

Each collection is a table holding one JSON document per row next to
a few bookkeeping columns (``seq``, ``id``, ``created_at``,
``updated_at``).  Document fields are addressed with ``json_extract``
and uniqueness of designated fields is enforced by unique expression
indexes, so the database itself rejects duplicate writes even when two
requests race past the application's pre-check.

``init_db`` applies pending migrations recorded in the ``migrations``
table.  ``RecordStore`` is the asynchronous facade used by the
services: every call opens a short-lived connection in a worker thread
so request handlers never block the event loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .errors import DuplicateKeyConflict
from .filters import In, MatchAll, Predicate, field_expression
from .ids import new_id

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
SortSpec = Sequence[Tuple[str, int]]

ASCENDING = 1
DESCENDING = -1

# Collection name -> uniquely indexed document fields.
COLLECTIONS: Dict[str, Tuple[str, ...]] = {
    "accounts": (),
    "drivers": ("license_no",),
    "vehicle_registrations": ("vehicle_number", "chassis_number", "engine_number"),
    "vehicles": (),
    "devices": ("imei", "serial_no"),
}

# Plain (non-unique) indexes on reference fields used by lookups.
REFERENCE_INDEXES: Dict[str, Tuple[str, ...]] = {
    "devices": ("account_id", "vehicle_id", "registration_id", "driver_id"),
    "vehicle_registrations": ("vehicle_id", "driver_id"),
}

_RESERVED = ("id", "created_at", "updated_at")
_UNIQUE_INDEX_RE = re.compile(r"ux_(\w+?)__(\w+)")


def resolve_database_path(database_url: str) -> str:
    """Compute the path to the SQLite database file.

    An absolute path is used as is; a relative one is resolved against
    the project root (the directory holding the package).
    """
    if database_url == ":memory:" or os.path.isabs(database_url):
        return database_url
    base_dir = Path(__file__).resolve().parent.parent.parent.parent
    return str((base_dir / database_url).resolve())


def _regexp(pattern: str, value: Any) -> bool:
    if value is None:
        return False
    return re.search(pattern, str(value), re.IGNORECASE) is not None


def get_connection(path: str) -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` and a case-insensitive
    ``REGEXP`` function is registered so that ``Contains`` predicates
    can be evaluated by the database.
    """
    conn = sqlite3.connect(path, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.create_function("REGEXP", 2, _regexp, deterministic=True)
    return conn


@contextmanager
def get_cursor(path: str) -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor and closes the connection on exit."""
    conn = get_connection(path)
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


def _collection_ddl(name: str) -> str:
    statements = [
        f"""
        CREATE TABLE IF NOT EXISTS {name} (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            id TEXT NOT NULL UNIQUE,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            data TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS ix_{name}__created_at ON {name}(created_at, seq);
        """
    ]
    for unique_field in COLLECTIONS[name]:
        statements.append(
            f"CREATE UNIQUE INDEX IF NOT EXISTS ux_{name}__{unique_field} "
            f"ON {name}(json_extract(data, '$.{unique_field}'));"
        )
    statements.append(_reference_index_ddl(name))
    return "\n".join(statements)


def _reference_index_ddl(name: str) -> str:
    return "\n".join(
        f"CREATE INDEX IF NOT EXISTS ix_{name}__{ref_field} "
        f"ON {name}(json_extract(data, '$.{ref_field}'));"
        for ref_field in REFERENCE_INDEXES.get(name, ())
    )


def init_db(path: str) -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version, and applies any new migrations.  If you
    add a migration, append it with an incremented version number.
    """
    migrations: List[Tuple[int, str]] = [
        # Migration 1: one table per collection with unique indexes
        (1, "\n".join(_collection_ddl(name) for name in COLLECTIONS)),
        # Migration 2: lookups from registrations to vehicles and drivers
        (2, _reference_index_ddl("vehicle_registrations")),
    ]
    conn = get_connection(path)
    try:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS migrations (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        current = conn.execute("SELECT COALESCE(MAX(version), 0) FROM migrations").fetchone()[0]
        for version, sql in migrations:
            if version <= current:
                continue
            logger.info("Applying migration %s", version)
            conn.executescript(sql)
            conn.execute("INSERT INTO migrations (version) VALUES (?)", (version,))
            conn.commit()
    finally:
        conn.close()


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _row_to_record(row: sqlite3.Row) -> Record:
    record: Record = {"id": row["id"]}
    record.update(json.loads(row["data"]))
    record["created_at"] = row["created_at"]
    record["updated_at"] = row["updated_at"]
    return record


def _order_clause(sort: SortSpec) -> str:
    parts = []
    for name, direction in sort:
        parts.append(f"{field_expression(name)} {'DESC' if direction < 0 else 'ASC'}")
    # seq breaks ties between identical timestamps in insertion order
    tie = "DESC" if sort and sort[0][1] < 0 else "ASC"
    parts.append(f"seq {tie}")
    return ", ".join(parts)


def _conflict_from(collection: str, exc: sqlite3.IntegrityError) -> Optional[DuplicateKeyConflict]:
    message = str(exc)
    if "UNIQUE" not in message.upper():
        return None
    match = _UNIQUE_INDEX_RE.search(message)
    return DuplicateKeyConflict(collection, match.group(2) if match else None)


def _check_collection(name: str) -> None:
    if name not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {name}")


class RecordStore:
    """Asynchronous document store over SQLite.

    Parameters
    ----------
    path : str
        Database file path (already resolved).  ``init_db`` must have
        been applied to it.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    # -- reads -------------------------------------------------------------

    def _select(
        self,
        collection: str,
        predicate: Predicate,
        sort: SortSpec,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Record]:
        _check_collection(collection)
        where, params = predicate.to_sql()
        query = f"SELECT id, created_at, updated_at, data FROM {collection} WHERE {where}"
        query += f" ORDER BY {_order_clause(sort)}"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params = params + [limit, skip]
        elif skip:
            query += " LIMIT -1 OFFSET ?"
            params = params + [skip]
        conn = get_connection(self.path)
        try:
            rows = conn.execute(query, tuple(params)).fetchall()
            return [_row_to_record(row) for row in rows]
        finally:
            conn.close()

    def _count(self, collection: str, predicate: Predicate) -> int:
        _check_collection(collection)
        where, params = predicate.to_sql()
        conn = get_connection(self.path)
        try:
            return conn.execute(f"SELECT COUNT(*) FROM {collection} WHERE {where}", tuple(params)).fetchone()[0]
        finally:
            conn.close()

    def _group_count(self, collection: str, field: str, predicate: Predicate) -> Dict[Any, int]:
        _check_collection(collection)
        where, params = predicate.to_sql()
        expr = field_expression(field)
        conn = get_connection(self.path)
        try:
            rows = conn.execute(
                f"SELECT {expr} AS grp, COUNT(*) AS n FROM {collection} WHERE {where} GROUP BY grp",
                tuple(params),
            ).fetchall()
            return {row["grp"]: row["n"] for row in rows}
        finally:
            conn.close()

    async def find_matching(
        self,
        collection: str,
        predicate: Optional[Predicate] = None,
        sort: SortSpec = (("created_at", ASCENDING),),
    ) -> List[Record]:
        return await asyncio.to_thread(self._select, collection, predicate or MatchAll(), sort)

    async def find_matching_page(
        self,
        collection: str,
        predicate: Optional[Predicate],
        sort: SortSpec,
        skip: int,
        limit: int,
    ) -> List[Record]:
        return await asyncio.to_thread(
            self._select, collection, predicate or MatchAll(), sort, skip, limit
        )

    async def count_matching(self, collection: str, predicate: Optional[Predicate] = None) -> int:
        return await asyncio.to_thread(self._count, collection, predicate or MatchAll())

    async def find_by_id(self, collection: str, record_id: str) -> Optional[Record]:
        records = await self.find_matching(collection, In("id", (record_id,)))
        return records[0] if records else None

    async def batch_fetch_by_ids(self, collection: str, ids: Sequence[str]) -> List[Record]:
        """Fetch every record whose id is in ``ids`` in one round trip.

        Results are ordered by creation time ascending.
        """
        if not ids:
            return []
        return await self.find_matching(collection, In("id", tuple(ids)))

    async def aggregate_counts(
        self, collection: str, field: str, predicate: Optional[Predicate] = None
    ) -> Dict[Any, int]:
        """Count records grouped by the value of ``field``."""
        return await asyncio.to_thread(self._group_count, collection, field, predicate or MatchAll())

    # -- writes ------------------------------------------------------------

    def _insert(self, collection: str, document: Record) -> Record:
        _check_collection(collection)
        data = {k: v for k, v in document.items() if k not in _RESERVED and v is not None}
        record_id = new_id()
        now = utc_now()
        conn = get_connection(self.path)
        try:
            conn.execute(
                f"INSERT INTO {collection} (id, created_at, updated_at, data) VALUES (?, ?, ?, ?)",
                (record_id, now, now, json.dumps(data)),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conflict = _conflict_from(collection, exc)
            if conflict is not None:
                raise conflict from exc
            raise
        finally:
            conn.close()
        return {"id": record_id, **data, "created_at": now, "updated_at": now}

    def _update(self, collection: str, record_id: str, partial: Record) -> Optional[Record]:
        _check_collection(collection)
        conn = get_connection(self.path)
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(f"SELECT data FROM {collection} WHERE id = ?", (record_id,)).fetchone()
            if row is None:
                conn.rollback()
                return None
            data = json.loads(row["data"])
            for key, value in partial.items():
                if key in _RESERVED:
                    continue
                if value is None:
                    data.pop(key, None)
                else:
                    data[key] = value
            conn.execute(
                f"UPDATE {collection} SET data = ?, updated_at = MAX(updated_at, ?) WHERE id = ?",
                (json.dumps(data), utc_now(), record_id),
            )
            updated = conn.execute(
                f"SELECT id, created_at, updated_at, data FROM {collection} WHERE id = ?", (record_id,)
            ).fetchone()
            conn.commit()
            return _row_to_record(updated)
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            conflict = _conflict_from(collection, exc)
            if conflict is not None:
                raise conflict from exc
            raise
        finally:
            conn.close()

    def _delete(self, collection: str, record_id: str) -> bool:
        _check_collection(collection)
        with get_cursor(self.path) as cursor:
            cursor.execute(f"DELETE FROM {collection} WHERE id = ?", (record_id,))
            return cursor.rowcount > 0

    async def insert(self, collection: str, document: Record) -> Record:
        """Insert ``document`` and return the stored record.

        Raises ``DuplicateKeyConflict`` if a unique index rejects it.
        """
        return await asyncio.to_thread(self._insert, collection, document)

    async def update_by_id(self, collection: str, record_id: str, partial: Record) -> Optional[Record]:
        """Apply ``partial`` to the record; ``None`` values remove fields.

        Returns the updated record, or ``None`` if no record has that id.
        Raises ``DuplicateKeyConflict`` if a unique index rejects the
        new values, in which case the record is left unchanged.
        """
        return await asyncio.to_thread(self._update, collection, record_id, partial)

    async def delete_by_id(self, collection: str, record_id: str) -> bool:
        return await asyncio.to_thread(self._delete, collection, record_id)
