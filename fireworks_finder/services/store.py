"""
Generic record store used by the pipeline and the API.

The pipeline only needs query/insert/delete; `SQLiteEventStore` provides them
over a single SQLite file. No transaction spans a read and a later write, so
callers must not assume a duplicate check still holds when they insert.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Union

LOGGER = logging.getLogger(__name__)

EVENTS_TABLE = "events"
LIVE_REPORTS_TABLE = "live_reports"

TABLE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    EVENTS_TABLE: (
        "id",
        "name",
        "location_name",
        "lat",
        "lng",
        "event_date",
        "event_time",
        "cost",
        "source",
        "verified",
        "description",
        "created_at",
    ),
    LIVE_REPORTS_TABLE: (
        "id",
        "event_id",
        "location_name",
        "lat",
        "lng",
        "status",
        "message",
        "report_timestamp",
        "created_at",
    ),
}
BOOLEAN_COLUMNS = frozenset({"verified"})
OPERATORS = frozenset({"=", "!=", ">", ">=", "<", "<="})

Filter = Tuple[str, str, Any]
Filters = Union[Mapping[str, Any], Sequence[Filter], None]


class StoreError(RuntimeError):
    """Raised when the backing store rejects a read or write."""


class EventStore:
    """Interface every store backend implements."""

    def query(
        self,
        table: str,
        filters: Filters = None,
        order_by: str | Sequence[str] | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def search(
        self,
        table: str,
        columns: Sequence[str],
        term: str,
        filters: Filters = None,
        order_by: str | Sequence[str] | None = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def insert(self, table: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def delete(self, table: str, record_id: int) -> None:
        raise NotImplementedError


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize_filters(filters: Filters) -> List[Filter]:
    if not filters:
        return []
    if isinstance(filters, Mapping):
        return [(column, "=", value) for column, value in filters.items()]
    return list(filters)


class SQLiteEventStore(EventStore):
    """Thread-safe SQLite store; one connection guarded by a lock."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.lock = threading.Lock()
        self._init_schema()

    def _init_schema(self) -> None:
        with self.lock:
            self.conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    location_name TEXT NOT NULL,
                    lat REAL NOT NULL,
                    lng REAL NOT NULL,
                    event_date TEXT NOT NULL,
                    event_time TEXT,
                    cost TEXT,
                    source TEXT,
                    verified INTEGER NOT NULL DEFAULT 0,
                    description TEXT,
                    created_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS live_reports (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_id INTEGER,
                    location_name TEXT,
                    lat REAL,
                    lng REAL,
                    status TEXT,
                    message TEXT,
                    report_timestamp INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_events_name ON events(name);
                CREATE INDEX IF NOT EXISTS idx_events_location_date ON events(location_name, event_date);
                CREATE INDEX IF NOT EXISTS idx_events_created ON events(created_at);
                CREATE INDEX IF NOT EXISTS idx_live_reports_timestamp ON live_reports(report_timestamp);
                """
            )
            self.conn.commit()

    def close(self) -> None:
        with self.lock:
            self.conn.close()

    @staticmethod
    def _columns(table: str) -> Tuple[str, ...]:
        try:
            return TABLE_COLUMNS[table]
        except KeyError as exc:
            raise StoreError(f"Unknown table '{table}'") from exc

    def _where(self, table: str, filters: Filters) -> tuple[list[str], list[Any]]:
        columns = self._columns(table)
        clauses: list[str] = []
        params: list[Any] = []
        for column, operator, value in _normalize_filters(filters):
            if column not in columns:
                raise StoreError(f"Unknown column '{column}' for table '{table}'")
            if operator not in OPERATORS:
                raise StoreError(f"Unsupported operator '{operator}'")
            if column in BOOLEAN_COLUMNS and isinstance(value, bool):
                value = int(value)
            clauses.append(f"{column} {operator} ?")
            params.append(value)
        return clauses, params

    def _order(self, table: str, order_by: str | Sequence[str] | None, descending: bool) -> str:
        if not order_by:
            return ""
        names = [order_by] if isinstance(order_by, str) else list(order_by)
        columns = self._columns(table)
        for name in names:
            if name not in columns:
                raise StoreError(f"Unknown column '{name}' for table '{table}'")
        direction = "DESC" if descending else "ASC"
        return " ORDER BY " + ", ".join(f"{name} {direction}" for name in names)

    def _to_dict(self, row: sqlite3.Row) -> Dict[str, Any]:
        record = dict(row)
        for column in BOOLEAN_COLUMNS:
            if column in record and record[column] is not None:
                record[column] = bool(record[column])
        return record

    def _select(self, sql: str, params: Sequence[Any]) -> List[Dict[str, Any]]:
        try:
            with self.lock:
                rows = self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Query failed: {exc}") from exc
        return [self._to_dict(row) for row in rows]

    def query(
        self,
        table: str,
        filters: Filters = None,
        order_by: str | Sequence[str] | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> List[Dict[str, Any]]:
        clauses, params = self._where(table, filters)
        sql = f"SELECT * FROM {table}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += self._order(table, order_by, descending)
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return self._select(sql, params)

    def search(
        self,
        table: str,
        columns: Sequence[str],
        term: str,
        filters: Filters = None,
        order_by: str | Sequence[str] | None = None,
    ) -> List[Dict[str, Any]]:
        """Case-insensitive substring match of `term` against any of `columns`."""
        known = self._columns(table)
        for column in columns:
            if column not in known:
                raise StoreError(f"Unknown column '{column}' for table '{table}'")
        clauses, params = self._where(table, filters)
        pattern = f"%{term.lower()}%"
        clauses.append("(" + " OR ".join(f"LOWER({column}) LIKE ?" for column in columns) + ")")
        params.extend(pattern for _ in columns)
        sql = f"SELECT * FROM {table} WHERE " + " AND ".join(clauses)
        sql += self._order(table, order_by, False)
        return self._select(sql, params)

    def insert(self, table: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        columns = self._columns(table)
        payload = {key: value for key, value in record.items() if key in columns and key != "id"}
        unknown = sorted(set(record) - set(columns))
        if unknown:
            LOGGER.debug("Ignoring unknown fields for %s: %s", table, unknown)
        payload.setdefault("created_at", _now_iso())
        for column in BOOLEAN_COLUMNS:
            if column in payload and payload[column] is not None:
                payload[column] = int(bool(payload[column]))
        names = list(payload)
        placeholders = ", ".join("?" for _ in names)
        sql = f"INSERT INTO {table} ({', '.join(names)}) VALUES ({placeholders})"
        try:
            with self.lock:
                cursor = self.conn.execute(sql, [payload[name] for name in names])
                self.conn.commit()
                row = self.conn.execute(
                    f"SELECT * FROM {table} WHERE id = ?",
                    (cursor.lastrowid,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Insert into {table} failed: {exc}") from exc
        return self._to_dict(row)

    def delete(self, table: str, record_id: int) -> None:
        self._columns(table)
        try:
            with self.lock:
                self.conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
                self.conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Delete from {table} (id={record_id}) failed: {exc}") from exc
