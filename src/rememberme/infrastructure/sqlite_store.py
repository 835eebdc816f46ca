"""SQLite implementation of RecordStore: the on-device durable backend.

One connection in autocommit mode guarded by a lock; every transaction is an
explicit ``BEGIN IMMEDIATE ... COMMIT`` rolled back on error. Child tables
reference ``person_cards`` with ``ON DELETE CASCADE``.
"""

import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from rememberme.application.ports import Row
from rememberme.application.schema import PARENT_KEY, Collection
from rememberme.domain import NotInitialized, SchemaIncompatible

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def _column_ddl(collection: Collection, column: str) -> str:
    if column == "id":
        return "id TEXT PRIMARY KEY"
    sql_type = "INTEGER" if column in collection.integer_columns else "TEXT"
    ddl = f"{column} {sql_type}"
    if column in collection.required_columns or (column == PARENT_KEY and collection.parent):
        ddl += " NOT NULL"
    if column == "starred":
        ddl += " DEFAULT 0"
    if column == PARENT_KEY and collection.parent:
        ddl += f" REFERENCES {collection.parent} (id) ON DELETE CASCADE"
    return ddl


def _create_statements(collection: Collection) -> list[str]:
    columns = ",\n    ".join(_column_ddl(collection, c) for c in collection.columns)
    statements = [f"CREATE TABLE IF NOT EXISTS {collection.name} (\n    {columns}\n)"]
    for column in collection.indexes:
        statements.append(
            f"CREATE INDEX IF NOT EXISTS idx_{collection.name}_{column} "
            f"ON {collection.name} ({column})"
        )
    return statements


def _to_row(record: sqlite3.Row) -> Row:
    return {key: record[key] for key in record.keys()}


class _SQLiteReader:
    def __init__(self, conn: sqlite3.Connection, schema: dict[str, Collection]) -> None:
        self._conn = conn
        self._schema = schema

    def _collection(self, name: str) -> Collection:
        try:
            return self._schema[name]
        except KeyError:
            raise ValueError(f"Unknown collection {name!r}") from None

    def get(self, collection: str, row_id: str) -> Row | None:
        table = self._collection(collection).name
        record = self._conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,)).fetchone()
        return _to_row(record) if record is not None else None

    def scan(
        self,
        collection: str,
        *,
        where: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        coll = self._collection(collection)
        where = dict(where or {})
        coll.check_indexed([*where, *([order_by] if order_by else [])])
        sql = f"SELECT * FROM {coll.name}"
        params: list[Any] = []
        if where:
            sql += " WHERE " + " AND ".join(f"{column} = ?" for column in where)
            params.extend(where.values())
        if order_by:
            sql += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}, id ASC"
        else:
            sql += " ORDER BY id ASC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [_to_row(record) for record in self._conn.execute(sql, params)]


class _SQLiteTransaction(_SQLiteReader):
    def put(self, collection: str, row: Row) -> None:
        coll = self._collection(collection)
        coll.check_columns(row)
        if not row.get("id"):
            raise ValueError("Row must have an id.")
        columns = list(row)
        updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != "id")
        # Upsert rather than INSERT OR REPLACE: a REPLACE would delete the
        # person row first and cascade to its children.
        sql = (
            f"INSERT INTO {coll.name} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates}"
        )
        self._conn.execute(sql, [row[c] for c in columns])

    def delete(self, collection: str, row_id: str) -> None:
        table = self._collection(collection).name
        self._conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))

    def delete_where(self, collection: str, column: str, value: Any) -> None:
        coll = self._collection(collection)
        coll.check_indexed([column])
        self._conn.execute(f"DELETE FROM {coll.name} WHERE {column} = ?", (value,))

    def clear(self, collection: str) -> None:
        self._conn.execute(f"DELETE FROM {self._collection(collection).name}")


class SQLiteRecordStore:
    """Stores the four collections as SQLite tables in one database file."""

    def __init__(self, path: str | Path = MEMORY_PATH) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None
        self._schema: dict[str, Collection] = {}
        self._lock = threading.RLock()

    def open(self, schema: Iterable[Collection], version: int) -> None:
        schema_by_name = {c.name: c for c in schema}
        with self._lock:
            if self._conn is not None:
                self._check_schema(self._conn, schema_by_name, version)
                return
            if self._path != MEMORY_PATH:
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self._path, check_same_thread=False, isolation_level=None)
            conn.row_factory = sqlite3.Row
            try:
                conn.execute("PRAGMA foreign_keys = ON")
                self._check_schema(conn, schema_by_name, version)
                self._create_schema(conn, schema_by_name, version)
            except Exception:
                conn.close()
                raise
            self._conn = conn
            self._schema = schema_by_name
            logger.info("Opened SQLite store at %s", self._path)

    @staticmethod
    def _check_schema(conn: sqlite3.Connection, schema: dict[str, Collection], version: int) -> None:
        current = conn.execute("PRAGMA user_version").fetchone()[0]
        if current not in (0, version):
            raise SchemaIncompatible(f"Database has schema v{current}, expected v{version}.")
        for collection in schema.values():
            found = [r["name"] for r in conn.execute(f"PRAGMA table_info({collection.name})")]
            if found and set(found) != set(collection.columns):
                raise SchemaIncompatible(
                    f"Table {collection.name} has columns {sorted(found)}, "
                    f"expected {sorted(collection.columns)}."
                )

    @staticmethod
    def _create_schema(conn: sqlite3.Connection, schema: dict[str, Collection], version: int) -> None:
        conn.execute("BEGIN IMMEDIATE")
        try:
            for collection in schema.values():
                for statement in _create_statements(collection):
                    conn.execute(statement)
            conn.execute(f"PRAGMA user_version = {int(version)}")
        except Exception:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("Closed SQLite store at %s", self._path)

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise NotInitialized("Record store is not open.")
        return self._conn

    @contextmanager
    def read(self) -> Iterator[_SQLiteReader]:
        with self._lock:
            conn = self._connection()
            conn.execute("BEGIN")
            try:
                yield _SQLiteReader(conn, self._schema)
            finally:
                conn.execute("ROLLBACK")

    @contextmanager
    def transaction(self) -> Iterator[_SQLiteTransaction]:
        with self._lock:
            conn = self._connection()
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield _SQLiteTransaction(conn, self._schema)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
