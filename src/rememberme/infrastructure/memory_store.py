"""In-memory implementation of RecordStore (no DB).

Readers see the last committed snapshot. A writer stages copies of the
collections it touches and swaps them in at commit, so a reader never sees a
transaction half-applied.
"""

import threading
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from rememberme.application.ports import Row
from rememberme.application.schema import Collection
from rememberme.domain import NotInitialized, SchemaIncompatible

Tables = dict[str, dict[str, Row]]


def scan_rows(
    rows: Iterable[Row],
    collection: Collection,
    *,
    where: Mapping[str, Any] | None = None,
    order_by: str | None = None,
    descending: bool = False,
    limit: int | None = None,
) -> list[Row]:
    """Filter and order rows the way every backend's ``scan`` must."""
    where = dict(where or {})
    collection.check_indexed([*where, *([order_by] if order_by else [])])
    matched = [row for row in rows if all(row.get(k) == v for k, v in where.items())]
    matched.sort(key=lambda row: row["id"])
    if order_by:
        # Stable sort keeps ties in ascending id order, even when reversed.
        matched.sort(key=lambda row: row[order_by], reverse=descending)
    if limit is not None:
        matched = matched[:limit]
    return [dict(row) for row in matched]


class _MemoryReader:
    def __init__(self, tables: Tables, schema: dict[str, Collection]) -> None:
        self._tables = tables
        self._schema = schema

    def _collection(self, name: str) -> Collection:
        try:
            return self._schema[name]
        except KeyError:
            raise ValueError(f"Unknown collection {name!r}") from None

    def get(self, collection: str, row_id: str) -> Row | None:
        self._collection(collection)
        row = self._tables[collection].get(row_id)
        return dict(row) if row is not None else None

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
        return scan_rows(
            self._tables[collection].values(),
            coll,
            where=where,
            order_by=order_by,
            descending=descending,
            limit=limit,
        )


class _MemoryTransaction(_MemoryReader):
    def __init__(self, tables: Tables, schema: dict[str, Collection]) -> None:
        super().__init__(dict(tables), schema)
        self._copied: set[str] = set()

    @property
    def staged(self) -> Tables:
        return self._tables

    def _writable(self, collection: str) -> dict[str, Row]:
        self._collection(collection)
        if collection not in self._copied:
            self._tables[collection] = dict(self._tables[collection])
            self._copied.add(collection)
        return self._tables[collection]

    def put(self, collection: str, row: Row) -> None:
        self._collection(collection).check_columns(row)
        if not row.get("id"):
            raise ValueError("Row must have an id.")
        self._writable(collection)[row["id"]] = dict(row)

    def delete(self, collection: str, row_id: str) -> None:
        self._writable(collection).pop(row_id, None)

    def delete_where(self, collection: str, column: str, value: Any) -> None:
        self._collection(collection).check_indexed([column])
        table = self._writable(collection)
        for row_id in [rid for rid, row in table.items() if row.get(column) == value]:
            del table[row_id]

    def clear(self, collection: str) -> None:
        self._writable(collection).clear()


class InMemoryRecordStore:
    """Stores rows in memory. Data survives close() and re-open() for the object's lifetime."""

    def __init__(self) -> None:
        self._tables: Tables | None = None
        self._schema: dict[str, Collection] = {}
        self._version: int | None = None
        self._is_open = False
        self._write_lock = threading.Lock()

    def open(self, schema: Iterable[Collection], version: int) -> None:
        schema_by_name = {c.name: c for c in schema}
        with self._write_lock:
            if self._tables is None:
                self._tables = {name: {} for name in schema_by_name}
                self._schema = schema_by_name
                self._version = version
            elif self._version != version or self._schema != schema_by_name:
                raise SchemaIncompatible(
                    f"In-memory store holds schema v{self._version}, expected v{version}."
                )
            self._is_open = True

    def close(self) -> None:
        self._is_open = False

    def _snapshot(self) -> Tables:
        if not self._is_open or self._tables is None:
            raise NotInitialized("Record store is not open.")
        return self._tables

    @contextmanager
    def read(self) -> Iterator[_MemoryReader]:
        yield _MemoryReader(self._snapshot(), self._schema)

    @contextmanager
    def transaction(self) -> Iterator[_MemoryTransaction]:
        with self._write_lock:
            tx = _MemoryTransaction(self._snapshot(), self._schema)
            yield tx
            self._tables = tx.staged
