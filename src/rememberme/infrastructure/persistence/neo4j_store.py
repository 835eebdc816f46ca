"""Neo4j implementation of RecordStore.
Graph: one node per row, labelled by collection (PersonCard, QuickFact, Note, Tag).
Child nodes carry the owning person's id in ``person_id``; ids are unique per label.
A single (:StoreMeta {name}) node records the schema version and collections.

Writes are atomic, but ``read()`` is a read-committed transaction, not a
snapshot: each query sees the latest commit. A writer committing between the
person query and its quick-fact/tag queries can yield an aggregate mixing old
and new rows. The in-memory and SQLite backends read from one snapshot.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import neo4j

from rememberme.application.ports import Row
from rememberme.application.schema import Collection
from rememberme.domain import NotInitialized, SchemaIncompatible

logger = logging.getLogger(__name__)

META_NAME = "rememberme"

_GET_META_QUERY = """
MATCH (m:StoreMeta { name: $name })
RETURN m.schema_version AS version, m.collections AS collections
"""

_MERGE_META_QUERY = """
MERGE (m:StoreMeta { name: $name })
ON CREATE SET m.schema_version = $version, m.collections = $collections
"""


def _node_to_row(node) -> Row:
    return dict(node.items())


class _Neo4jReader:
    def __init__(self, tx, schema: dict[str, Collection]) -> None:
        self._tx = tx
        self._schema = schema

    def _collection(self, name: str) -> Collection:
        try:
            return self._schema[name]
        except KeyError:
            raise ValueError(f"Unknown collection {name!r}") from None

    def get(self, collection: str, row_id: str) -> Row | None:
        label = self._collection(collection).label
        record = self._tx.run(f"MATCH (n:{label} {{id: $id}}) RETURN n", id=row_id).single()
        return _node_to_row(record["n"]) if record else None

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
        query = f"MATCH (n:{coll.label})"
        params: dict[str, Any] = {}
        if where:
            clauses = []
            for i, (column, value) in enumerate(where.items()):
                clauses.append(f"n.{column} = $w{i}")
                params[f"w{i}"] = value
            query += " WHERE " + " AND ".join(clauses)
        query += " RETURN n"
        if order_by:
            query += f" ORDER BY n.{order_by} {'DESC' if descending else 'ASC'}, n.id ASC"
        else:
            query += " ORDER BY n.id ASC"
        if limit is not None:
            query += " LIMIT $limit"
            params["limit"] = limit
        return [_node_to_row(record["n"]) for record in self._tx.run(query, **params)]


class _Neo4jTransaction(_Neo4jReader):
    def put(self, collection: str, row: Row) -> None:
        coll = self._collection(collection)
        coll.check_columns(row)
        if not row.get("id"):
            raise ValueError("Row must have an id.")
        # SET n = $props replaces every property; None values are simply not stored.
        self._tx.run(
            f"MERGE (n:{coll.label} {{id: $id}}) SET n = $props",
            id=row["id"],
            props={k: v for k, v in row.items() if v is not None},
        ).consume()

    def delete(self, collection: str, row_id: str) -> None:
        label = self._collection(collection).label
        self._tx.run(f"MATCH (n:{label} {{id: $id}}) DETACH DELETE n", id=row_id).consume()

    def delete_where(self, collection: str, column: str, value: Any) -> None:
        coll = self._collection(collection)
        coll.check_indexed([column])
        self._tx.run(
            f"MATCH (n:{coll.label}) WHERE n.{column} = $value DETACH DELETE n",
            value=value,
        ).consume()

    def clear(self, collection: str) -> None:
        label = self._collection(collection).label
        self._tx.run(f"MATCH (n:{label}) DETACH DELETE n").consume()


class Neo4jRecordStore:
    """Stores the four collections as labelled nodes in Neo4j.

    The driver belongs to the caller: ``close()`` ends the store session but
    leaves the driver open so the store can be re-opened after a lock.
    """

    def __init__(self, driver: object, database: str | None = None) -> None:
        self._driver = driver
        self._database = database
        self._schema: dict[str, Collection] = {}
        self._is_open = False

    def _session(self, access_mode: str = neo4j.WRITE_ACCESS):
        return self._driver.session(database=self._database, default_access_mode=access_mode)

    def open(self, schema: Iterable[Collection], version: int) -> None:
        schema_by_name = {c.name: c for c in schema}
        names = sorted(schema_by_name)
        with self._session() as session:
            record = session.run(_GET_META_QUERY, name=META_NAME).single()
            if record is not None and (
                record["version"] != version or sorted(record["collections"] or []) != names
            ):
                raise SchemaIncompatible(
                    f"Graph has schema v{record['version']} with {record['collections']}, "
                    f"expected v{version} with {names}."
                )
            for coll in schema_by_name.values():
                session.run(
                    f"CREATE CONSTRAINT {coll.name}_id_unique IF NOT EXISTS "
                    f"FOR (n:{coll.label}) REQUIRE n.id IS UNIQUE"
                ).consume()
                for column in coll.indexes:
                    session.run(
                        f"CREATE INDEX {coll.name}_{column} IF NOT EXISTS "
                        f"FOR (n:{coll.label}) ON (n.{column})"
                    ).consume()
            session.run(_MERGE_META_QUERY, name=META_NAME, version=version, collections=names).consume()
        self._schema = schema_by_name
        self._is_open = True
        logger.info("Opened Neo4j store (database=%s)", self._database or "default")

    def close(self) -> None:
        self._is_open = False

    def _require_open(self) -> None:
        if not self._is_open:
            raise NotInitialized("Record store is not open.")

    @contextmanager
    def read(self) -> Iterator[_Neo4jReader]:
        self._require_open()
        with self._session(neo4j.READ_ACCESS) as session:
            tx = session.begin_transaction()
            try:
                yield _Neo4jReader(tx, self._schema)
            finally:
                tx.close()

    @contextmanager
    def transaction(self) -> Iterator[_Neo4jTransaction]:
        self._require_open()
        with self._session() as session:
            tx = session.begin_transaction()
            try:
                yield _Neo4jTransaction(tx, self._schema)
            except BaseException:
                tx.rollback()
                raise
            else:
                tx.commit()
            finally:
                tx.close()
