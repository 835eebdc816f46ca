"""Backend-level tests for the RecordStore implementations (in-memory and SQLite)."""

import sqlite3

import pytest

from rememberme.application.schema import NOTES, PERSON_CARDS, QUICK_FACTS, SCHEMA, SCHEMA_VERSION, TAGS
from rememberme.domain import NotInitialized, SchemaIncompatible
from rememberme.infrastructure import InMemoryRecordStore, SQLiteRecordStore


def _person_row(person_id: str, updated_at: str = "2024-03-01T09:00:00.000000+00:00", starred: int = 0) -> dict:
    return {
        "id": person_id,
        "full_name": "enc-name",
        "starred": starred,
        "created_at": "2024-03-01T09:00:00.000000+00:00",
        "updated_at": updated_at,
    }


def _note_row(note_id: str, person_id: str, date: str) -> dict:
    return {"id": note_id, "person_id": person_id, "date": date, "short_note": "enc-note"}


@pytest.fixture
def opened(backend):
    backend.open(SCHEMA, SCHEMA_VERSION)
    yield backend
    backend.close()


def test_access_before_open_raises(backend):
    with pytest.raises(NotInitialized):
        with backend.read():
            pass
    with pytest.raises(NotInitialized):
        with backend.transaction():
            pass


def test_put_get_and_upsert(opened):
    with opened.transaction() as tx:
        tx.put(PERSON_CARDS, _person_row("p1"))
        tx.put(PERSON_CARDS, {**_person_row("p1"), "full_name": "enc-renamed"})
    with opened.read() as reader:
        row = reader.get(PERSON_CARDS, "p1")
        assert row["full_name"] == "enc-renamed"
        assert row.get("title") is None
        assert reader.get(PERSON_CARDS, "missing") is None


def test_upsert_of_person_keeps_children(opened):
    with opened.transaction() as tx:
        tx.put(PERSON_CARDS, _person_row("p1"))
        tx.put(TAGS, {"id": "p1-vendor", "person_id": "p1", "tag": "enc-tag"})
    with opened.transaction() as tx:
        tx.put(PERSON_CARDS, _person_row("p1", updated_at="2024-03-02T09:00:00.000000+00:00"))
    with opened.read() as reader:
        assert [r["id"] for r in reader.scan(TAGS, where={"person_id": "p1"})] == ["p1-vendor"]


def test_scan_filters_orders_and_limits(opened):
    with opened.transaction() as tx:
        tx.put(PERSON_CARDS, _person_row("p1"))
        tx.put(NOTES, _note_row("n-b", "p1", "2024-03-05T09:00:00.000000+00:00"))
        tx.put(NOTES, _note_row("n-a", "p1", "2024-03-05T09:00:00.000000+00:00"))
        tx.put(NOTES, _note_row("n-c", "p1", "2024-03-09T09:00:00.000000+00:00"))
    with opened.read() as reader:
        newest = reader.scan(NOTES, where={"person_id": "p1"}, order_by="date", descending=True)
        assert [r["id"] for r in newest] == ["n-c", "n-a", "n-b"]
        oldest = reader.scan(NOTES, order_by="date", limit=2)
        assert [r["id"] for r in oldest] == ["n-a", "n-b"]
        assert reader.scan(NOTES, where={"person_id": "other"}) == []


def test_scan_rejects_unindexed_columns(opened):
    with opened.read() as reader:
        with pytest.raises(ValueError):
            reader.scan(PERSON_CARDS, where={"full_name": "x"})
        with pytest.raises(ValueError):
            reader.scan(NOTES, order_by="short_note")
        with pytest.raises(ValueError):
            reader.scan("contacts")


def test_put_rejects_unknown_columns(opened):
    with pytest.raises(ValueError):
        with opened.transaction() as tx:
            tx.put(PERSON_CARDS, {**_person_row("p1"), "nickname": "x"})


def test_failed_transaction_rolls_back(opened):
    with opened.transaction() as tx:
        tx.put(PERSON_CARDS, _person_row("keep"))
    with pytest.raises(RuntimeError):
        with opened.transaction() as tx:
            tx.put(PERSON_CARDS, _person_row("p1"))
            tx.delete(PERSON_CARDS, "keep")
            raise RuntimeError("boom")
    with opened.read() as reader:
        assert [r["id"] for r in reader.scan(PERSON_CARDS)] == ["keep"]


def test_delete_where_and_clear(opened):
    with opened.transaction() as tx:
        for pid in ("p1", "p2"):
            tx.put(PERSON_CARDS, _person_row(pid))
            tx.put(QUICK_FACTS, {"id": f"{pid}-f", "person_id": pid, "label": "l", "value": "v", "position": 0})
    with opened.transaction() as tx:
        tx.delete_where(QUICK_FACTS, "person_id", "p1")
    with opened.read() as reader:
        assert [r["id"] for r in reader.scan(QUICK_FACTS)] == ["p2-f"]
    with opened.transaction() as tx:
        tx.clear(QUICK_FACTS)
        tx.clear(PERSON_CARDS)
    with opened.read() as reader:
        assert reader.scan(QUICK_FACTS) == []
        assert reader.scan(PERSON_CARDS) == []


def test_data_survives_close_and_reopen(opened):
    with opened.transaction() as tx:
        tx.put(PERSON_CARDS, _person_row("p1", starred=1))
    opened.close()
    opened.open(SCHEMA, SCHEMA_VERSION)
    with opened.read() as reader:
        assert reader.scan(PERSON_CARDS, where={"starred": 1})[0]["id"] == "p1"


def test_reopen_with_other_version_is_incompatible(opened):
    opened.close()
    with pytest.raises(SchemaIncompatible):
        opened.open(SCHEMA, SCHEMA_VERSION + 1)


# --------------------------------------------------------------------------- #
# In-memory specifics
# --------------------------------------------------------------------------- #


def test_memory_readers_do_not_see_uncommitted_writes():
    store = InMemoryRecordStore()
    store.open(SCHEMA, SCHEMA_VERSION)
    with store.transaction() as tx:
        tx.put(PERSON_CARDS, _person_row("p1"))
        with store.read() as reader:
            assert reader.get(PERSON_CARDS, "p1") is None
    with store.read() as reader:
        assert reader.get(PERSON_CARDS, "p1") is not None


def test_memory_rows_are_copies():
    store = InMemoryRecordStore()
    store.open(SCHEMA, SCHEMA_VERSION)
    row = _person_row("p1")
    with store.transaction() as tx:
        tx.put(PERSON_CARDS, row)
    row["full_name"] = "mutated"
    with store.read() as reader:
        fetched = reader.get(PERSON_CARDS, "p1")
        fetched["full_name"] = "mutated again"
        assert reader.get(PERSON_CARDS, "p1")["full_name"] == "enc-name"


# --------------------------------------------------------------------------- #
# SQLite specifics
# --------------------------------------------------------------------------- #


def test_sqlite_creates_schema_and_version(tmp_path):
    path = tmp_path / "nested" / "RememberMe.db"
    store = SQLiteRecordStore(path)
    store.open(SCHEMA, SCHEMA_VERSION)
    store.close()

    conn = sqlite3.connect(path)
    try:
        assert conn.execute("PRAGMA user_version").fetchone()[0] == SCHEMA_VERSION
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        assert {PERSON_CARDS, QUICK_FACTS, NOTES, TAGS} <= tables
        indexes = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'")}
        assert "idx_notes_person_id" in indexes
    finally:
        conn.close()


def test_sqlite_foreign_keys_cascade(tmp_path):
    store = SQLiteRecordStore(tmp_path / "RememberMe.db")
    store.open(SCHEMA, SCHEMA_VERSION)
    with store.transaction() as tx:
        tx.put(PERSON_CARDS, _person_row("p1"))
        tx.put(NOTES, _note_row("n1", "p1", "2024-03-05T09:00:00.000000+00:00"))
    with store.transaction() as tx:
        tx.delete(PERSON_CARDS, "p1")
    with store.read() as reader:
        assert reader.scan(NOTES) == []
    with pytest.raises(sqlite3.IntegrityError):
        with store.transaction() as tx:
            tx.put(NOTES, _note_row("n2", "ghost", "2024-03-05T09:00:00.000000+00:00"))
    store.close()


def test_sqlite_rejects_newer_user_version(tmp_path):
    path = tmp_path / "RememberMe.db"
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA user_version = 7")
    conn.commit()
    conn.close()

    with pytest.raises(SchemaIncompatible):
        SQLiteRecordStore(path).open(SCHEMA, SCHEMA_VERSION)


def test_sqlite_rejects_foreign_table_shape(tmp_path):
    path = tmp_path / "RememberMe.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE person_cards (id TEXT PRIMARY KEY, fullName TEXT)")
    conn.commit()
    conn.close()

    store = SQLiteRecordStore(path)
    with pytest.raises(SchemaIncompatible):
        store.open(SCHEMA, SCHEMA_VERSION)
    with pytest.raises(NotInitialized):
        with store.read():
            pass
