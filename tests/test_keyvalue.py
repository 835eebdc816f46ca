"""Tests for the auth key-value stores."""

import json
import os
import stat

import pytest

from rememberme.infrastructure import InMemoryKeyValueStore, JsonFileKeyValueStore


@pytest.fixture(params=["memory", "json"])
def kv(request, tmp_path):
    if request.param == "memory":
        return InMemoryKeyValueStore()
    return JsonFileKeyValueStore(tmp_path / "auth" / "auth.json")


def test_get_missing_returns_none(kv):
    assert kv.get("@RememberMe_salt") is None


def test_set_many_and_delete_many(kv):
    kv.set_many({"a": "1", "b": "2", "c": "3"})
    assert kv.get("b") == "2"
    kv.set_many({"b": "20"})
    assert kv.get("b") == "20"
    kv.delete_many(["a", "b", "missing"])
    assert kv.get("a") is None
    assert kv.get("b") is None
    assert kv.get("c") == "3"


def test_in_memory_initial_values_are_copied():
    initial = {"a": "1"}
    kv = InMemoryKeyValueStore(initial)
    kv.set_many({"a": "2"})
    assert initial == {"a": "1"}


def test_json_file_persists_across_instances(tmp_path):
    path = tmp_path / "auth.json"
    JsonFileKeyValueStore(path).set_many({"@RememberMe_encryption_key": "ab" * 32})
    assert JsonFileKeyValueStore(path).get("@RememberMe_encryption_key") == "ab" * 32
    with open(path, encoding="utf-8") as f:
        assert json.load(f) == {"@RememberMe_encryption_key": "ab" * 32}


@pytest.mark.skipif(os.name != "posix", reason="POSIX file modes")
def test_json_file_is_private(tmp_path):
    path = tmp_path / "auth.json"
    JsonFileKeyValueStore(path).set_many({"k": "v"})
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


def test_json_file_leaves_no_temp_files(tmp_path):
    kv = JsonFileKeyValueStore(tmp_path / "auth.json")
    kv.set_many({"k": "v"})
    kv.delete_many(["k"])
    assert [p.name for p in tmp_path.iterdir()] == ["auth.json"]


def test_json_file_delete_without_file_does_not_create_it(tmp_path):
    path = tmp_path / "auth.json"
    JsonFileKeyValueStore(path).delete_many(["k"])
    assert not path.exists()


def test_json_file_rejects_non_object(tmp_path):
    path = tmp_path / "auth.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        JsonFileKeyValueStore(path).get("k")
