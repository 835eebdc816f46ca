"""Shared fixtures: every PersonStore contract test runs against the in-memory and SQLite backends."""

from datetime import datetime, timedelta, timezone

import pytest

from rememberme.application import PersonStore
from rememberme.infrastructure import InMemoryRecordStore, SQLiteRecordStore, phone_normalizer
from rememberme.security import generate_secure_key

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class TickingClock:
    """Returns a strictly increasing time on every call."""

    def __init__(self, start: datetime = BASE_TIME + timedelta(days=30)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def key() -> str:
    return generate_secure_key()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture(params=["memory", "sqlite"])
def backend(request, tmp_path):
    if request.param == "memory":
        return InMemoryRecordStore()
    return SQLiteRecordStore(tmp_path / "RememberMe.db")


@pytest.fixture
def store(backend, key, clock):
    person_store = PersonStore(backend, normalize_phone=phone_normalizer("US"), clock=clock)
    person_store.init(key)
    yield person_store
    person_store.close()
