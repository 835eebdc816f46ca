"""Infrastructure layer: concrete implementations of application ports, and startup wiring."""

from rememberme.infrastructure.biometrics import UnavailableBiometrics
from rememberme.infrastructure.keyvalue import InMemoryKeyValueStore, JsonFileKeyValueStore
from rememberme.infrastructure.memory_store import InMemoryRecordStore
from rememberme.infrastructure.persistence.neo4j_store import Neo4jRecordStore
from rememberme.infrastructure.phone import phone_normalizer
from rememberme.infrastructure.sqlite_store import SQLiteRecordStore

__all__ = [
    "InMemoryKeyValueStore",
    "InMemoryRecordStore",
    "JsonFileKeyValueStore",
    "Neo4jRecordStore",
    "SQLiteRecordStore",
    "UnavailableBiometrics",
    "phone_normalizer",
]
