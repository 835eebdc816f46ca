"""Application layer: the persistence engine, auth lifecycle, ports and storage schema."""

from rememberme.application.auth_service import AuthService, AuthSession, AuthState
from rememberme.application.person_store import PersonStore, SortOption
from rememberme.application.ports import (
    BiometricAuthenticator,
    KeyValueStore,
    RecordStore,
    StoreReader,
    StoreTransaction,
)

__all__ = [
    "AuthService",
    "AuthSession",
    "AuthState",
    "BiometricAuthenticator",
    "KeyValueStore",
    "PersonStore",
    "RecordStore",
    "SortOption",
    "StoreReader",
    "StoreTransaction",
]
