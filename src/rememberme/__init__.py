"""
RememberMe core: encrypted local persistence for person memory cards.

- domain: entities (PersonCard, QuickFact, Note) and errors. No outer dependencies.
- security: key derivation, passcode hashing, field encryption.
- application: PersonStore (the engine), AuthService/AuthSession, ports, schema.
- infrastructure: adapters (in-memory, SQLite, Neo4j stores; key-value stores) and config.
"""

from rememberme.application import (
    AuthService,
    AuthSession,
    AuthState,
    PersonStore,
)
from rememberme.domain import (
    AlreadyInitialized,
    DecryptionFailed,
    DuplicateId,
    EncryptionKeyMissing,
    LinkedContacts,
    MalformedEnvelope,
    Note,
    NotFound,
    NotInitialized,
    PasscodeTooShort,
    PersonCard,
    PrivacySettings,
    QuickFact,
    RememberMeError,
    SchemaIncompatible,
)
from rememberme.infrastructure import (
    InMemoryKeyValueStore,
    InMemoryRecordStore,
    JsonFileKeyValueStore,
    Neo4jRecordStore,
    SQLiteRecordStore,
)

__all__ = [
    "AlreadyInitialized",
    "AuthService",
    "AuthSession",
    "AuthState",
    "DecryptionFailed",
    "DuplicateId",
    "EncryptionKeyMissing",
    "InMemoryKeyValueStore",
    "InMemoryRecordStore",
    "JsonFileKeyValueStore",
    "LinkedContacts",
    "MalformedEnvelope",
    "Neo4jRecordStore",
    "Note",
    "NotFound",
    "NotInitialized",
    "PasscodeTooShort",
    "PersonCard",
    "PersonStore",
    "PrivacySettings",
    "QuickFact",
    "RememberMeError",
    "SQLiteRecordStore",
]
