"""Domain layer: entities, value objects and errors. No dependencies on outer layers."""

from rememberme.domain.entities import (
    LinkedContacts,
    Note,
    PersonCard,
    PrivacySettings,
    QuickFact,
    normalize_tags,
)
from rememberme.domain.errors import (
    AlreadyInitialized,
    CryptoError,
    DecryptionFailed,
    DuplicateId,
    EncryptionKeyMissing,
    MalformedEnvelope,
    NotFound,
    NotInitialized,
    PasscodeTooShort,
    RememberMeError,
    SchemaIncompatible,
)

__all__ = [
    "AlreadyInitialized",
    "CryptoError",
    "DecryptionFailed",
    "DuplicateId",
    "EncryptionKeyMissing",
    "LinkedContacts",
    "MalformedEnvelope",
    "Note",
    "NotFound",
    "NotInitialized",
    "PasscodeTooShort",
    "PersonCard",
    "PrivacySettings",
    "QuickFact",
    "RememberMeError",
    "SchemaIncompatible",
    "normalize_tags",
]
