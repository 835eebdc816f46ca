"""Error taxonomy for the encrypted persistence core.

Every failure the core surfaces is one of these kinds, so callers can tell a
wrong key apart from a missing record without parsing messages.
"""


class RememberMeError(Exception):
    """Base class for all errors raised by the core."""


class NotInitialized(RememberMeError):
    """A store operation was invoked before ``init`` succeeded."""

    def __init__(self, message: str = "Store is not initialized; call init(key) first.") -> None:
        super().__init__(message)


class AlreadyInitialized(RememberMeError):
    """``init`` was called with a different key on an initialized store."""


class EncryptionKeyMissing(RememberMeError):
    """Encrypt/decrypt was attempted without a bound key."""


class DuplicateId(RememberMeError):
    """A record with this id already exists."""

    def __init__(self, record_id: str, kind: str = "Person") -> None:
        super().__init__(f"{kind} {record_id!r} already exists.")
        self.record_id = record_id
        self.kind = kind


class NotFound(RememberMeError):
    """The referenced person does not exist."""

    def __init__(self, person_id: str) -> None:
        super().__init__(f"Person {person_id!r} not found.")
        self.person_id = person_id


class CryptoError(RememberMeError):
    """Stored ciphertext could not be turned back into plaintext."""


class MalformedEnvelope(CryptoError):
    """The envelope does not parse as ``<hex-iv>:<ciphertext>``."""


class DecryptionFailed(CryptoError):
    """The envelope parsed but does not decrypt under the current key."""


class SchemaIncompatible(RememberMeError):
    """The backing store exists but its shape is not the one expected."""


class PasscodeTooShort(RememberMeError):
    """The passcode is shorter than the minimum length."""

    def __init__(self, min_length: int) -> None:
        super().__init__(f"Passcode must be at least {min_length} characters.")
        self.min_length = min_length
