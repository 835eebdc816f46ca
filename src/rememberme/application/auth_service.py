"""Passcode and biometric unlock, and the lifecycle of the data-encryption key.

The data key is random, not derived from the passcode, and is kept in the
same plaintext key-value store as the passcode hash and salt. Anyone who can
read that store can read the key without the passcode; the passcode only
gates this API. Changing the passcode therefore never re-encrypts data, and
losing the stored key loses the data for good.
"""

import logging
from enum import Enum

from rememberme.application.person_store import PersonStore
from rememberme.application.ports import BiometricAuthenticator, KeyValueStore
from rememberme.domain import (
    AlreadyInitialized,
    EncryptionKeyMissing,
    NotInitialized,
    PasscodeTooShort,
)
from rememberme.security import (
    generate_salt,
    generate_secure_key,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_ENTRY = "@RememberMe_encryption_key"
PASSWORD_HASH_ENTRY = "@RememberMe_password_hash"
SALT_ENTRY = "@RememberMe_salt"
AUTH_ENTRIES = (ENCRYPTION_KEY_ENTRY, PASSWORD_HASH_ENTRY, SALT_ENTRY)

MIN_PASSCODE_LENGTH = 4
BIOMETRIC_PROMPT = "Unlock RememberMe"


class AuthService:
    """Stores and checks auth material in a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        biometrics: BiometricAuthenticator,
    ) -> None:
        self._store = store
        self._biometrics = biometrics

    def is_first_launch(self) -> bool:
        return not self._store.get(ENCRYPTION_KEY_ENTRY)

    def setup_passcode(self, passcode: str) -> None:
        """Set the passcode and create a fresh data key. PasscodeTooShort below 4 characters."""
        _check_length(passcode)
        salt = generate_salt()
        self._store.set_many(
            {
                PASSWORD_HASH_ENTRY: hash_password(passcode, salt),
                SALT_ENTRY: salt,
                ENCRYPTION_KEY_ENTRY: generate_secure_key(),
            }
        )
        logger.info("Passcode set up and new data key generated")

    def verify_passcode(self, passcode: str) -> bool:
        stored_hash = self._store.get(PASSWORD_HASH_ENTRY)
        salt = self._store.get(SALT_ENTRY)
        if not stored_hash or not salt:
            return False
        if verify_password(passcode or "", salt, stored_hash):
            return True
        logger.warning("Passcode verification failed")
        return False

    def change_passcode(self, current: str, new: str) -> bool:
        """Re-hash under a new salt, keeping the data key. False if *current* is wrong."""
        _check_length(new)
        if not self.verify_passcode(current):
            return False
        salt = generate_salt()
        self._store.set_many({PASSWORD_HASH_ENTRY: hash_password(new, salt), SALT_ENTRY: salt})
        logger.info("Passcode changed")
        return True

    def is_biometric_available(self) -> bool:
        try:
            return bool(self._biometrics.has_hardware()) and bool(self._biometrics.is_enrolled())
        except Exception:
            logger.warning("Biometric capability check failed", exc_info=True)
            return False

    def authenticate_biometric(self) -> bool:
        """Run the platform prompt. Any failure, cancellation or error reads as False."""
        try:
            return bool(self._biometrics.authenticate(BIOMETRIC_PROMPT))
        except Exception:
            logger.warning("Biometric authentication error", exc_info=True)
            return False

    def get_encryption_key(self) -> str | None:
        return self._store.get(ENCRYPTION_KEY_ENTRY) or None

    def delete_all_auth_data(self) -> None:
        self._store.delete_many(AUTH_ENTRIES)
        logger.info("Auth data deleted")


def _check_length(passcode: str) -> None:
    if passcode is None or len(passcode) < MIN_PASSCODE_LENGTH:
        raise PasscodeTooShort(MIN_PASSCODE_LENGTH)


class AuthState(Enum):
    UNINITIALIZED = "uninitialized"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class AuthSession:
    """Uninitialized -> Locked -> Unlocked, handing out the ready PersonStore on unlock."""

    def __init__(self, auth: AuthService, store: PersonStore) -> None:
        self._auth = auth
        self._store = store

    @property
    def state(self) -> AuthState:
        if self._auth.is_first_launch():
            return AuthState.UNINITIALIZED
        if self._store.is_initialized:
            return AuthState.UNLOCKED
        return AuthState.LOCKED

    def create_passcode(self, passcode: str) -> PersonStore:
        """First-launch setup, then unlock. A second setup would orphan existing data."""
        if self.state is not AuthState.UNINITIALIZED:
            raise AlreadyInitialized("A passcode is already set up.")
        self._auth.setup_passcode(passcode)
        store = self._open_store()
        if store is None:
            raise EncryptionKeyMissing("Data key was not stored by passcode setup.")
        return store

    def unlock_with_passcode(self, passcode: str) -> PersonStore | None:
        if not self._auth.verify_passcode(passcode):
            return None
        return self._open_store()

    def unlock_with_biometric(self) -> PersonStore | None:
        if not self._auth.is_biometric_available():
            return None
        if not self._auth.authenticate_biometric():
            return None
        return self._open_store()

    def _open_store(self) -> PersonStore | None:
        key = self._auth.get_encryption_key()
        if key is None:
            logger.warning("Unlock succeeded but no data key is stored")
            return None
        return self._store.init(key)

    def lock(self) -> None:
        self._store.close()

    def reset(self) -> None:
        """Delete all person data and auth material. Back to UNINITIALIZED.

        Only allowed while unlocked: wiping auth data alone would leave rows
        encrypted under a key nobody holds any more.
        """
        if self.state is AuthState.LOCKED:
            raise NotInitialized("Unlock before resetting.")
        if self._store.is_initialized:
            self._store.clear_all_data()
        self._store.close()
        self._auth.delete_all_auth_data()
        logger.info("Full reset completed")
