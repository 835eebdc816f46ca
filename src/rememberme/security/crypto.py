"""
Field-level encryption and passcode hashing.

Keys, salts and hashes travel as lowercase hex strings so they can sit in a
plain key-value store. Encrypted fields are stored as an *envelope*::

    <32 hex chars IV>:<base64 AES-256-CBC ciphertext>

The IV is fresh for every call, so two encryptions of the same plaintext
never produce the same envelope.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import os
import re
from typing import Any

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from rememberme.domain.errors import (
    DecryptionFailed,
    EncryptionKeyMissing,
    MalformedEnvelope,
)

# --------------------------------------------------------------------------- #
# Configuration
# --------------------------------------------------------------------------- #

#: 256-bit keys.
KEY_SIZE: int = 32
#: 128-bit salts.
SALT_SIZE: int = 16
#: AES block-sized IV.
IV_SIZE: int = 16
PBKDF2_ITERATIONS: int = 100_000
ENVELOPE_SEPARATOR: str = ":"

_PASSCODE_HASH_CONTEXT = b"rememberme-passcode-hash:"
_HEX_IV = re.compile(r"[0-9a-f]{%d}" % (IV_SIZE * 2), re.IGNORECASE)


# --------------------------------------------------------------------------- #
# Helper Functions
# --------------------------------------------------------------------------- #

def _generate_random_bytes(n: int) -> bytes:
    """Return ``n`` cryptographically-secure random bytes."""
    return os.urandom(n)


def _pbkdf2(password: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def _key_bytes(key: str | None) -> bytes:
    if not key:
        raise EncryptionKeyMissing("Encryption key is not set.")
    try:
        raw = bytes.fromhex(key)
    except ValueError:
        raise ValueError("Encryption key must be a hex string.") from None
    if len(raw) != KEY_SIZE:
        raise ValueError(f"Encryption key must be {KEY_SIZE * 8} bits.")
    return raw


def _aes_cbc(key: bytes, iv: bytes) -> Cipher:
    return Cipher(algorithms.AES(key), modes.CBC(iv))


# --------------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------------- #

def derive_key(password: str, salt: str) -> str:
    """
    Derive a 256-bit key from *password* and *salt* with PBKDF2-HMAC-SHA256.

    Deterministic: the same password and salt always give the same key.
    """
    return _pbkdf2(password, salt.encode("utf-8")).hex()


def hash_password(password: str, salt: str) -> str:
    """
    Verification hash of a passcode.

    Same KDF as :func:`derive_key` under a separate context prefix, so the
    stored hash is never usable as a key derived from the same inputs.
    """
    return _pbkdf2(password, _PASSCODE_HASH_CONTEXT + salt.encode("utf-8")).hex()


def verify_password(password: str, salt: str, expected_hash: str) -> bool:
    return hmac.compare_digest(hash_password(password, salt).encode(), expected_hash.encode())


def generate_salt() -> str:
    return _generate_random_bytes(SALT_SIZE).hex()


def generate_secure_key() -> str:
    """Random data-encryption key, independent of any passcode."""
    return _generate_random_bytes(KEY_SIZE).hex()


def encrypt(plaintext: str, key: str) -> str:
    """
    Encrypt *plaintext* with AES-256-CBC and PKCS7 padding.

    Returns
    -------
    str
        ``<hex-iv>:<base64-ciphertext>``
    """
    key_bytes = _key_bytes(key)
    iv = _generate_random_bytes(IV_SIZE)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = _aes_cbc(key_bytes, iv).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return iv.hex() + ENVELOPE_SEPARATOR + base64.b64encode(ciphertext).decode("ascii")


def decrypt(envelope: str, key: str) -> str:
    """
    Reverse :func:`encrypt`.

    Raises
    ------
    MalformedEnvelope
        The envelope does not split into an IV and a ciphertext.
    DecryptionFailed
        Padding or UTF-8 validation failed, i.e. the key is wrong or the
        data is corrupt.
    """
    key_bytes = _key_bytes(key)
    if not isinstance(envelope, str) or ENVELOPE_SEPARATOR not in envelope:
        raise MalformedEnvelope("Encrypted value has no IV separator.")
    parts = envelope.split(ENVELOPE_SEPARATOR)
    if len(parts) != 2:
        raise MalformedEnvelope("Encrypted value must have exactly two parts.")
    iv_hex, ciphertext_b64 = parts
    if not _HEX_IV.fullmatch(iv_hex):
        raise MalformedEnvelope("Encrypted value has an invalid IV.")
    try:
        ciphertext = base64.b64decode(ciphertext_b64, validate=True)
    except (binascii.Error, ValueError):
        raise MalformedEnvelope("Encrypted value has an invalid ciphertext encoding.") from None
    block_bytes = algorithms.AES.block_size // 8
    if not ciphertext or len(ciphertext) % block_bytes:
        raise MalformedEnvelope("Ciphertext is not a whole number of blocks.")

    decryptor = _aes_cbc(key_bytes, bytes.fromhex(iv_hex)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        data = unpadder.update(padded) + unpadder.finalize()
        return data.decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        raise DecryptionFailed("Could not decrypt value with the current key.") from None


class FieldCipher:
    """Encrypts individual field values under one bound data key.

    Values are JSON-encoded before encryption so strings and structured
    payloads share the same envelope format. Each call uses its own IV.
    """

    def __init__(self, key: str | None) -> None:
        self._key_bytes = _key_bytes(key)
        self._key = self._key_bytes.hex()

    def matches(self, key: str | None) -> bool:
        """True if *key* is the bound key, in any hex case."""
        try:
            other = _key_bytes(key)
        except (EncryptionKeyMissing, ValueError):
            return False
        return hmac.compare_digest(self._key_bytes, other)

    def encrypt_value(self, value: Any) -> str:
        return encrypt(json.dumps(value, ensure_ascii=False), self._key)

    def encrypt_optional(self, value: Any) -> str | None:
        if value is None:
            return None
        return self.encrypt_value(value)

    def decrypt_value(self, envelope: str) -> Any:
        plaintext = decrypt(envelope, self._key)
        try:
            return json.loads(plaintext)
        except json.JSONDecodeError:
            raise DecryptionFailed("Decrypted value is not valid JSON.") from None

    def decrypt_optional(self, envelope: str | None) -> Any:
        if not envelope:
            return None
        return self.decrypt_value(envelope)
