"""Security package initialization.

Leaf package with the crypto primitives used by the application layer:
passcode hashing, key generation, and field-level encryption.
"""

from rememberme.security.crypto import (
    FieldCipher,
    decrypt,
    derive_key,
    encrypt,
    generate_salt,
    generate_secure_key,
    hash_password,
    verify_password,
)

__all__ = [
    "FieldCipher",
    "decrypt",
    "derive_key",
    "encrypt",
    "generate_salt",
    "generate_secure_key",
    "hash_password",
    "verify_password",
]
