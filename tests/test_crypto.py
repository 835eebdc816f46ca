"""Tests for key derivation, passcode hashing, and envelope encryption."""

import base64

import pytest

from rememberme.domain import DecryptionFailed, EncryptionKeyMissing, MalformedEnvelope
from rememberme.security import (
    FieldCipher,
    decrypt,
    derive_key,
    encrypt,
    generate_salt,
    generate_secure_key,
    hash_password,
    verify_password,
)


def test_derive_key_is_deterministic_and_256_bit():
    salt = generate_salt()
    a = derive_key("1234", salt)
    b = derive_key("1234", salt)
    assert a == b
    assert len(bytes.fromhex(a)) == 32
    assert derive_key("1235", salt) != a
    assert derive_key("1234", generate_salt()) != a


def test_salt_and_key_sizes_and_uniqueness():
    assert len(bytes.fromhex(generate_salt())) == 16
    assert len(bytes.fromhex(generate_secure_key())) == 32
    assert generate_salt() != generate_salt()
    assert generate_secure_key() != generate_secure_key()


def test_hash_password_differs_from_derived_key():
    salt = generate_salt()
    assert hash_password("1234", salt) != derive_key("1234", salt)
    assert hash_password("1234", salt) == hash_password("1234", salt)


def test_verify_password():
    salt = generate_salt()
    stored = hash_password("1234", salt)
    assert verify_password("1234", salt, stored)
    assert not verify_password("0000", salt, stored)


def test_encrypt_envelope_format():
    envelope = encrypt("Jordan Lee", generate_secure_key())
    assert envelope.count(":") == 1
    iv_hex, ciphertext = envelope.split(":")
    assert len(iv_hex) == 32
    int(iv_hex, 16)
    assert len(base64.b64decode(ciphertext)) % 16 == 0


def test_encrypt_uses_fresh_iv_and_round_trips():
    key = generate_secure_key()
    first = encrypt("Jordan Lee", key)
    second = encrypt("Jordan Lee", key)
    assert first != second
    assert "Jordan Lee" not in first
    assert decrypt(first, key) == "Jordan Lee"
    assert decrypt(second, key) == "Jordan Lee"


def test_unicode_and_empty_plaintext_round_trip():
    key = generate_secure_key()
    assert decrypt(encrypt("", key), key) == ""
    assert decrypt(encrypt("Zoë • café ☕", key), key) == "Zoë • café ☕"


def test_decrypt_with_wrong_key_raises():
    envelope = encrypt('"Jordan Lee"', generate_secure_key())
    with pytest.raises(DecryptionFailed):
        FieldCipher(generate_secure_key()).decrypt_value(envelope)


@pytest.mark.parametrize(
    "envelope",
    [
        "no-separator",
        "a:b:c",
        "zz" * 16 + ":AAAAAAAAAAAAAAAAAAAAAA==",
        "00" * 8 + ":AAAAAAAAAAAAAAAAAAAAAA==",
        "00" * 16 + ":not base64!",
        "00" * 16 + ":",
        "00" * 16 + ":" + base64.b64encode(b"short").decode(),
    ],
)
def test_decrypt_malformed_envelope(envelope):
    with pytest.raises(MalformedEnvelope):
        decrypt(envelope, generate_secure_key())


def test_missing_key_raises():
    with pytest.raises(EncryptionKeyMissing):
        encrypt("x", "")
    with pytest.raises(EncryptionKeyMissing):
        FieldCipher(None)


def test_invalid_key_rejected():
    with pytest.raises(ValueError):
        FieldCipher("not-hex")
    with pytest.raises(ValueError):
        FieldCipher("ab" * 8)


def test_field_cipher_round_trips_structured_values():
    cipher = FieldCipher(generate_secure_key())
    payload = {"phone": "+12025551234", "email": "jordan@example.com"}
    envelope = cipher.encrypt_value(payload)
    assert "jordan@example.com" not in envelope
    assert cipher.decrypt_value(envelope) == payload
    assert cipher.encrypt_optional(None) is None
    assert cipher.decrypt_optional(None) is None
    assert cipher.decrypt_optional("") is None


def test_field_cipher_matches_only_its_key():
    key = generate_secure_key()
    cipher = FieldCipher(key)
    assert cipher.matches(key)
    assert not cipher.matches(generate_secure_key())
    assert not cipher.matches(None)
    assert not cipher.matches("not-hex")


def test_field_cipher_key_is_case_insensitive():
    key = generate_secure_key()
    upper = FieldCipher(key.upper())
    assert upper.matches(key)
    assert FieldCipher(key).decrypt_value(upper.encrypt_value("Jordan")) == "Jordan"
