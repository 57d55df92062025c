"""
Unit tests for the cipher.

Tests cover:
- Encrypt/decrypt with the same secret
- Payload layout
- Tamper and wrong-secret detection
- Malformed payloads
- Cost parameter validation
"""

import pytest
from pydantic import ValidationError

from xdb.crypto import (
    DEFAULT_KDF,
    NONCE_LENGTH,
    SALT_LENGTH,
    TAG_LENGTH,
    Cipher,
    KdfParams,
    decrypt,
    decrypt_bytes,
    derive_key,
    encrypt,
)
from xdb.errors import AuthenticationError, ConfigurationError, StorageReadError

SECRET = "crypto-secret"
FAST_KDF = KdfParams(
    argon2_memory_cost=8,
    argon2_iterations=1,
    argon2_lanes=1,
    scrypt_n=16,
    scrypt_r=1,
    scrypt_p=1,
)


class TestEncryptDecrypt:
    """Tests for sealing and opening payloads."""

    def test_round_trip(self, cipher: Cipher) -> None:
        """The plaintext comes back unchanged."""
        payload = cipher.encrypt('{"app": {"tables": {}}}')
        assert cipher.decrypt(payload) == '{"app": {"tables": {}}}'

    def test_payload_layout(self, cipher: Cipher) -> None:
        """Fields are hex with the expected lengths; the tag is separate."""
        payload = cipher.encrypt("hello")
        assert len(bytes.fromhex(payload.nonce)) == NONCE_LENGTH
        assert len(bytes.fromhex(payload.tag)) == TAG_LENGTH
        assert len(bytes.fromhex(payload.salt)) == SALT_LENGTH
        assert len(bytes.fromhex(payload.ciphertext)) == len(b"hello")

    def test_fresh_salt_and_nonce(self, cipher: Cipher) -> None:
        """Encrypting the same text twice gives different payloads."""
        a = cipher.encrypt("same")
        b = cipher.encrypt("same")
        assert a.salt != b.salt
        assert a.nonce != b.nonce
        assert a.ciphertext != b.ciphertext

    def test_bytes_plaintext(self) -> None:
        """Binary plaintext opens with decrypt_bytes."""
        payload = encrypt(b"\x00\xff", SECRET, FAST_KDF)
        assert decrypt_bytes(payload, SECRET, FAST_KDF) == b"\x00\xff"

    def test_key_is_deterministic(self) -> None:
        """The same secret and salt derive the same key."""
        salt = b"s" * SALT_LENGTH
        assert derive_key(SECRET, salt, FAST_KDF) == derive_key(SECRET, salt, FAST_KDF)
        assert derive_key(SECRET, salt, FAST_KDF) != derive_key("other", salt, FAST_KDF)
        assert len(derive_key(SECRET, salt, FAST_KDF)) == 32


class TestTamperDetection:
    """Tests for authentication failures."""

    def test_wrong_secret(self, cipher: Cipher) -> None:
        """A different secret cannot open the payload."""
        payload = cipher.encrypt("secret data")
        with pytest.raises(AuthenticationError):
            decrypt(payload, "wrong-secret", FAST_KDF)

    def test_tampered_tag(self, cipher: Cipher) -> None:
        """A flipped tag bit is detected."""
        payload = cipher.encrypt("secret data")
        tag = bytearray(bytes.fromhex(payload.tag))
        tag[0] ^= 0x01
        tampered = payload.model_copy(update={"tag": tag.hex()})
        with pytest.raises(AuthenticationError):
            cipher.decrypt(tampered)

    def test_tampered_ciphertext(self, cipher: Cipher) -> None:
        """A flipped ciphertext bit is detected."""
        payload = cipher.encrypt("secret data")
        body = bytearray(bytes.fromhex(payload.ciphertext))
        body[-1] ^= 0x80
        tampered = payload.model_copy(update={"ciphertext": body.hex()})
        with pytest.raises(AuthenticationError):
            cipher.decrypt(tampered)


class TestMalformedPayloads:
    """Tests for payloads that cannot be parsed."""

    def test_bad_hex(self, cipher: Cipher) -> None:
        """Non-hex fields are read errors."""
        payload = cipher.encrypt("x").model_copy(update={"nonce": "zz"})
        with pytest.raises(StorageReadError):
            cipher.decrypt(payload)

    def test_short_tag(self, cipher: Cipher) -> None:
        """A truncated tag is a read error."""
        payload = cipher.encrypt("x")
        payload = payload.model_copy(update={"tag": payload.tag[:8]})
        with pytest.raises(StorageReadError):
            cipher.decrypt(payload)

    def test_non_utf8_plaintext(self) -> None:
        """Text decryption rejects binary plaintext."""
        payload = encrypt(b"\xff\xfe\xfd", SECRET, FAST_KDF)
        with pytest.raises(StorageReadError):
            decrypt(payload, SECRET, FAST_KDF)


class TestCipherConfiguration:
    """Tests for Cipher and KdfParams."""

    def test_empty_secret(self) -> None:
        """An empty secret is a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            Cipher("")
        assert exc_info.value.context["setting"] == "encryption_key"

    def test_repr_hides_secret(self) -> None:
        """The secret never appears in repr."""
        assert SECRET not in repr(Cipher(SECRET, FAST_KDF))

    def test_default_params(self) -> None:
        """Production defaults are the documented costs."""
        params = KdfParams()
        assert params.argon2_memory_cost == 64 * 1024
        assert params.argon2_iterations == 4
        assert params.scrypt_n == 2**14
        assert params.scrypt_r == 8

    def test_scrypt_n_power_of_two(self) -> None:
        """scrypt N must be a power of two."""
        with pytest.raises(ValidationError):
            KdfParams(scrypt_n=1000)

    def test_argon2_memory_per_lane(self) -> None:
        """Argon2 memory must cover every lane."""
        with pytest.raises(ValidationError):
            KdfParams(argon2_memory_cost=8, argon2_lanes=2)

    def test_unknown_field(self) -> None:
        """Unknown parameters are rejected."""
        with pytest.raises(ValidationError):
            KdfParams(rounds=3)

    @pytest.mark.slow
    def test_production_params_round_trip(self) -> None:
        """Default cost parameters encrypt and decrypt."""
        payload = encrypt("production", SECRET, DEFAULT_KDF)
        assert decrypt(payload, SECRET, DEFAULT_KDF) == "production"
