"""
Cipher Module for XDB.

Every file XDB writes (databases and the system registry) is sealed
with AES-256-GCM under a key derived from the configured secret.

Key derivation:
    1. Argon2id over the secret and salt (64 MiB, 4 passes, 1 lane)
    2. scrypt over the same secret and salt (N=2^14, r=8, p=1)

The Argon2id pass is a work factor only; the scrypt output is the
cipher key. Each encryption draws a fresh 256-bit salt and a 128-bit
nonce, so no two payloads share a key/nonce pair.
"""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.argon2 import Argon2id
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from xdb.errors import AuthenticationError, ConfigurationError, StorageReadError
from xdb.schema import EncryptedPayload

KEY_LENGTH = 32
SALT_LENGTH = 32
NONCE_LENGTH = 16
TAG_LENGTH = 16


class KdfParams(BaseModel):
    """
    Key-derivation cost parameters.

    Defaults are production values. Tests pass cheaper ones.

    Attributes:
        argon2_memory_cost: Argon2id memory in KiB
        argon2_iterations: Argon2id passes
        argon2_lanes: Argon2id parallelism
        scrypt_n: scrypt CPU/memory cost, a power of two
        scrypt_r: scrypt block size
        scrypt_p: scrypt parallelism
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    argon2_memory_cost: int = Field(default=64 * 1024, ge=8)
    argon2_iterations: int = Field(default=4, ge=1)
    argon2_lanes: int = Field(default=1, ge=1)
    scrypt_n: int = Field(default=2**14, gt=1)
    scrypt_r: int = Field(default=8, ge=1)
    scrypt_p: int = Field(default=1, ge=1)

    @field_validator("scrypt_n")
    @classmethod
    def validate_power_of_two(cls, v: int) -> int:
        """scrypt requires N to be a power of two."""
        if v & (v - 1):
            raise ValueError("scrypt_n must be a power of two")
        return v

    @model_validator(mode="after")
    def validate_argon2_memory(self) -> "KdfParams":
        """Argon2 needs at least 8 KiB per lane."""
        if self.argon2_memory_cost < 8 * self.argon2_lanes:
            raise ValueError("argon2_memory_cost must be at least 8 KiB per lane")
        return self


DEFAULT_KDF = KdfParams()


def derive_key(secret: str, salt: bytes, params: KdfParams = DEFAULT_KDF) -> bytes:
    """
    Derive the 256-bit cipher key for a secret and salt.

    Args:
        secret: The configured encryption secret
        salt: Random salt stored alongside the ciphertext
        params: Cost parameters

    Returns:
        32-byte key
    """
    material = secret.encode("utf-8")

    # Work factor only; the result is not used as key material.
    Argon2id(
        salt=salt,
        length=KEY_LENGTH,
        iterations=params.argon2_iterations,
        lanes=params.argon2_lanes,
        memory_cost=params.argon2_memory_cost,
    ).derive(material)

    return Scrypt(
        salt=salt,
        length=KEY_LENGTH,
        n=params.scrypt_n,
        r=params.scrypt_r,
        p=params.scrypt_p,
    ).derive(material)


def encrypt(plaintext: str | bytes, secret: str, params: KdfParams = DEFAULT_KDF) -> EncryptedPayload:
    """
    Seal plaintext under a key derived from `secret`.

    Returns:
        EncryptedPayload with hex ciphertext, nonce, tag and salt
    """
    data = plaintext.encode("utf-8") if isinstance(plaintext, str) else plaintext
    salt = os.urandom(SALT_LENGTH)
    nonce = os.urandom(NONCE_LENGTH)
    key = derive_key(secret, salt, params)

    sealed = AESGCM(key).encrypt(nonce, data, None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    return EncryptedPayload(
        ciphertext=ciphertext.hex(),
        nonce=nonce.hex(),
        tag=tag.hex(),
        salt=salt.hex(),
    )


def decrypt_bytes(
    payload: EncryptedPayload, secret: str, params: KdfParams = DEFAULT_KDF
) -> bytes:
    """
    Open a payload and return the raw plaintext.

    Raises:
        StorageReadError: If a field is not valid hex or has the wrong length
        AuthenticationError: If the tag does not verify (tampering or wrong secret)
    """
    try:
        ciphertext = bytes.fromhex(payload.ciphertext)
        nonce = bytes.fromhex(payload.nonce)
        tag = bytes.fromhex(payload.tag)
        salt = bytes.fromhex(payload.salt)
    except ValueError as e:
        raise StorageReadError(
            operation="decrypt",
            underlying_error=f"malformed encrypted payload: {e}",
        ) from e

    if len(tag) != TAG_LENGTH or len(nonce) < 8 or len(salt) < 16:
        raise StorageReadError(
            operation="decrypt",
            underlying_error="malformed encrypted payload: bad nonce, tag or salt length",
        )

    key = derive_key(secret, salt, params)
    try:
        return AESGCM(key).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as e:
        raise AuthenticationError() from e


def decrypt(payload: EncryptedPayload, secret: str, params: KdfParams = DEFAULT_KDF) -> str:
    """Open a payload whose plaintext is UTF-8 text."""
    data = decrypt_bytes(payload, secret, params)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise StorageReadError(
            operation="decrypt",
            underlying_error="decrypted payload is not UTF-8 text",
        ) from e


class Cipher:
    """
    A secret bound to cost parameters.

    Example:
        >>> cipher = Cipher("s3cret")
        >>> payload = cipher.encrypt('{"a": 1}')
        >>> cipher.decrypt(payload)
        '{"a": 1}'
    """

    def __init__(self, secret: str, params: KdfParams | None = None):
        if not secret:
            raise ConfigurationError(
                setting="encryption_key",
                message="Encryption key must not be empty",
            )
        self._secret = secret
        self.params = params or DEFAULT_KDF

    def encrypt(self, plaintext: str | bytes) -> EncryptedPayload:
        return encrypt(plaintext, self._secret, self.params)

    def decrypt(self, payload: EncryptedPayload) -> str:
        return decrypt(payload, self._secret, self.params)

    def __repr__(self) -> str:
        return f"Cipher(params={self.params!r})"
