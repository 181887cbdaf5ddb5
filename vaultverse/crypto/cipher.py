"""
VaultCrypto - Secret Cipher

Encryption-at-rest for individual secret fields (site passwords, notes)
under the server-held master key.

Wire format of an encrypted field:
    <hex iv>:<hex ciphertext||tag>

AES-256-GCM is used so that a wrong key or a modified byte always fails
the tag check instead of producing corrupted plaintext.
"""

from __future__ import annotations

import binascii
import hashlib
import logging
import secrets
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from vaultverse.faults import INVALID_INPUT
from .faults import CRYPTO_DECRYPTION_FAILED, CRYPTO_MALFORMED_CIPHERTEXT


KEY_SIZE = 32        # AES-256
IV_SIZE = 12         # 96-bit GCM nonce
TAG_SIZE = 16        # 128-bit authentication tag
SEPARATOR = ":"


# ============================================================================
# Encrypted Field
# ============================================================================

@dataclass(frozen=True)
class EncryptedField:
    """
    Persisted representation of one encrypted value.

    Equality compares IV and ciphertext, so two encryptions of the same
    plaintext never compare equal.
    """
    iv: bytes
    ciphertext: bytes

    def serialize(self) -> str:
        """Encode as the delimited wire string."""
        return f"{self.iv.hex()}{SEPARATOR}{self.ciphertext.hex()}"

    def __str__(self) -> str:
        return self.serialize()

    @classmethod
    def parse(cls, value: str) -> EncryptedField:
        """
        Parse the delimited wire string.

        Raises:
            CRYPTO_MALFORMED_CIPHERTEXT: Not ``hex:hex`` or wrong part sizes
        """
        if not isinstance(value, str) or value.count(SEPARATOR) != 1:
            raise CRYPTO_MALFORMED_CIPHERTEXT(reason="expected iv:ciphertext")

        iv_hex, ct_hex = value.split(SEPARATOR)
        try:
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(ct_hex)
        except ValueError:
            raise CRYPTO_MALFORMED_CIPHERTEXT(reason="non-hex component") from None

        if len(iv) != IV_SIZE:
            raise CRYPTO_MALFORMED_CIPHERTEXT(reason="bad iv length")
        if len(ciphertext) < TAG_SIZE:
            raise CRYPTO_MALFORMED_CIPHERTEXT(reason="ciphertext shorter than tag")

        return cls(iv=iv, ciphertext=ciphertext)


# ============================================================================
# Secret Cipher
# ============================================================================

class SecretCipher:
    """
    Symmetric field cipher bound to the deployment master key.

    The key is handed in once at construction and kept only on the
    AESGCM primitive; it is never logged or exposed through repr().

    Example:
        >>> cipher = SecretCipher.from_hex(config.master_key)
        >>> field = cipher.encrypt("hunter2")
        >>> cipher.decrypt(field.serialize())
        'hunter2'
    """

    def __init__(self, master_key: bytes, logger: logging.Logger | None = None):
        if not isinstance(master_key, (bytes, bytearray)) or len(master_key) != KEY_SIZE:
            raise INVALID_INPUT(reason=f"master key must be {KEY_SIZE} bytes")

        self._aead = AESGCM(bytes(master_key))
        self.logger = logger or logging.getLogger("vaultverse.cipher")

    @classmethod
    def from_hex(cls, master_key_hex: str, logger: logging.Logger | None = None) -> SecretCipher:
        """Build a cipher from the hex-encoded master key in configuration."""
        try:
            key = binascii.unhexlify(master_key_hex)
        except (binascii.Error, TypeError, ValueError):
            raise INVALID_INPUT(reason="master key is not valid hex") from None
        return cls(key, logger=logger)

    def __repr__(self) -> str:
        return "SecretCipher(algorithm='AES-256-GCM')"

    def encrypt(self, plaintext: str) -> EncryptedField:
        """
        Encrypt a non-empty string under a fresh random IV.

        Raises:
            INVALID_INPUT: Empty or non-string plaintext
        """
        if not isinstance(plaintext, str) or not plaintext:
            raise INVALID_INPUT(reason="plaintext must be a non-empty string")

        iv = secrets.token_bytes(IV_SIZE)
        ciphertext = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        return EncryptedField(iv=iv, ciphertext=ciphertext)

    def decrypt(self, field: EncryptedField | str) -> str:
        """
        Decrypt a field produced by encrypt().

        Raises:
            CRYPTO_MALFORMED_CIPHERTEXT: Field cannot be parsed
            CRYPTO_DECRYPTION_FAILED: Wrong key, tampering or truncation
        """
        if not isinstance(field, EncryptedField):
            field = EncryptedField.parse(field)

        try:
            plaintext = self._aead.decrypt(field.iv, field.ciphertext, None)
            return plaintext.decode("utf-8")
        except (InvalidTag, UnicodeDecodeError):
            self.logger.warning("Field decryption failed")
            raise CRYPTO_DECRYPTION_FAILED() from None

    def encrypt_optional(self, plaintext: str | None) -> str | None:
        """Encrypt an optional value to its wire string; empty stays None."""
        if not plaintext:
            return None
        return self.encrypt(plaintext).serialize()

    def decrypt_optional(self, value: str | None) -> str | None:
        """Decrypt an optional wire string; None stays None."""
        if value is None:
            return None
        return self.decrypt(value)


# ============================================================================
# Hash Primitives
# ============================================================================

def digest_token(token: str) -> str:
    """
    One-way SHA-256 digest of a bearer token, hex encoded.

    Session records store this digest, never the token itself.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_secure_token(nbytes: int = 32) -> str:
    """Random hex token from the OS CSPRNG."""
    return secrets.token_hex(nbytes)


def generate_master_key() -> str:
    """Fresh random master key, hex encoded (64 chars)."""
    return secrets.token_hex(KEY_SIZE)
