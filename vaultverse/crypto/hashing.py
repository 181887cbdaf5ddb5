"""
VaultCrypto - Credential Hashing

Argon2id hashing for account login secrets, with PBKDF2-HMAC-SHA256
digests supported as a configurable alternative.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import re
import secrets
from typing import Literal

from argon2 import PasswordHasher as Argon2PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from vaultverse.faults import INVALID_INPUT
from .faults import CRYPTO_INVALID_DIGEST


ARGON2_PREFIX = "$argon2id$"
PBKDF2_PREFIX = "$pbkdf2_sha256$"
MAX_PBKDF2_ITERATIONS = 10_000_000


class CredentialHasher:
    """
    One-way, salted, deliberately slow hashing of login secrets.

    The work factor is fixed per deployment: every digest produced by a
    hasher instance uses the same parameters, and needs_rehash() reports
    digests created under older ones.

    Security parameters (defaults):
    - Argon2id: time_cost=2, memory_cost=65536 (64MB), parallelism=4
    - PBKDF2: iterations=600000, hash=SHA256
    """

    def __init__(
        self,
        algorithm: Literal["argon2id", "pbkdf2_sha256"] = "argon2id",
        # Argon2 parameters
        time_cost: int = 2,
        memory_cost: int = 65536,  # 64 MB
        parallelism: int = 4,
        hash_len: int = 32,
        salt_len: int = 16,
        # PBKDF2 parameters
        iterations: int = 600000,
        logger: logging.Logger | None = None,
    ):
        if algorithm not in ("argon2id", "pbkdf2_sha256"):
            raise ValueError(f"Unsupported algorithm: {algorithm}")
        if not 0 < iterations <= MAX_PBKDF2_ITERATIONS:
            raise ValueError(f"iterations must be between 1 and {MAX_PBKDF2_ITERATIONS}")

        self.algorithm = algorithm
        self.hash_len = hash_len
        self.salt_len = salt_len
        self.iterations = iterations
        self.logger = logger or logging.getLogger("vaultverse.hashing")

        # Always constructed: argon2id digests stay verifiable even when
        # the deployment hashes with PBKDF2.
        self._argon2 = Argon2PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=hash_len,
            salt_len=salt_len,
        )

    def hash(self, secret: str) -> str:
        """
        Hash a login secret.

        Returns encoded hash that includes algorithm, parameters, salt, and hash.

        Example Argon2 output:
            $argon2id$v=19$m=65536,t=2,p=4$saltbase64$hashbase64

        Example PBKDF2 output:
            $pbkdf2_sha256$600000$saltbase64$hashbase64

        Raises:
            INVALID_INPUT: Empty or non-string secret
        """
        if not isinstance(secret, str) or not secret:
            raise INVALID_INPUT(reason="secret must be a non-empty string")

        if self.algorithm == "argon2id":
            return self._argon2.hash(secret)
        return self._hash_pbkdf2(secret)

    def verify(self, secret: str, digest: str) -> bool:
        """
        Verify a secret against a stored digest.

        A mismatch is a normal False result. Only a digest whose encoding
        cannot be understood is an error.

        Raises:
            CRYPTO_INVALID_DIGEST: Unknown scheme or corrupt encoding
        """
        if not isinstance(digest, str):
            raise CRYPTO_INVALID_DIGEST(reason="digest must be a string")
        if not isinstance(secret, str):
            return False

        if digest.startswith(ARGON2_PREFIX):
            return self._verify_argon2(secret, digest)
        if digest.startswith(PBKDF2_PREFIX):
            return self._verify_pbkdf2(secret, digest)

        raise CRYPTO_INVALID_DIGEST(reason="unknown digest scheme")

    def needs_rehash(self, digest: str) -> bool:
        """
        Check if a digest should be regenerated with current parameters.
        """
        if self.algorithm == "argon2id":
            if not digest.startswith(ARGON2_PREFIX):
                return True
            try:
                return self._argon2.check_needs_rehash(digest)
            except (InvalidHashError, ValueError):
                return True

        if not digest.startswith(PBKDF2_PREFIX):
            return True
        try:
            return int(digest.split("$")[2]) != self.iterations
        except (IndexError, ValueError):
            return True

    def _hash_pbkdf2(self, secret: str) -> str:
        """Hash secret with PBKDF2-HMAC-SHA256."""
        salt = secrets.token_bytes(self.salt_len)

        derived = hashlib.pbkdf2_hmac(
            "sha256",
            secret.encode(),
            salt,
            self.iterations,
            dklen=self.hash_len,
        )

        # Encode in custom format: $pbkdf2_sha256$iterations$salt$hash
        salt_b64 = base64.b64encode(salt).decode()
        hash_b64 = base64.b64encode(derived).decode()

        return f"{PBKDF2_PREFIX}{self.iterations}${salt_b64}${hash_b64}"

    def _verify_argon2(self, secret: str, digest: str) -> bool:
        """Verify an Argon2id digest."""
        try:
            return self._argon2.verify(digest, secret)
        except VerifyMismatchError:
            return False
        except InvalidHashError:
            raise CRYPTO_INVALID_DIGEST(reason="corrupt argon2 digest") from None
        except VerificationError:
            return False

    def _verify_pbkdf2(self, secret: str, digest: str) -> bool:
        """Verify a PBKDF2 digest."""
        # Parse hash: $pbkdf2_sha256$iterations$salt$hash
        parts = digest.split("$")
        if len(parts) != 5:
            raise CRYPTO_INVALID_DIGEST(reason="corrupt pbkdf2 digest")

        try:
            iterations = int(parts[2])
            salt = base64.b64decode(parts[3], validate=True)
            stored_hash = base64.b64decode(parts[4], validate=True)
        except (ValueError, binascii.Error):
            raise CRYPTO_INVALID_DIGEST(reason="corrupt pbkdf2 digest") from None

        if not 0 < iterations <= MAX_PBKDF2_ITERATIONS or not stored_hash:
            raise CRYPTO_INVALID_DIGEST(reason="corrupt pbkdf2 digest")

        computed = hashlib.pbkdf2_hmac(
            "sha256",
            secret.encode(),
            salt,
            iterations,
            dklen=len(stored_hash),
        )

        # Constant-time comparison
        return secrets.compare_digest(computed, stored_hash)


# ============================================================================
# Password Validation
# ============================================================================

SPECIAL_CHARS = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


class PasswordPolicy:
    """
    Password policy validator for account registration.

    Enforces:
    - Minimum length
    - Character requirements (uppercase, lowercase, digit, special)
    """

    def __init__(
        self,
        min_length: int = 8,
        require_uppercase: bool = True,
        require_lowercase: bool = True,
        require_digit: bool = True,
        require_special: bool = True,
    ):
        self.min_length = min_length
        self.require_uppercase = require_uppercase
        self.require_lowercase = require_lowercase
        self.require_digit = require_digit
        self.require_special = require_special

    def validate(self, password: str) -> tuple[bool, list[str]]:
        """
        Validate password against policy.

        Returns:
            (is_valid, error_messages)
        """
        errors = []

        if len(password) < self.min_length:
            errors.append(f"Password must be at least {self.min_length} characters")

        if self.require_uppercase and not any(c.isupper() for c in password):
            errors.append("Password must contain at least one uppercase letter")

        if self.require_lowercase and not any(c.islower() for c in password):
            errors.append("Password must contain at least one lowercase letter")

        if self.require_digit and not any(c.isdigit() for c in password):
            errors.append("Password must contain at least one digit")

        if self.require_special and not SPECIAL_CHARS.search(password):
            errors.append("Password must contain at least one special character")

        return (len(errors) == 0, errors)

    @staticmethod
    def strength(password: str) -> str:
        """Rough strength label: weak, medium, strong or very-strong."""
        score = sum([
            len(password) >= 8,
            len(password) >= 12,
            len(password) >= 16,
            any(c.islower() for c in password),
            any(c.isupper() for c in password),
            any(c.isdigit() for c in password),
            bool(SPECIAL_CHARS.search(password)),
            bool(re.search(r"[^\w\s]", password)),
        ])

        if score <= 3:
            return "weak"
        if score <= 5:
            return "medium"
        if score <= 7:
            return "strong"
        return "very-strong"
