"""
VaultCrypto - Field encryption and credential hashing.

- SecretCipher: AES-256-GCM encryption of stored secret fields
- CredentialHasher: Argon2id / PBKDF2 login-secret digests
- digest_token: SHA-256 digests for bearer tokens at rest
"""

from .cipher import (
    EncryptedField,
    SecretCipher,
    digest_token,
    generate_master_key,
    generate_secure_token,
)
from .hashing import CredentialHasher, PasswordPolicy
from .faults import (
    CRYPTO_FAILURE,
    CRYPTO_MALFORMED_CIPHERTEXT,
    CRYPTO_DECRYPTION_FAILED,
    CRYPTO_INVALID_DIGEST,
)

__all__ = [
    "EncryptedField",
    "SecretCipher",
    "digest_token",
    "generate_master_key",
    "generate_secure_token",
    "CredentialHasher",
    "PasswordPolicy",
    "CRYPTO_FAILURE",
    "CRYPTO_MALFORMED_CIPHERTEXT",
    "CRYPTO_DECRYPTION_FAILED",
    "CRYPTO_INVALID_DIGEST",
]
