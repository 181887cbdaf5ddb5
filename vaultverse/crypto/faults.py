"""
VaultCrypto - Cryptographic Faults

Decryption and signature failures are deliberately coarse: a wrong key,
corrupted bytes and truncated data all surface with the same public
message so that responses cannot be used as a decryption oracle.
"""

from vaultverse.faults import Fault, FaultDomain, Severity, INVALID_INPUT


class CRYPTO_FAILURE(Fault):
    """Decryption or authentication of ciphertext failed."""
    domain = FaultDomain.CRYPTO
    code = "CRYPTO_001"
    severity = Severity.WARN
    message = "Cryptographic failure"
    public_message = "Data could not be decrypted"
    retryable = False


class CRYPTO_MALFORMED_CIPHERTEXT(CRYPTO_FAILURE):
    """Encrypted field could not be parsed into IV and ciphertext."""
    code = "CRYPTO_002"
    message = "Malformed ciphertext"


class CRYPTO_DECRYPTION_FAILED(CRYPTO_FAILURE):
    """Authentication tag check failed (wrong key, tampering, truncation)."""
    code = "CRYPTO_003"
    message = "Decryption failed"


class CRYPTO_INVALID_DIGEST(INVALID_INPUT):
    """Stored password digest has an unknown or broken encoding."""
    code = "CRYPTO_004"
    message = "Invalid digest format"
    public_message = "Stored credential is unreadable"
    severity = Severity.ERROR
