"""
VaultCodec - Export/Import Faults
"""

from vaultverse.crypto.faults import CRYPTO_FAILURE
from vaultverse.faults import FaultDomain, Severity, INVALID_INPUT


class VAULT_EMPTY(INVALID_INPUT):
    """Nothing to export."""
    domain = FaultDomain.VAULT
    code = "VAULT_001"
    severity = Severity.INFO
    message = "Vault is empty"
    public_message = "There are no accounts to export"


class VAULT_PASSPHRASE_WEAK(INVALID_INPUT):
    """Export passphrase fails the minimum-length policy."""
    domain = FaultDomain.VAULT
    code = "VAULT_002"
    severity = Severity.INFO
    message = "Export passphrase too weak"
    public_message = "Export passphrase is too short"

    def __init__(self, min_length: int | None = None, **context):
        super().__init__(**context)
        if min_length:
            self.metadata["min_length"] = min_length


class VAULT_CONTAINER_MALFORMED(CRYPTO_FAILURE):
    """
    Container decrypted but its bundle is unusable.

    Shares CRYPTO_FAILURE's public message so callers cannot tell it
    apart from a wrong passphrase.
    """
    domain = FaultDomain.VAULT
    code = "VAULT_003"
    message = "Malformed vault container"
