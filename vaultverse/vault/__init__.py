"""
VaultCodec - Portable encrypted backups of account credentials.
"""

from .models import (
    DecryptedAccount,
    StoredAccount,
    VaultContainer,
    ImportResult,
    SkippedRecord,
    VaultSummary,
)
from .codec import VaultCodec
from .faults import VAULT_EMPTY, VAULT_PASSPHRASE_WEAK, VAULT_CONTAINER_MALFORMED

__all__ = [
    "DecryptedAccount",
    "StoredAccount",
    "VaultContainer",
    "ImportResult",
    "SkippedRecord",
    "VaultSummary",
    "VaultCodec",
    "VAULT_EMPTY",
    "VAULT_PASSPHRASE_WEAK",
    "VAULT_CONTAINER_MALFORMED",
]
