"""
VaultVerse - Credential vault security core

Complete integration of:
- Crypto: AES-256-GCM field encryption, Argon2id credential hashing
- Auth: Signed session tokens with digest-only records and revocation,
  per-identity lockout, login orchestration
- Vault: Passphrase-encrypted export/import of account bundles
- Faults: Structured error handling with fault domains
- Config: Layered typed configuration
"""

__version__ = "1.0.0"

from .faults import Fault, FaultDomain, Severity, INVALID_INPUT
from .config import ConfigError, ConfigLoader, SecurityConfig, get_security_config
from .crypto import (
    EncryptedField,
    SecretCipher,
    CredentialHasher,
    PasswordPolicy,
    digest_token,
    generate_master_key,
    generate_secure_token,
)
from .auth import (
    Identity,
    LockoutState,
    SessionRecord,
    TokenPair,
    AuthResult,
    KeyRing,
    TokenConfig,
    TokenAuthority,
    LockoutPolicy,
    AuthManager,
    MemoryIdentityStore,
    MemorySessionStore,
    MemoryActivityLog,
)
from .vault import (
    DecryptedAccount,
    StoredAccount,
    VaultContainer,
    ImportResult,
    VaultCodec,
)
from .core import SecurityCore

__all__ = [
    "__version__",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "INVALID_INPUT",
    # Config
    "ConfigError",
    "ConfigLoader",
    "SecurityConfig",
    "get_security_config",
    # Crypto
    "EncryptedField",
    "SecretCipher",
    "CredentialHasher",
    "PasswordPolicy",
    "digest_token",
    "generate_master_key",
    "generate_secure_token",
    # Auth
    "Identity",
    "LockoutState",
    "SessionRecord",
    "TokenPair",
    "AuthResult",
    "KeyRing",
    "TokenConfig",
    "TokenAuthority",
    "LockoutPolicy",
    "AuthManager",
    "MemoryIdentityStore",
    "MemorySessionStore",
    "MemoryActivityLog",
    # Vault
    "DecryptedAccount",
    "StoredAccount",
    "VaultContainer",
    "ImportResult",
    "VaultCodec",
    # Facade
    "SecurityCore",
]
