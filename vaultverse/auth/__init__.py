"""
VaultAuth - Sessions, tokens and lockout

- Token Authority: signed access/refresh tokens backed by digest-only
  session records, with immediate revocation
- Lockout Policy: per-identity failed-login state machine
- AuthManager: registration and password login orchestration
- Store protocols with in-memory atomic implementations
"""

# Core types
from .core import (
    Identity,
    LockoutState,
    SessionRecord,
    TokenClaims,
    TokenPair,
    AuthResult,
    utcnow,
)

# Stores
from .stores import (
    IdentityStore,
    SessionStore,
    ActivityLog,
    ActivityEntry,
    MemoryIdentityStore,
    MemorySessionStore,
    MemoryActivityLog,
)

# Token management
from .tokens import (
    KeyDescriptor,
    KeyRing,
    KeyAlgorithm,
    KeyStatus,
    TokenConfig,
    TokenAuthority,
)

from .lockout import LockoutPolicy
from .manager import AuthManager

# Faults
from .faults import (
    AUTH_INVALID_CREDENTIALS,
    AUTH_ACCOUNT_LOCKED,
    AUTH_OWNER_INACTIVE,
    AUTH_IDENTITY_NOT_FOUND,
    AUTH_IDENTITY_EXISTS,
    AUTH_PASSWORD_WEAK,
    AUTH_TOKEN_INVALID,
    AUTH_TOKEN_EXPIRED,
    AUTH_TOKEN_REVOKED,
    AUTH_SESSION_NOT_FOUND,
    AUTH_REFRESH_TOKEN_INVALID,
    STORE_UNAVAILABLE,
    is_auth_fault,
)

__all__ = [
    # Core
    "Identity",
    "LockoutState",
    "SessionRecord",
    "TokenClaims",
    "TokenPair",
    "AuthResult",
    "utcnow",
    # Stores
    "IdentityStore",
    "SessionStore",
    "ActivityLog",
    "ActivityEntry",
    "MemoryIdentityStore",
    "MemorySessionStore",
    "MemoryActivityLog",
    # Tokens
    "KeyDescriptor",
    "KeyRing",
    "KeyAlgorithm",
    "KeyStatus",
    "TokenConfig",
    "TokenAuthority",
    # Policy & orchestration
    "LockoutPolicy",
    "AuthManager",
    # Faults
    "AUTH_INVALID_CREDENTIALS",
    "AUTH_ACCOUNT_LOCKED",
    "AUTH_OWNER_INACTIVE",
    "AUTH_IDENTITY_NOT_FOUND",
    "AUTH_IDENTITY_EXISTS",
    "AUTH_PASSWORD_WEAK",
    "AUTH_TOKEN_INVALID",
    "AUTH_TOKEN_EXPIRED",
    "AUTH_TOKEN_REVOKED",
    "AUTH_SESSION_NOT_FOUND",
    "AUTH_REFRESH_TOKEN_INVALID",
    "STORE_UNAVAILABLE",
    "is_auth_fault",
]
