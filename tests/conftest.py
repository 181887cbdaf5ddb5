"""
Shared test fixtures and helpers for the VaultVerse test suite.
"""

from datetime import datetime, timedelta, timezone

import pytest

from vaultverse.auth.core import Identity
from vaultverse.auth.lockout import LockoutPolicy
from vaultverse.auth.manager import AuthManager
from vaultverse.auth.stores import MemoryActivityLog, MemoryIdentityStore, MemorySessionStore
from vaultverse.auth.tokens import KeyRing, TokenAuthority
from vaultverse.crypto.cipher import SecretCipher, generate_master_key
from vaultverse.crypto.hashing import CredentialHasher
from vaultverse.vault.codec import VaultCodec


TOKEN_SECRET = "test-token-secret-0123456789abcdef0123456789"
STRONG_PASSWORD = "Correct-Horse-9"


class FakeClock:
    """Controllable clock for expiry and lockout tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def cheap_hasher(**kwargs) -> CredentialHasher:
    """Argon2id with minimal work factor to keep the suite fast."""
    params = dict(time_cost=1, memory_cost=8, parallelism=1)
    params.update(kwargs)
    return CredentialHasher(**params)


def make_identity(identity_id: str = "user-1", hasher: CredentialHasher | None = None, **kwargs) -> Identity:
    hasher = hasher or cheap_hasher()
    params = dict(
        id=identity_id,
        username=identity_id,
        email=f"{identity_id}@example.com",
        password_hash=hasher.hash(STRONG_PASSWORD),
    )
    params.update(kwargs)
    return Identity(**params)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hasher():
    return cheap_hasher()


@pytest.fixture
def cipher():
    return SecretCipher.from_hex(generate_master_key())


@pytest.fixture
def identity_store():
    return MemoryIdentityStore()


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def activity_log():
    return MemoryActivityLog()


@pytest.fixture
def key_ring():
    return KeyRing.from_secret(TOKEN_SECRET)


@pytest.fixture
def authority(key_ring, session_store, identity_store, clock):
    return TokenAuthority(key_ring, session_store, identity_store, clock=clock)


@pytest.fixture
def lockout(identity_store, clock):
    return LockoutPolicy(identity_store, max_attempts=5, lockout_duration=timedelta(minutes=30), clock=clock)


@pytest.fixture
def manager(identity_store, authority, lockout, hasher, activity_log, clock):
    return AuthManager(
        identity_store,
        authority,
        lockout,
        password_hasher=hasher,
        activity_log=activity_log,
        clock=clock,
    )


@pytest.fixture
def codec(cipher, clock):
    return VaultCodec(cipher=cipher, kdf_n=2**10, clock=clock)
