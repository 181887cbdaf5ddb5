"""
VaultAuth - Core Types

Identity, session records, lockout state and token value objects.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any


def utcnow() -> datetime:
    """Timezone-aware current UTC time (default clock)."""
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# ============================================================================
# Lockout State
# ============================================================================

@dataclass(frozen=True)
class LockoutState:
    """
    Failed-login counter for one identity.

    Transitions are pure; stores apply them atomically.
    """
    attempts: int = 0
    locked_until: datetime | None = None

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now

    def retry_after(self, now: datetime) -> int:
        """Whole seconds until the lock lifts (0 when not locked)."""
        if not self.is_locked(now):
            return 0
        return max(1, math.ceil((self.locked_until - now).total_seconds()))

    def after_failure(
        self,
        now: datetime,
        threshold: int,
        duration: timedelta,
    ) -> LockoutState:
        """
        State after one more failed attempt.

        A failure while locked consumes nothing. An expired lock starts a
        fresh window, so the failure counts as attempt 1.
        """
        if self.is_locked(now):
            return self

        base = LockoutState() if self.locked_until is not None else self
        attempts = base.attempts + 1
        locked_until = now + duration if attempts >= threshold else None
        return LockoutState(attempts=attempts, locked_until=locked_until)

    def claim(
        self,
        now: datetime,
        threshold: int,
        duration: timedelta,
    ) -> LockoutState:
        """
        State after reserving one login attempt, before the secret is checked.

        The attempt is counted up front so concurrent logins cannot get more
        than ``threshold`` guesses past the hasher. A claim beyond the
        threshold locks the identity; a claim while locked changes nothing.
        The caller rejects the attempt whenever the result is locked.
        """
        if self.is_locked(now):
            return self

        base = LockoutState() if self.locked_until is not None else self
        if base.attempts >= threshold:
            return LockoutState(attempts=base.attempts, locked_until=now + duration)
        return LockoutState(attempts=base.attempts + 1)

    def settle_failure(
        self,
        now: datetime,
        threshold: int,
        duration: timedelta,
    ) -> LockoutState:
        """State after a claimed attempt failed; the attempt is already counted."""
        if self.is_locked(now) or self.attempts < threshold:
            return self
        return LockoutState(attempts=self.attempts, locked_until=now + duration)

    def settle_success(self, now: datetime) -> LockoutState:
        """State after a claimed attempt succeeded. An active lock survives."""
        if self.is_locked(now):
            return self
        return self.reset()

    def reset(self) -> LockoutState:
        return LockoutState()


# ============================================================================
# Identity Model
# ============================================================================

@dataclass(frozen=True)
class Identity:
    """
    Account holder.

    Immutable value; stores replace it on every mutation. Deactivation is
    a flag, never erasure.
    """
    id: str
    username: str
    email: str
    password_hash: str
    active: bool = True
    failed_attempts: int = 0
    locked_until: datetime | None = None
    last_login: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def is_active(self) -> bool:
        return self.active

    @property
    def lockout(self) -> LockoutState:
        return LockoutState(attempts=self.failed_attempts, locked_until=self.locked_until)

    def with_lockout(self, state: LockoutState, now: datetime | None = None) -> Identity:
        return replace(
            self,
            failed_attempts=state.attempts,
            locked_until=state.locked_until,
            updated_at=now or utcnow(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "password_hash": self.password_hash,
            "active": self.active,
            "failed_attempts": self.failed_attempts,
            "locked_until": _iso(self.locked_until),
            "last_login": _iso(self.last_login),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Identity:
        """Deserialize from dict."""
        return cls(
            id=data["id"],
            username=data["username"],
            email=data["email"],
            password_hash=data["password_hash"],
            active=data.get("active", True),
            failed_attempts=data.get("failed_attempts", 0),
            locked_until=_from_iso(data.get("locked_until")),
            last_login=_from_iso(data.get("last_login")),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


# ============================================================================
# Session Record
# ============================================================================

@dataclass(frozen=True)
class SessionRecord:
    """
    Persisted state backing one issued token pair.

    Holds only SHA-256 digests of the tokens; the bearer strings exist
    solely on the client.
    """
    session_id: str
    owner_id: str
    token_hash: str
    refresh_token_hash: str
    issued_at: datetime
    expires_at: datetime          # current access token
    refresh_expires_at: datetime  # refresh token, i.e. the session itself
    last_activity: datetime
    valid: bool = True
    device_info: str | None = None
    ip_address: str | None = None

    def is_live(self, now: datetime) -> bool:
        """Valid and still refreshable."""
        return self.valid and self.refresh_expires_at > now

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict."""
        return {
            "session_id": self.session_id,
            "owner_id": self.owner_id,
            "token_hash": self.token_hash,
            "refresh_token_hash": self.refresh_token_hash,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "refresh_expires_at": self.refresh_expires_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "valid": self.valid,
            "device_info": self.device_info,
            "ip_address": self.ip_address,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionRecord:
        """Deserialize from dict."""
        return cls(
            session_id=data["session_id"],
            owner_id=data["owner_id"],
            token_hash=data["token_hash"],
            refresh_token_hash=data["refresh_token_hash"],
            issued_at=datetime.fromisoformat(data["issued_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            refresh_expires_at=datetime.fromisoformat(data["refresh_expires_at"]),
            last_activity=datetime.fromisoformat(data["last_activity"]),
            valid=data.get("valid", True),
            device_info=data.get("device_info"),
            ip_address=data.get("ip_address"),
        )


# ============================================================================
# Tokens
# ============================================================================

@dataclass(frozen=True)
class TokenClaims:
    """Decoded, signature-checked token claims."""
    sub: str                 # owner id
    typ: str                 # "access" or "refresh"
    iat: int
    exp: int
    jti: str
    sid: str | None = None
    iss: str | None = None
    aud: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TokenClaims:
        return cls(
            sub=str(payload["sub"]),
            typ=payload["typ"],
            iat=int(payload["iat"]),
            exp=int(payload["exp"]),
            jti=payload["jti"],
            sid=payload.get("sid"),
            iss=payload.get("iss"),
            aud=payload.get("aud"),
        )


@dataclass(frozen=True)
class TokenPair:
    """Access + refresh token issued together for one session."""
    access_token: str
    refresh_token: str
    session_id: str
    expires_in: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "session_id": self.session_id,
            "expires_in": self.expires_in,
        }


@dataclass
class AuthResult:
    """Result of a successful login or registration."""
    identity: Identity
    tokens: TokenPair
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def access_token(self) -> str:
        return self.tokens.access_token

    @property
    def refresh_token(self) -> str:
        return self.tokens.refresh_token
