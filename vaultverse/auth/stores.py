"""
VaultAuth - Identity, Session and Activity Stores

Persistence is an external collaborator. This module defines the keyed
lookup protocols the core relies on and in-memory implementations for
development and testing.

Every mutation the core needs is expressed as a single store operation
(partial update, lockout read-modify-write, session compare-and-set) so
that a relational or key-value backend can implement it as one atomic
statement or transaction. The memory stores serialize those operations
behind an asyncio.Lock.

Stores:
- MemoryIdentityStore: identities + per-identity lockout counters
- MemorySessionStore: session records indexed by token digest
- MemoryActivityLog: append-only activity entries
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Protocol

from .core import Identity, LockoutState, SessionRecord, utcnow
from .faults import AUTH_IDENTITY_EXISTS, AUTH_IDENTITY_NOT_FOUND


# ============================================================================
# Protocols
# ============================================================================


class IdentityStore(Protocol):
    """Keyed persistence for Identity rows."""

    async def create(self, identity: Identity) -> Identity:
        """Insert identity; duplicate id, username or email is an error."""
        ...

    async def get(self, identity_id: str) -> Identity | None:
        """Get identity by ID."""
        ...

    async def get_by_login(self, identifier: str) -> Identity | None:
        """Get identity by username or email."""
        ...

    async def update(self, identity_id: str, **changes: Any) -> Identity:
        """Atomically apply field changes to one identity."""
        ...

    async def update_lockout(
        self,
        identity_id: str,
        mutate: Callable[[LockoutState], LockoutState],
    ) -> LockoutState:
        """Atomically read, transform and write the lockout counters."""
        ...


class SessionStore(Protocol):
    """Keyed persistence for SessionRecord rows."""

    async def insert(self, record: SessionRecord) -> None:
        ...

    async def get_by_token_hash(self, token_hash: str) -> SessionRecord | None:
        ...

    async def get_by_refresh_hash(self, refresh_hash: str) -> SessionRecord | None:
        ...

    async def touch(self, session_id: str, when: datetime) -> None:
        """Update last_activity."""
        ...

    async def rotate(
        self,
        session_id: str,
        *,
        expected_token_hash: str,
        new_token_hash: str,
        new_expires_at: datetime,
        now: datetime,
    ) -> SessionRecord | None:
        """
        Compare-and-set the access-token digest.

        Applies only while the record is valid and still holds
        ``expected_token_hash``; returns None otherwise.
        """
        ...

    async def invalidate_by_hash(self, token_hash: str) -> bool:
        """Mark the record holding this access or refresh digest invalid."""
        ...

    async def invalidate_owner(self, owner_id: str) -> int:
        """Mark every valid record of an owner invalid; return the count."""
        ...

    async def list_live(self, owner_id: str, now: datetime) -> list[SessionRecord]:
        ...

    async def cleanup_expired(self, now: datetime) -> int:
        """Delete expired or invalid records; return the count."""
        ...


class ActivityLog(Protocol):
    """Audit trail sink."""

    async def record(
        self,
        owner_id: str | None,
        action: str,
        details: str | None = None,
        ip_address: str | None = None,
        status: str = "success",
    ) -> None:
        ...


# ============================================================================
# Memory Stores (for development and testing)
# ============================================================================


class MemoryIdentityStore:
    """In-memory identity storage for development/testing."""

    def __init__(self):
        self._identities: dict[str, Identity] = {}
        self._by_login: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def create(self, identity: Identity) -> Identity:
        """Create new identity."""
        async with self._lock:
            if identity.id in self._identities:
                raise AUTH_IDENTITY_EXISTS(field="id")
            if identity.username.lower() in self._by_login:
                raise AUTH_IDENTITY_EXISTS(field="username")
            if identity.email.lower() in self._by_login:
                raise AUTH_IDENTITY_EXISTS(field="email")

            self._identities[identity.id] = identity
            self._by_login[identity.username.lower()] = identity.id
            self._by_login[identity.email.lower()] = identity.id
            return identity

    async def get(self, identity_id: str) -> Identity | None:
        """Get identity by ID."""
        return self._identities.get(identity_id)

    async def get_by_login(self, identifier: str) -> Identity | None:
        """Get identity by username or email (case-insensitive)."""
        identity_id = self._by_login.get(identifier.lower())
        if identity_id:
            return self._identities.get(identity_id)
        return None

    async def update(self, identity_id: str, **changes: Any) -> Identity:
        """Apply field changes to existing identity."""
        async with self._lock:
            identity = self._identities.get(identity_id)
            if identity is None:
                raise AUTH_IDENTITY_NOT_FOUND(identity_id=identity_id)

            changes.setdefault("updated_at", utcnow())
            updated = replace(identity, **changes)
            self._identities[identity_id] = updated
            return updated

    async def update_lockout(
        self,
        identity_id: str,
        mutate: Callable[[LockoutState], LockoutState],
    ) -> LockoutState:
        """Read-modify-write the identity's failed-attempt counters."""
        async with self._lock:
            identity = self._identities.get(identity_id)
            if identity is None:
                raise AUTH_IDENTITY_NOT_FOUND(identity_id=identity_id)

            state = mutate(identity.lockout)
            self._identities[identity_id] = identity.with_lockout(state)
            return state


class MemorySessionStore:
    """In-memory session storage for development/testing."""

    def __init__(self):
        self._sessions: dict[str, SessionRecord] = {}
        self._by_token: dict[str, str] = {}
        self._by_refresh: dict[str, str] = {}
        self._by_owner: dict[str, set[str]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def insert(self, record: SessionRecord) -> None:
        """Save new session record."""
        async with self._lock:
            self._sessions[record.session_id] = record
            self._by_token[record.token_hash] = record.session_id
            self._by_refresh[record.refresh_token_hash] = record.session_id
            self._by_owner[record.owner_id].add(record.session_id)

    async def get_by_token_hash(self, token_hash: str) -> SessionRecord | None:
        session_id = self._by_token.get(token_hash)
        return self._sessions.get(session_id) if session_id else None

    async def get_by_refresh_hash(self, refresh_hash: str) -> SessionRecord | None:
        session_id = self._by_refresh.get(refresh_hash)
        return self._sessions.get(session_id) if session_id else None

    async def touch(self, session_id: str, when: datetime) -> None:
        async with self._lock:
            record = self._sessions.get(session_id)
            if record:
                self._sessions[session_id] = replace(record, last_activity=when)

    async def rotate(
        self,
        session_id: str,
        *,
        expected_token_hash: str,
        new_token_hash: str,
        new_expires_at: datetime,
        now: datetime,
    ) -> SessionRecord | None:
        async with self._lock:
            record = self._sessions.get(session_id)
            if record is None or not record.valid:
                return None
            if record.token_hash != expected_token_hash:
                return None

            rotated = replace(
                record,
                token_hash=new_token_hash,
                expires_at=new_expires_at,
                last_activity=now,
            )
            self._sessions[session_id] = rotated
            self._by_token.pop(expected_token_hash, None)
            self._by_token[new_token_hash] = session_id
            return rotated

    async def invalidate_by_hash(self, token_hash: str) -> bool:
        async with self._lock:
            session_id = self._by_token.get(token_hash) or self._by_refresh.get(token_hash)
            record = self._sessions.get(session_id) if session_id else None
            if record is None or not record.valid:
                return False

            self._sessions[session_id] = replace(record, valid=False)
            return True

    async def invalidate_owner(self, owner_id: str) -> int:
        async with self._lock:
            count = 0
            for session_id in self._by_owner.get(owner_id, set()):
                record = self._sessions[session_id]
                if record.valid:
                    self._sessions[session_id] = replace(record, valid=False)
                    count += 1
            return count

    async def list_live(self, owner_id: str, now: datetime) -> list[SessionRecord]:
        records = [
            self._sessions[sid]
            for sid in self._by_owner.get(owner_id, set())
            if self._sessions[sid].is_live(now)
        ]
        return sorted(records, key=lambda r: r.last_activity, reverse=True)

    async def cleanup_expired(self, now: datetime) -> int:
        """Delete expired or invalidated records."""
        async with self._lock:
            stale = [r for r in self._sessions.values() if not r.is_live(now)]
            for record in stale:
                del self._sessions[record.session_id]
                self._by_token.pop(record.token_hash, None)
                self._by_refresh.pop(record.refresh_token_hash, None)
                self._by_owner[record.owner_id].discard(record.session_id)
            return len(stale)


@dataclass(frozen=True)
class ActivityEntry:
    owner_id: str | None
    action: str
    details: str | None = None
    ip_address: str | None = None
    status: str = "success"
    created_at: datetime = field(default_factory=utcnow)


class MemoryActivityLog:
    """In-memory activity log for development/testing."""

    def __init__(self):
        self.entries: list[ActivityEntry] = []

    async def record(
        self,
        owner_id: str | None,
        action: str,
        details: str | None = None,
        ip_address: str | None = None,
        status: str = "success",
    ) -> None:
        self.entries.append(
            ActivityEntry(
                owner_id=owner_id,
                action=action,
                details=details,
                ip_address=ip_address,
                status=status,
            )
        )

    def actions(self, owner_id: str | None = None) -> list[str]:
        """Recorded action names, optionally filtered by owner."""
        return [
            e.action for e in self.entries
            if owner_id is None or e.owner_id == owner_id
        ]
