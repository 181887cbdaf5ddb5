"""
VaultAuth - Authentication Manager

Central coordinator for account authentication.
Orchestrates identity verification, lockout, token issuance, and session
management.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable

from vaultverse.crypto.hashing import CredentialHasher, PasswordPolicy
from .core import AuthResult, Identity, SessionRecord, utcnow
from .faults import (
    AUTH_ACCOUNT_LOCKED,
    AUTH_IDENTITY_NOT_FOUND,
    AUTH_INVALID_CREDENTIALS,
    AUTH_OWNER_INACTIVE,
    AUTH_PASSWORD_WEAK,
)
from .lockout import LockoutPolicy
from .stores import ActivityLog, IdentityStore, MemoryActivityLog
from .tokens import TokenAuthority


class AuthManager:
    """
    Central authentication manager.

    Coordinates:
    - Registration (policy check, hashing, auto-login)
    - Password authentication with lockout
    - Token refresh and verification
    - Logout and deactivation
    - Activity logging
    """

    def __init__(
        self,
        identity_store: IdentityStore,
        token_authority: TokenAuthority,
        lockout: LockoutPolicy,
        password_hasher: CredentialHasher | None = None,
        password_policy: PasswordPolicy | None = None,
        activity_log: ActivityLog | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.identity_store = identity_store
        self.token_authority = token_authority
        self.lockout = lockout
        self.password_hasher = password_hasher or CredentialHasher()
        self.password_policy = password_policy or PasswordPolicy()
        self.activity_log = activity_log or MemoryActivityLog()
        self.clock = clock or utcnow
        self.logger = logger or logging.getLogger("vaultverse.auth")

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> AuthResult:
        """
        Create an identity and log it in.

        Raises:
            AUTH_PASSWORD_WEAK: Password fails the policy
            AUTH_IDENTITY_EXISTS: Username or email taken
        """
        ok, errors = self.password_policy.validate(password)
        if not ok:
            raise AUTH_PASSWORD_WEAK(errors=errors)

        now = self.clock()
        identity = Identity(
            id=str(uuid.uuid4()),
            username=username,
            email=email.lower(),
            password_hash=self.password_hasher.hash(password),
            created_at=now,
            updated_at=now,
        )
        identity = await self.identity_store.create(identity)

        tokens = await self.token_authority.issue(
            identity, device_info=device_info, ip_address=ip_address
        )
        await self.activity_log.record(
            identity.id, "register", f"User {username} registered", ip_address
        )
        self.logger.info(f"Registered identity {identity.id}")

        return AuthResult(
            identity=identity,
            tokens=tokens,
            metadata={"auth_method": "register"},
        )

    async def authenticate_password(
        self,
        identifier: str,
        password: str,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> AuthResult:
        """
        Authenticate using username/password.

        Args:
            identifier: Username or email
            password: Plain text password
            device_info: Client user agent or device label
            ip_address: Client address

        Returns:
            AuthResult with tokens

        Raises:
            AUTH_INVALID_CREDENTIALS: Invalid username or password
            AUTH_ACCOUNT_LOCKED: Too many failed attempts
            AUTH_OWNER_INACTIVE: Account is deactivated
        """
        identity = await self.identity_store.get_by_login(identifier)
        if identity is None:
            raise AUTH_INVALID_CREDENTIALS(identifier=identifier)

        if not identity.is_active():
            raise AUTH_OWNER_INACTIVE(identity_id=identity.id)

        # Locked identities never reach the hasher
        try:
            await self.lockout.claim_attempt(identity.id)
        except AUTH_ACCOUNT_LOCKED:
            await self.activity_log.record(
                identity.id, "login_locked", "Login attempt while locked",
                ip_address, status="failed",
            )
            raise

        if not self.password_hasher.verify(password, identity.password_hash):
            state = await self.lockout.settle_attempt(identity.id, success=False)
            now = self.clock()

            if state.is_locked(now):
                await self.activity_log.record(
                    identity.id, "login_locked",
                    f"Locked after {state.attempts} failed attempts",
                    ip_address, status="failed",
                )
                raise AUTH_ACCOUNT_LOCKED(
                    retry_after=state.retry_after(now),
                    identity_id=identity.id,
                )

            await self.activity_log.record(
                identity.id, "login_failed", "Invalid password",
                ip_address, status="failed",
            )
            raise AUTH_INVALID_CREDENTIALS(
                identifier=identifier,
                attempts_remaining=self.lockout.remaining_attempts(state),
            )

        state = await self.lockout.settle_attempt(identity.id, success=True)
        now = self.clock()
        if state.is_locked(now):
            # A concurrent failure locked the identity first
            await self.activity_log.record(
                identity.id, "login_locked", "Login attempt while locked",
                ip_address, status="failed",
            )
            raise AUTH_ACCOUNT_LOCKED(
                retry_after=state.retry_after(now),
                identity_id=identity.id,
            )

        changes = {"last_login": self.clock()}
        if self.password_hasher.needs_rehash(identity.password_hash):
            changes["password_hash"] = self.password_hasher.hash(password)
        identity = await self.identity_store.update(identity.id, **changes)

        tokens = await self.token_authority.issue(
            identity, device_info=device_info, ip_address=ip_address
        )
        await self.activity_log.record(
            identity.id, "login", "Successful login", ip_address
        )
        self.logger.info(f"Identity {identity.id} logged in")

        return AuthResult(
            identity=identity,
            tokens=tokens,
            metadata={"auth_method": "password"},
        )

    async def refresh(self, refresh_token: str) -> str:
        """Exchange refresh token for a new access token."""
        return await self.token_authority.refresh(refresh_token)

    async def verify(self, access_token: str) -> Identity:
        """Resolve an access token to its owner."""
        return await self.token_authority.verify_access(access_token)

    async def logout(self, token: str, owner_id: str | None = None) -> bool:
        """Revoke the session holding this token."""
        revoked = await self.token_authority.revoke(token)
        if revoked:
            await self.activity_log.record(owner_id, "logout", "User logged out")
        return revoked

    async def logout_all(self, owner_id: str) -> int:
        """Revoke every session of an owner."""
        count = await self.token_authority.revoke_all(owner_id)
        await self.activity_log.record(
            owner_id, "logout_all", f"Logged out from {count} sessions"
        )
        return count

    async def deactivate(self, identity_id: str) -> Identity:
        """Deactivate an identity and revoke all its sessions."""
        if await self.identity_store.get(identity_id) is None:
            raise AUTH_IDENTITY_NOT_FOUND(identity_id=identity_id)

        identity = await self.identity_store.update(identity_id, active=False)
        await self.token_authority.revoke_all(identity_id)
        self.logger.info(f"Deactivated identity {identity_id}")
        return identity

    async def active_sessions(self, owner_id: str) -> list[SessionRecord]:
        return await self.token_authority.active_sessions(owner_id)
