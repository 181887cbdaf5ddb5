"""
SecurityCore - the surface the service layer calls.

Wires the cipher, hasher, token authority, lockout policy and vault codec
around injected stores and a clock. Every method delegates; no policy
lives here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable

from vaultverse.auth.core import AuthResult, Identity, LockoutState, TokenPair, utcnow
from vaultverse.auth.lockout import LockoutPolicy
from vaultverse.auth.manager import AuthManager
from vaultverse.auth.stores import (
    ActivityLog,
    IdentityStore,
    MemoryActivityLog,
    MemoryIdentityStore,
    MemorySessionStore,
    SessionStore,
)
from vaultverse.auth.tokens import KeyRing, TokenAuthority
from vaultverse.config import SecurityConfig
from vaultverse.crypto.cipher import EncryptedField, SecretCipher
from vaultverse.crypto.hashing import CredentialHasher
from vaultverse.vault.codec import ContainerInput, VaultCodec
from vaultverse.vault.models import DecryptedAccount, ImportResult, VaultContainer


logger = logging.getLogger("vaultverse")


class SecurityCore:
    """Credential vault security core."""

    def __init__(
        self,
        cipher: SecretCipher,
        hasher: CredentialHasher,
        tokens: TokenAuthority,
        lockout: LockoutPolicy,
        codec: VaultCodec,
        auth: AuthManager,
        activity_log: ActivityLog | None = None,
    ):
        self.cipher = cipher
        self.hasher = hasher
        self.tokens = tokens
        self.lockout = lockout
        self.codec = codec
        self.auth = auth
        self.activity_log = activity_log or auth.activity_log

    @classmethod
    def from_config(
        cls,
        config: SecurityConfig,
        identity_store: IdentityStore | None = None,
        session_store: SessionStore | None = None,
        activity_log: ActivityLog | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> SecurityCore:
        """Build every component from loaded configuration."""
        clock = clock or utcnow
        identity_store = identity_store or MemoryIdentityStore()
        session_store = session_store or MemorySessionStore()
        activity_log = activity_log or MemoryActivityLog()

        cipher = SecretCipher.from_hex(config.master_key)
        hasher = CredentialHasher(
            algorithm=config.hashing.algorithm,
            time_cost=config.hashing.time_cost,
            memory_cost=config.hashing.memory_cost,
            parallelism=config.hashing.parallelism,
            iterations=config.hashing.iterations,
        )
        tokens = TokenAuthority(
            KeyRing.from_secret(config.token_secret),
            session_store,
            identity_store,
            config=config.tokens,
            clock=clock,
        )
        lockout = LockoutPolicy(
            identity_store,
            max_attempts=config.lockout.max_attempts,
            lockout_duration=timedelta(seconds=config.lockout.lockout_duration),
            clock=clock,
        )
        codec = VaultCodec(
            cipher=cipher,
            min_passphrase_length=config.export.min_passphrase_length,
            kdf_n=config.export.kdf_n,
            kdf_r=config.export.kdf_r,
            kdf_p=config.export.kdf_p,
            clock=clock,
        )
        auth = AuthManager(
            identity_store,
            tokens,
            lockout,
            password_hasher=hasher,
            activity_log=activity_log,
            clock=clock,
        )

        logger.debug("Security core initialized")
        return cls(cipher, hasher, tokens, lockout, codec, auth, activity_log)

    # Field encryption

    def encrypt_field(self, plaintext: str) -> EncryptedField:
        return self.cipher.encrypt(plaintext)

    def decrypt_field(self, field: EncryptedField | str) -> str:
        return self.cipher.decrypt(field)

    # Credential hashing

    def hash_secret(self, secret: str) -> str:
        return self.hasher.hash(secret)

    def verify_secret(self, secret: str, digest: str) -> bool:
        return self.hasher.verify(secret, digest)

    # Sessions

    async def issue_session(
        self,
        identity: Identity,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> TokenPair:
        return await self.tokens.issue(identity, device_info=device_info, ip_address=ip_address)

    async def verify_access_token(self, token: str) -> Identity:
        return await self.tokens.verify_access(token)

    async def refresh_session(self, refresh_token: str) -> str:
        return await self.tokens.refresh(refresh_token)

    async def revoke_session(self, token: str) -> bool:
        return await self.tokens.revoke(token)

    async def revoke_all_sessions(self, owner_id: str) -> int:
        return await self.tokens.revoke_all(owner_id)

    # Lockout

    async def record_login_outcome(self, identity_id: str, success: bool) -> LockoutState:
        return await self.lockout.record_outcome(identity_id, success)

    async def login(
        self,
        identifier: str,
        password: str,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> AuthResult:
        """Password login with lockout and session issuance."""
        return await self.auth.authenticate_password(
            identifier, password, device_info=device_info, ip_address=ip_address
        )

    # Vault backup

    async def export_vault(
        self,
        accounts: Iterable[DecryptedAccount],
        passphrase: str,
        owner: Identity | None = None,
    ) -> VaultContainer:
        container = self.codec.export_vault(
            accounts, passphrase, exported_by=owner.username if owner else None
        )
        if owner is not None:
            await self.activity_log.record(owner.id, "export_vault", "Exported vault backup")
        return container

    async def import_vault(
        self,
        container: ContainerInput,
        passphrase: str,
        owner: Identity | None = None,
        strict: bool = False,
    ) -> ImportResult:
        result = self.codec.import_vault(container, passphrase, strict=strict)
        if owner is not None:
            await self.activity_log.record(
                owner.id,
                "import_vault",
                f"Imported {result.imported_count} accounts ({result.skipped_count} skipped)",
            )
        return result
