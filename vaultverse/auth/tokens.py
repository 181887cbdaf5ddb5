"""
VaultAuth - Token Authority

Signed bearer tokens, key ring management, and the session records that
back every issued token pair.

Verification is two-layered:
1. Stateless: structure, key id, signature, issuer/audience, type, expiry.
2. Stateful: the SHA-256 digest of the presented token must match a
   valid SessionRecord. Revoking the record blocks a token whose
   signature is still good.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import secrets
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519

from vaultverse.crypto.cipher import digest_token
from vaultverse.faults import Fault
from .core import Identity, SessionRecord, TokenClaims, TokenPair, utcnow
from .faults import (
    AUTH_OWNER_INACTIVE,
    AUTH_REFRESH_TOKEN_INVALID,
    AUTH_SESSION_NOT_FOUND,
    AUTH_TOKEN_EXPIRED,
    AUTH_TOKEN_INVALID,
    AUTH_TOKEN_REVOKED,
    STORE_UNAVAILABLE,
)
from .stores import IdentityStore, SessionStore


ACCESS = "access"
REFRESH = "refresh"


# ============================================================================
# Key Management
# ============================================================================

class KeyAlgorithm(str):
    """Supported signing algorithms."""
    HS256 = "HS256"  # HMAC with SHA-256 (shared secret)
    ES256 = "ES256"  # ECDSA P-256 with SHA-256
    EdDSA = "EdDSA"  # Ed25519


class KeyStatus(str):
    """Key status in lifecycle."""
    ACTIVE = "active"        # Current signing key
    RETIRED = "retired"      # No longer signs, but verifies
    REVOKED = "revoked"      # Invalid for all operations


@dataclass
class KeyDescriptor:
    """
    Signing key and its lifecycle metadata.

    Keys are identified by 'kid' in token headers. HS256 keys carry a
    shared secret; ES256/EdDSA keys carry PEM key pairs.
    """
    kid: str
    algorithm: str
    secret: bytes | None = field(default=None, repr=False)
    public_key_pem: str | None = None
    private_key_pem: str | None = field(default=None, repr=False)
    status: str = KeyStatus.ACTIVE
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    retired_at: datetime | None = None

    def is_active(self) -> bool:
        """Check if key can be used for signing."""
        return self.status == KeyStatus.ACTIVE

    def can_verify(self) -> bool:
        """Check if key can be used for verification."""
        return self.status in (KeyStatus.ACTIVE, KeyStatus.RETIRED)

    @classmethod
    def from_secret(cls, kid: str, secret: str | bytes) -> KeyDescriptor:
        """HS256 key from the configured token secret."""
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        return cls(kid=kid, algorithm=KeyAlgorithm.HS256, secret=secret)

    @classmethod
    def generate(cls, kid: str, algorithm: str = KeyAlgorithm.EdDSA) -> KeyDescriptor:
        """Generate a fresh key of the given algorithm."""
        if algorithm == KeyAlgorithm.HS256:
            return cls(kid=kid, algorithm=algorithm, secret=secrets.token_bytes(32))

        if algorithm == KeyAlgorithm.ES256:
            private_key = ec.generate_private_key(ec.SECP256R1())
        elif algorithm == KeyAlgorithm.EdDSA:
            private_key = ed25519.Ed25519PrivateKey.generate()
        else:
            raise ValueError(f"Unsupported algorithm: {algorithm}")

        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()

        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode()

        return cls(
            kid=kid,
            algorithm=algorithm,
            public_key_pem=public_pem,
            private_key_pem=private_pem,
        )

    def sign(self, message: bytes) -> bytes:
        """Create signature for message."""
        if self.algorithm == KeyAlgorithm.HS256:
            mac = hmac.HMAC(self.secret, hashes.SHA256())
            mac.update(message)
            return mac.finalize()

        private_key = serialization.load_pem_private_key(
            self.private_key_pem.encode(),
            password=None,
        )
        if self.algorithm == KeyAlgorithm.ES256:
            return private_key.sign(message, ec.ECDSA(hashes.SHA256()))
        return private_key.sign(message)

    def verify(self, message: bytes, signature: bytes) -> bool:
        """Verify signature; False on any mismatch."""
        try:
            if self.algorithm == KeyAlgorithm.HS256:
                mac = hmac.HMAC(self.secret, hashes.SHA256())
                mac.update(message)
                mac.verify(signature)
                return True

            public_key = serialization.load_pem_public_key(self.public_key_pem.encode())
            if self.algorithm == KeyAlgorithm.ES256:
                public_key.verify(signature, message, ec.ECDSA(hashes.SHA256()))
            elif self.algorithm == KeyAlgorithm.EdDSA:
                public_key.verify(signature, message)
            else:
                return False
            return True

        except InvalidSignature:
            return False


class KeyRing:
    """
    Key ring for token signing and verification.

    Manages multiple keys with lifecycle:
    - Current signing key (kid)
    - Retired keys kept for verification
    - Rotation support
    """

    def __init__(self, keys: list[KeyDescriptor]):
        self.keys: dict[str, KeyDescriptor] = {k.kid: k for k in keys}

        active_keys = [k for k in keys if k.is_active()]
        if not active_keys:
            raise ValueError("No active signing key in key ring")

        self.current_kid = active_keys[0].kid

    @classmethod
    def from_secret(cls, secret: str | bytes, kid: str = "hs256-1") -> KeyRing:
        return cls([KeyDescriptor.from_secret(kid, secret)])

    def get_signing_key(self) -> KeyDescriptor:
        """Get current signing key."""
        key = self.keys.get(self.current_kid)

        if not key or not key.is_active():
            raise ValueError(f"No active signing key: {self.current_kid}")

        return key

    def get_verification_key(self, kid: str) -> KeyDescriptor | None:
        """Get verification key by kid."""
        key = self.keys.get(kid)

        if key and key.can_verify():
            return key

        return None

    def add_key(self, key: KeyDescriptor) -> None:
        self.keys[key.kid] = key

    def promote_key(self, kid: str) -> None:
        """Promote key to active (retire current)."""
        new_key = self.keys.get(kid)

        if not new_key:
            raise ValueError(f"Key not found: {kid}")

        if self.current_kid in self.keys:
            old_key = self.keys[self.current_kid]
            old_key.status = KeyStatus.RETIRED
            old_key.retired_at = datetime.now(timezone.utc)

        new_key.status = KeyStatus.ACTIVE
        self.current_kid = kid

    def revoke_key(self, kid: str) -> None:
        """Revoke key (invalid for all operations)."""
        key = self.keys.get(kid)

        if key:
            key.status = KeyStatus.REVOKED


# ============================================================================
# Token Authority
# ============================================================================

@dataclass
class TokenConfig:
    """Token authority configuration."""
    issuer: str = "vaultverse-api"
    audience: str = "vaultverse-client"
    access_token_ttl: int = 3600        # 1 hour
    refresh_token_ttl: int = 2592000    # 30 days
    algorithm: str = KeyAlgorithm.HS256


class TokenAuthority:
    """
    Issues, verifies, refreshes and revokes bearer session tokens.

    Responsibilities:
    - Issue signed access + refresh tokens and persist their digests
    - Verify tokens against both signature and session liveness
    - Rotate the access-token digest on refresh
    - Revoke one session or every session of an owner
    """

    def __init__(
        self,
        key_ring: KeyRing,
        session_store: SessionStore,
        identity_store: IdentityStore,
        config: TokenConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.key_ring = key_ring
        self.session_store = session_store
        self.identity_store = identity_store
        self.config = config or TokenConfig()
        self.clock = clock or utcnow
        self.logger = logger or logging.getLogger("vaultverse.tokens")

    # ------------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------------

    async def issue(
        self,
        identity: Identity,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> TokenPair:
        """
        Issue a new token pair backed by a new SessionRecord.

        Raises:
            STORE_UNAVAILABLE: Session could not be persisted
        """
        now = self.clock()
        session_id = f"sess_{secrets.token_urlsafe(16)}"

        access_token, access_exp = self._mint(identity.id, ACCESS, session_id, now)
        refresh_token, refresh_exp = self._mint(identity.id, REFRESH, session_id, now)

        record = SessionRecord(
            session_id=session_id,
            owner_id=identity.id,
            token_hash=digest_token(access_token),
            refresh_token_hash=digest_token(refresh_token),
            issued_at=now,
            expires_at=access_exp,
            refresh_expires_at=refresh_exp,
            last_activity=now,
            device_info=device_info,
            ip_address=ip_address,
        )

        with self._store_guard("insert"):
            await self.session_store.insert(record)

        self.logger.debug(f"Issued session {session_id} for identity {identity.id}")

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            session_id=session_id,
            expires_in=self.config.access_token_ttl,
        )

    # ------------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------------

    def decode(self, token: str, expected_type: str) -> TokenClaims:
        """
        Stateless layer: parse and check signature, issuer, audience, type.

        Expiry is not checked here.

        Raises:
            AUTH_TOKEN_INVALID: Malformed token, unknown key, bad signature,
                wrong issuer/audience or wrong token type
        """
        if not isinstance(token, str):
            raise AUTH_TOKEN_INVALID(reason="not a string")

        try:
            header_b64, payload_b64, signature_b64 = token.split(".")
        except ValueError:
            raise AUTH_TOKEN_INVALID(reason="expected 3 parts") from None

        try:
            header = self._base64_decode_json(header_b64)
            signature = self._base64_decode(signature_b64)
        except (ValueError, binascii.Error):
            raise AUTH_TOKEN_INVALID(reason="undecodable header") from None

        # Header is unsigned; only a string kid may reach the key ring
        kid = header.get("kid") if isinstance(header, dict) else None
        if not isinstance(kid, str) or not kid:
            raise AUTH_TOKEN_INVALID(reason="unknown key")

        key = self.key_ring.get_verification_key(kid)
        if key is None or header.get("alg") != key.algorithm:
            raise AUTH_TOKEN_INVALID(reason="unknown key")

        message = f"{header_b64}.{payload_b64}".encode()
        if not key.verify(message, signature):
            raise AUTH_TOKEN_INVALID(reason="bad signature")

        try:
            payload = self._base64_decode_json(payload_b64)
            claims = TokenClaims.from_payload(payload)
        except (ValueError, binascii.Error, KeyError, TypeError):
            raise AUTH_TOKEN_INVALID(reason="bad claims") from None

        if claims.iss != self.config.issuer or claims.aud != self.config.audience:
            raise AUTH_TOKEN_INVALID(reason="issuer or audience mismatch")
        if claims.typ != expected_type:
            raise AUTH_TOKEN_INVALID(reason="wrong token type")

        return claims

    async def verify_access(self, token: str) -> Identity:
        """
        Verify an access token and return its owner.

        Raises:
            AUTH_TOKEN_INVALID: Fails the stateless checks
            AUTH_TOKEN_EXPIRED: Token or session past its expiry
            AUTH_TOKEN_REVOKED: Backing session revoked
            AUTH_SESSION_NOT_FOUND: No session holds this token's digest
            AUTH_OWNER_INACTIVE: Owner missing or deactivated
        """
        claims = self.decode(token, ACCESS)
        now = self.clock()

        if claims.exp <= int(now.timestamp()):
            raise AUTH_TOKEN_EXPIRED()

        token_hash = digest_token(token)
        with self._store_guard("get_by_token_hash"):
            record = await self.session_store.get_by_token_hash(token_hash)

        if record is None:
            self.logger.warning(f"No session for access token {token_hash[:12]}")
            raise AUTH_SESSION_NOT_FOUND()
        if record.owner_id != claims.sub:
            raise AUTH_TOKEN_INVALID(reason="owner mismatch")
        if not record.valid:
            self.logger.warning(f"Revoked session {record.session_id} presented")
            raise AUTH_TOKEN_REVOKED(session_id=record.session_id)
        if record.expires_at <= now:
            raise AUTH_TOKEN_EXPIRED(session_id=record.session_id)

        identity = await self._load_active_owner(claims.sub)

        with self._store_guard("touch"):
            await self.session_store.touch(record.session_id, now)

        return identity

    # ------------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------------

    async def refresh(self, refresh_token: str) -> str:
        """
        Exchange a refresh token for a new access token.

        The session's access-token digest and expiry are rotated, so the
        previous access token stops verifying.

        Raises:
            AUTH_REFRESH_TOKEN_INVALID: Bad/expired token or dead session
            AUTH_OWNER_INACTIVE: Owner missing or deactivated
        """
        try:
            claims = self.decode(refresh_token, REFRESH)
        except AUTH_TOKEN_INVALID:
            raise AUTH_REFRESH_TOKEN_INVALID() from None

        now = self.clock()
        if claims.exp <= int(now.timestamp()):
            raise AUTH_REFRESH_TOKEN_INVALID(reason="expired")

        with self._store_guard("get_by_refresh_hash"):
            record = await self.session_store.get_by_refresh_hash(digest_token(refresh_token))

        if record is None or not record.is_live(now) or record.owner_id != claims.sub:
            raise AUTH_REFRESH_TOKEN_INVALID(reason="no live session")

        await self._load_active_owner(claims.sub)

        access_token, access_exp = self._mint(claims.sub, ACCESS, record.session_id, now)

        with self._store_guard("rotate"):
            rotated = await self.session_store.rotate(
                record.session_id,
                expected_token_hash=record.token_hash,
                new_token_hash=digest_token(access_token),
                new_expires_at=access_exp,
                now=now,
            )

        if rotated is None:
            # Revoked or rotated by a concurrent request since the read
            raise AUTH_REFRESH_TOKEN_INVALID(reason="session changed")

        self.logger.debug(f"Rotated access token for session {record.session_id}")
        return access_token

    # ------------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------------

    async def revoke(self, token: str) -> bool:
        """
        Revoke the session holding this access or refresh token.

        Idempotent; returns True only if a live record changed.
        """
        token_hash = digest_token(token)
        with self._store_guard("invalidate_by_hash"):
            changed = await self.session_store.invalidate_by_hash(token_hash)

        if changed:
            self.logger.info(f"Revoked session for token {token_hash[:12]}")
        return changed

    async def revoke_all(self, owner_id: str) -> int:
        """Revoke every live session of an owner; return the count."""
        with self._store_guard("invalidate_owner"):
            count = await self.session_store.invalidate_owner(owner_id)

        self.logger.info(f"Revoked {count} sessions for identity {owner_id}")
        return count

    async def active_sessions(self, owner_id: str) -> list[SessionRecord]:
        """Live sessions of an owner, most recent activity first."""
        with self._store_guard("list_live"):
            return await self.session_store.list_live(owner_id, self.clock())

    async def purge_expired(self) -> int:
        """Delete expired and revoked records (scheduled housekeeping)."""
        with self._store_guard("cleanup_expired"):
            count = await self.session_store.cleanup_expired(self.clock())

        if count:
            self.logger.info(f"Cleaned up {count} expired sessions")
        return count

    # ------------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------------

    async def _load_active_owner(self, owner_id: str) -> Identity:
        with self._store_guard("get_identity"):
            identity = await self.identity_store.get(owner_id)

        if identity is None or not identity.is_active():
            raise AUTH_OWNER_INACTIVE(identity_id=owner_id)
        return identity

    @contextmanager
    def _store_guard(self, operation: str) -> Iterator[None]:
        """Surface collaborator failures as STORE_UNAVAILABLE."""
        try:
            yield
        except Fault:
            raise
        except Exception as exc:
            self.logger.error(f"Session store failure during {operation}: {exc}")
            raise STORE_UNAVAILABLE(operation=operation) from exc

    def _mint(
        self,
        owner_id: str,
        token_type: str,
        session_id: str,
        now: datetime,
    ) -> tuple[str, datetime]:
        """Sign a token; return it with its expiry."""
        ttl = (
            self.config.access_token_ttl
            if token_type == ACCESS
            else self.config.refresh_token_ttl
        )
        iat = int(now.timestamp())
        exp = iat + ttl

        payload = {
            "iss": self.config.issuer,
            "aud": self.config.audience,
            "sub": owner_id,
            "typ": token_type,
            "sid": session_id,
            "iat": iat,
            "exp": exp,
            "jti": secrets.token_urlsafe(16),
        }

        return self._sign_token(payload), datetime.fromtimestamp(exp, tz=timezone.utc)

    def _sign_token(self, payload: dict[str, Any]) -> str:
        """Sign token as header.payload.signature."""
        key = self.key_ring.get_signing_key()

        header = {
            "alg": key.algorithm,
            "kid": key.kid,
            "typ": "JWT",
        }

        header_b64 = self._base64_encode_json(header)
        payload_b64 = self._base64_encode_json(payload)

        message = f"{header_b64}.{payload_b64}".encode()
        signature_b64 = self._base64_encode(key.sign(message))

        return f"{header_b64}.{payload_b64}.{signature_b64}"

    @staticmethod
    def _base64_encode(data: bytes) -> str:
        """URL-safe base64 encode."""
        return base64.urlsafe_b64encode(data).rstrip(b"=").decode()

    @staticmethod
    def _base64_decode(data: str) -> bytes:
        """URL-safe base64 decode."""
        padding = 4 - (len(data) % 4)
        if padding != 4:
            data += "=" * padding

        return base64.urlsafe_b64decode(data)

    def _base64_encode_json(self, data: dict) -> str:
        """Encode JSON as URL-safe base64."""
        json_bytes = json.dumps(data, separators=(",", ":")).encode()
        return self._base64_encode(json_bytes)

    def _base64_decode_json(self, data: str) -> Any:
        """Decode URL-safe base64 as JSON."""
        return json.loads(self._base64_decode(data))
