"""
VaultCodec - Encrypted export/import of account bundles

Container layout:

    {"version": "2.0", "createdAt": "<ISO-8601>", "payload": "<base64>"}

    payload = salt (16) || iv (12) || AES-256-GCM(bundle JSON) || tag (16)
    key     = scrypt(passphrase, salt)
    aad     = "<version>|<createdAt>"

A wrong passphrase and a corrupted container fail identically
(CRYPTO_DECRYPTION_FAILED). Only a container that authenticates but holds
an unusable bundle raises VAULT_CONTAINER_MALFORMED.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Iterable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from vaultverse.auth.core import utcnow
from vaultverse.crypto.cipher import IV_SIZE, KEY_SIZE, TAG_SIZE, SecretCipher
from vaultverse.crypto.faults import CRYPTO_DECRYPTION_FAILED, CRYPTO_FAILURE
from vaultverse.faults import Fault
from .faults import VAULT_CONTAINER_MALFORMED, VAULT_EMPTY, VAULT_PASSPHRASE_WEAK
from .models import (
    CONTAINER_VERSION,
    DecryptedAccount,
    ImportResult,
    SkippedRecord,
    StoredAccount,
    VaultContainer,
    VaultSummary,
)


SALT_SIZE = 16

ContainerInput = VaultContainer | dict | str


class VaultCodec:
    """
    Passphrase-protected backup codec.

    Import is best-effort by default: records that fail to decode are
    reported in ``ImportResult.skipped`` and the rest are returned.
    ``strict=True`` turns any skipped record into a whole-container failure.
    """

    def __init__(
        self,
        cipher: SecretCipher | None = None,
        min_passphrase_length: int = 8,
        kdf_n: int = 2**15,
        kdf_r: int = 8,
        kdf_p: int = 1,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.cipher = cipher
        self.min_passphrase_length = min_passphrase_length
        self.kdf_n = kdf_n
        self.kdf_r = kdf_r
        self.kdf_p = kdf_p
        self.clock = clock or utcnow
        self.logger = logger or logging.getLogger("vaultverse.codec")

    # ------------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------------

    def export_vault(
        self,
        accounts: Iterable[DecryptedAccount],
        passphrase: str,
        exported_by: str | None = None,
    ) -> VaultContainer:
        """
        Encrypt accounts into a portable container.

        Raises:
            VAULT_EMPTY: No accounts
            VAULT_PASSPHRASE_WEAK: Passphrase shorter than the policy minimum
        """
        accounts = list(accounts)
        if not accounts:
            raise VAULT_EMPTY()
        self._check_passphrase(passphrase)

        created_at = self.clock().isoformat()
        bundle = {
            "version": CONTAINER_VERSION,
            "exportedAt": created_at,
            "exportedBy": exported_by,
            "totalAccounts": len(accounts),
            "accounts": [account.to_dict() for account in accounts],
        }

        salt = os.urandom(SALT_SIZE)
        iv = os.urandom(IV_SIZE)
        key = self._derive_key(passphrase, salt)
        container = VaultContainer(payload="", created_at=created_at)

        ciphertext = AESGCM(key).encrypt(
            iv,
            json.dumps(bundle).encode("utf-8"),
            container.associated_data(),
        )
        payload = base64.b64encode(salt + iv + ciphertext).decode("ascii")

        self.logger.info(f"Exported {len(accounts)} accounts")
        return VaultContainer(payload=payload, created_at=created_at)

    def export_stored(
        self,
        stored: Iterable[StoredAccount],
        passphrase: str,
        exported_by: str | None = None,
    ) -> VaultContainer:
        """
        Export at-rest accounts.

        Rows that fail to unseal are logged and left out.
        """
        self._check_passphrase(passphrase)

        accounts = []
        for row in stored:
            try:
                accounts.append(self.unseal(row))
            except CRYPTO_FAILURE:
                self.logger.warning(f"Skipping unreadable account {row.site_name!r} during export")

        return self.export_vault(accounts, passphrase, exported_by=exported_by)

    # ------------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------------

    def import_vault(
        self,
        container: ContainerInput,
        passphrase: str,
        strict: bool = False,
    ) -> ImportResult:
        """
        Decrypt a container and decode its accounts.

        Raises:
            CRYPTO_DECRYPTION_FAILED: Wrong passphrase or corrupted container
            VAULT_CONTAINER_MALFORMED: Authenticated bundle unusable, or any
                skipped record when strict
        """
        result, _ = self._decode(container, passphrase, strict)
        return result

    def import_and_seal(
        self,
        container: ContainerInput,
        passphrase: str,
        strict: bool = False,
    ) -> ImportResult:
        """
        Import and encrypt each account for storage.

        Skipped indices refer to positions in the bundle's account list for
        both decode and seal failures.
        """
        decoded, positions = self._decode(container, passphrase, strict)
        result = ImportResult(
            skipped=list(decoded.skipped),
            exported_by=decoded.exported_by,
            exported_at=decoded.exported_at,
        )

        for index, account in zip(positions, decoded.imported):
            try:
                result.imported.append(self.seal(account))
            except Fault as exc:
                result.skipped.append(
                    SkippedRecord(
                        index=index,
                        reason=f"Error importing {account.site_name}: {exc}",
                        site_name=account.site_name,
                    )
                )

        result.skipped.sort(key=lambda skipped: skipped.index)
        return result

    def _decode(
        self,
        container: ContainerInput,
        passphrase: str,
        strict: bool,
    ) -> tuple[ImportResult, list[int]]:
        """Decode a container; also returns the bundle index of each imported account."""
        bundle = self._open(container, passphrase)
        result = ImportResult(
            exported_by=bundle.get("exportedBy"),
            exported_at=bundle.get("exportedAt"),
        )
        positions: list[int] = []

        for index, record in enumerate(bundle["accounts"]):
            try:
                result.imported.append(DecryptedAccount.from_dict(record))
            except ValueError as exc:
                site_name = record.get("siteName") if isinstance(record, dict) else None
                result.skipped.append(
                    SkippedRecord(index=index, reason=f"Skipped account: {exc}", site_name=site_name)
                )
            else:
                positions.append(index)

        if result.skipped:
            if strict:
                raise VAULT_CONTAINER_MALFORMED(reason="invalid records", skipped=result.skipped_count)
            self.logger.warning(f"Import skipped {result.skipped_count} records")

        self.logger.info(f"Imported {result.imported_count} accounts")
        return result, positions

    def inspect(self, container: ContainerInput, passphrase: str) -> VaultSummary:
        """Validate a container and summarize it without importing."""
        bundle = self._open(container, passphrase)
        records = [r for r in bundle["accounts"] if isinstance(r, dict)]

        return VaultSummary(
            version=str(bundle.get("version", "")),
            exported_at=bundle.get("exportedAt"),
            exported_by=bundle.get("exportedBy"),
            total_accounts=len(bundle["accounts"]),
            categories=dict(Counter(r.get("category") or "general" for r in records)),
            favorite_count=sum(1 for r in records if r.get("isFavorite")),
        )

    # ------------------------------------------------------------------------
    # At-rest sealing
    # ------------------------------------------------------------------------

    def seal(self, account: DecryptedAccount) -> StoredAccount:
        """Encrypt secret fields with the master-key cipher."""
        cipher = self._require_cipher()
        return StoredAccount(
            site_name=account.site_name,
            password_encrypted=cipher.encrypt(account.password).serialize(),
            site_url=account.site_url,
            username=account.username,
            email=account.email,
            notes_encrypted=cipher.encrypt_optional(account.notes),
            category=account.category,
            is_favorite=account.is_favorite,
            created_at=account.created_at,
        )

    def unseal(self, stored: StoredAccount) -> DecryptedAccount:
        cipher = self._require_cipher()
        return DecryptedAccount(
            site_name=stored.site_name,
            password=cipher.decrypt(stored.password_encrypted),
            site_url=stored.site_url,
            username=stored.username,
            email=stored.email,
            notes=cipher.decrypt_optional(stored.notes_encrypted),
            category=stored.category,
            is_favorite=stored.is_favorite,
            created_at=stored.created_at,
        )

    # ------------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------------

    def _check_passphrase(self, passphrase: str) -> None:
        if not isinstance(passphrase, str) or len(passphrase) < self.min_passphrase_length:
            raise VAULT_PASSPHRASE_WEAK(min_length=self.min_passphrase_length)

    def _require_cipher(self) -> SecretCipher:
        if self.cipher is None:
            raise RuntimeError("VaultCodec has no SecretCipher configured")
        return self.cipher

    def _derive_key(self, passphrase: str, salt: bytes) -> bytes:
        kdf = Scrypt(salt=salt, length=KEY_SIZE, n=self.kdf_n, r=self.kdf_r, p=self.kdf_p)
        return kdf.derive(passphrase.encode("utf-8"))

    def _open(self, container: ContainerInput, passphrase: str) -> dict[str, Any]:
        """Authenticate and parse the bundle; validates the accounts list."""
        try:
            if isinstance(container, str):
                container = VaultContainer.from_json(container)
            elif isinstance(container, dict):
                container = VaultContainer.from_dict(container)
            elif not isinstance(container, VaultContainer):
                raise ValueError("unsupported container type")

            raw = base64.b64decode(container.payload, validate=True)
        except (ValueError, TypeError, binascii.Error):
            raise CRYPTO_DECRYPTION_FAILED() from None

        if not isinstance(passphrase, str) or not passphrase:
            raise CRYPTO_DECRYPTION_FAILED()
        if len(raw) < SALT_SIZE + IV_SIZE + TAG_SIZE:
            raise CRYPTO_DECRYPTION_FAILED()

        salt = raw[:SALT_SIZE]
        iv = raw[SALT_SIZE:SALT_SIZE + IV_SIZE]
        ciphertext = raw[SALT_SIZE + IV_SIZE:]

        try:
            key = self._derive_key(passphrase, salt)
            plaintext = AESGCM(key).decrypt(iv, ciphertext, container.associated_data())
        except InvalidTag:
            self.logger.warning("Vault container failed authentication")
            raise CRYPTO_DECRYPTION_FAILED() from None

        try:
            bundle = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            raise VAULT_CONTAINER_MALFORMED(reason="unparseable bundle") from None

        if not isinstance(bundle, dict) or not isinstance(bundle.get("accounts"), list):
            raise VAULT_CONTAINER_MALFORMED(reason="missing accounts")

        return bundle
