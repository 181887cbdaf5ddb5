"""
VaultCodec - Account and container models

Accounts travel in two forms:
- DecryptedAccount: plaintext, only inside an export bundle or in memory
- StoredAccount: at rest, secret fields as EncryptedField wire strings

Wire dicts use camelCase keys to stay compatible with existing backups.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from vaultverse.auth.core import utcnow


CONTAINER_VERSION = "2.0"
DEFAULT_CATEGORY = "general"


@dataclass(frozen=True)
class DecryptedAccount:
    """One credential entry with its secret in the clear."""
    site_name: str
    password: str = field(repr=False)
    site_url: str | None = None
    username: str | None = None
    email: str | None = None
    notes: str | None = field(default=None, repr=False)
    category: str = DEFAULT_CATEGORY
    is_favorite: bool = False
    created_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "siteName": self.site_name,
            "siteUrl": self.site_url,
            "username": self.username,
            "email": self.email,
            "password": self.password,
            "notes": self.notes,
            "category": self.category,
            "isFavorite": self.is_favorite,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DecryptedAccount:
        """
        Build from a bundle record.

        Raises:
            ValueError: Missing siteName/password or a field of the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError("record is not an object")

        site_name = data.get("siteName")
        password = data.get("password")
        if not site_name or not password:
            raise ValueError("missing required fields")
        if not isinstance(site_name, str) or not isinstance(password, str):
            raise ValueError("siteName and password must be strings")

        for key in ("siteUrl", "username", "email", "notes", "createdAt"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{key} must be a string")

        category = data.get("category") or DEFAULT_CATEGORY
        if not isinstance(category, str):
            raise ValueError("category must be a string")

        return cls(
            site_name=site_name,
            password=password,
            site_url=data.get("siteUrl") or None,
            username=data.get("username") or None,
            email=data.get("email") or None,
            notes=data.get("notes") or None,
            category=category,
            is_favorite=bool(data.get("isFavorite", False)),
            created_at=data.get("createdAt"),
        )


@dataclass(frozen=True)
class StoredAccount:
    """At-rest account row; secrets are EncryptedField wire strings."""
    site_name: str
    password_encrypted: str
    site_url: str | None = None
    username: str | None = None
    email: str | None = None
    notes_encrypted: str | None = None
    category: str = DEFAULT_CATEGORY
    is_favorite: bool = False
    created_at: str | None = None


@dataclass(frozen=True)
class VaultContainer:
    """
    Portable encrypted backup.

    ``payload`` is base64(salt || iv || ciphertext+tag).
    """
    payload: str
    created_at: str
    version: str = CONTAINER_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "createdAt": self.created_at,
            "payload": self.payload,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VaultContainer:
        """Raises ValueError when a field is missing or not a string."""
        if not isinstance(data, dict):
            raise ValueError("container is not an object")

        version = data.get("version")
        created_at = data.get("createdAt")
        payload = data.get("payload")
        for value in (version, created_at, payload):
            if not isinstance(value, str) or not value:
                raise ValueError("container fields must be non-empty strings")

        return cls(payload=payload, created_at=created_at, version=version)

    @classmethod
    def from_json(cls, text: str) -> VaultContainer:
        return cls.from_dict(json.loads(text))

    def associated_data(self) -> bytes:
        """Metadata bound into the ciphertext's authentication tag."""
        return f"{self.version}|{self.created_at}".encode("utf-8")

    def suggested_filename(self) -> str:
        """vaultverse-backup-YYYY-MM-DDTHH-MM-SS.json"""
        try:
            stamp = datetime.fromisoformat(self.created_at)
        except ValueError:
            stamp = utcnow()
        return f"vaultverse-backup-{stamp.strftime('%Y-%m-%dT%H-%M-%S')}.json"


@dataclass(frozen=True)
class SkippedRecord:
    """Bundle record left out of an import."""
    index: int
    reason: str
    site_name: str | None = None


@dataclass
class ImportResult:
    """Outcome of a best-effort import."""
    imported: list[Any] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)
    exported_by: str | None = None
    exported_at: str | None = None

    @property
    def imported_count(self) -> int:
        return len(self.imported)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def to_dict(self) -> dict[str, Any]:
        return {
            "imported": self.imported_count,
            "skipped": self.skipped_count,
            "errors": [s.reason for s in self.skipped] or None,
        }


@dataclass(frozen=True)
class VaultSummary:
    """Metadata of a container, read without importing it."""
    version: str
    exported_at: str | None
    exported_by: str | None
    total_accounts: int
    categories: dict[str, int]
    favorite_count: int
