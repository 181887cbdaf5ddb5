"""
VaultFaults - Core types and fault taxonomy.

Defines:
- Fault base class (structured fault objects)
- FaultDomain (explicit fault domains)
- Severity levels
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines the logging level used when a fault is reported.
    """
    INFO = "info"       # Informational, no action needed
    WARN = "warn"       # Warning, should be reviewed
    ERROR = "error"     # Error, immediate attention
    FATAL = "fatal"     # Fatal, unrecoverable, abort


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name  # For compatibility with Enum consumers
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


# Standard Domains
FaultDomain.CONFIG = FaultDomain("config", "Configuration errors")
FaultDomain.CRYPTO = FaultDomain("crypto", "Encryption, decryption and hashing")
FaultDomain.SECURITY = FaultDomain("security", "Authentication, tokens and sessions")
FaultDomain.STORAGE = FaultDomain("storage", "Persistence collaborators")
FaultDomain.VAULT = FaultDomain("vault", "Vault export and import")


# Domain defaults
DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: {"severity": Severity.FATAL, "retryable": False},
    FaultDomain.CRYPTO: {"severity": Severity.WARN, "retryable": False},
    FaultDomain.SECURITY: {"severity": Severity.WARN, "retryable": False},
    FaultDomain.STORAGE: {"severity": Severity.ERROR, "retryable": True},
    FaultDomain.VAULT: {"severity": Severity.WARN, "retryable": False},
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    A fault is NOT a bare exception. It is a first-class value with:
    - Stable machine-readable code
    - Internal message (for logs) and public message (for clients)
    - Severity level
    - Domain classification
    - Retry semantics

    Subclasses declare ``code``, ``message``, ``domain`` and friends as
    class attributes; extra keyword arguments become ``metadata``.

    Example:
        ```python
        raise AUTH_ACCOUNT_LOCKED(retry_after=1800, identity_id="42")
        ```
    """

    code: str | None = None
    message: str | None = None
    public_message: str | None = None
    domain: FaultDomain | None = None
    severity: Severity | None = None
    retryable: bool | None = None
    retry_after: int | None = None

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        retry_after: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
        **context: Any,
    ):
        # Fallback to class attributes if not provided
        self.code = code if code is not None else type(self).code
        self.message = message if message is not None else type(self).message
        self.domain = domain if domain is not None else type(self).domain

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        defaults = DOMAIN_DEFAULTS.get(self.domain, {"severity": Severity.ERROR, "retryable": False})
        self.severity = severity or type(self).severity or defaults["severity"]
        if retryable is not None:
            self.retryable = retryable
        elif type(self).retryable is not None:
            self.retryable = type(self).retryable
        else:
            self.retryable = defaults["retryable"]

        self.retry_after = retry_after if retry_after is not None else type(self).retry_after
        self.public_message = type(self).public_message or self.message

        # Metadata (mutable)
        self.metadata = dict(metadata or {})
        self.metadata.update(context)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize fault to dictionary.

        Returns:
            Dictionary representation suitable for logging/serialization
        """
        data = {
            "code": self.code,
            "message": self.message,
            "public_message": self.public_message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "metadata": self.metadata,
        }
        if self.retry_after is not None:
            data["retry_after"] = self.retry_after
        return data

    @staticmethod
    def _hash_identifier(value: str) -> str:
        """Hash an identifier for logging (privacy)."""
        return f"sha256:{hashlib.sha256(value.encode()).hexdigest()[:16]}"


class INVALID_INPUT(Fault):
    """Caller violated a precondition."""
    domain = FaultDomain.CRYPTO
    code = "INPUT_001"
    message = "Invalid input"
    public_message = "The request contained invalid data"

    def __init__(self, reason: str | None = None, **context):
        super().__init__(**context)
        if reason:
            self.metadata["reason"] = reason
