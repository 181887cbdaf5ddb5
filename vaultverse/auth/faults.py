"""
VaultAuth - Authentication Faults

Structured error types for login, token and session failures.
"""

from vaultverse.faults import Fault, FaultDomain, Severity


# ============================================================================
# Authentication Faults
# ============================================================================

class AUTH_INVALID_CREDENTIALS(Fault):
    """Invalid username or password."""
    domain = FaultDomain.SECURITY
    code = "AUTH_001"
    severity = Severity.WARN
    message = "Invalid credentials"
    public_message = "Invalid username/email or password"
    retryable = False

    def __init__(self, identifier: str | None = None, **context):
        super().__init__(**context)
        if identifier:
            self.metadata["identifier_hash"] = self._hash_identifier(identifier)


class AUTH_ACCOUNT_LOCKED(Fault):
    """Account is locked due to failed login attempts."""
    domain = FaultDomain.SECURITY
    code = "AUTH_002"
    severity = Severity.WARN
    message = "Account locked"
    public_message = "Account locked due to multiple failed login attempts"
    retryable = True
    retry_after = 1800  # 30 minutes


class AUTH_OWNER_INACTIVE(Fault):
    """Identity is deactivated."""
    domain = FaultDomain.SECURITY
    code = "AUTH_003"
    severity = Severity.WARN
    message = "Account inactive"
    public_message = "Your account has been deactivated. Please contact an administrator."
    retryable = False


class AUTH_IDENTITY_NOT_FOUND(Fault):
    """No identity with the given id."""
    domain = FaultDomain.SECURITY
    code = "AUTH_004"
    severity = Severity.WARN
    message = "Identity not found"
    public_message = "Account not found"
    retryable = False


class AUTH_IDENTITY_EXISTS(Fault):
    """Username or email already registered."""
    domain = FaultDomain.SECURITY
    code = "AUTH_005"
    severity = Severity.INFO
    message = "Identity already exists"
    public_message = "Username or email is already registered"
    retryable = False

    def __init__(self, field: str | None = None, **context):
        super().__init__(**context)
        if field:
            self.metadata["field"] = field


class AUTH_PASSWORD_WEAK(Fault):
    """Password doesn't meet policy requirements."""
    domain = FaultDomain.SECURITY
    code = "AUTH_006"
    severity = Severity.INFO
    message = "Weak password"
    public_message = "Password doesn't meet security requirements"
    retryable = True

    def __init__(self, errors: list[str] | None = None, **context):
        super().__init__(**context)
        if errors:
            self.metadata["validation_errors"] = errors


# ============================================================================
# Token Faults
# ============================================================================

class AUTH_TOKEN_INVALID(Fault):
    """Malformed token, bad signature or wrong token type."""
    domain = FaultDomain.SECURITY
    code = "AUTH_101"
    severity = Severity.WARN
    message = "Invalid token"
    public_message = "Invalid authentication token"
    retryable = False


class AUTH_TOKEN_EXPIRED(Fault):
    """Token or its session has expired."""
    domain = FaultDomain.SECURITY
    code = "AUTH_102"
    severity = Severity.INFO
    message = "Token expired"
    public_message = "Your session has expired. Please log in again."
    retryable = False


class AUTH_TOKEN_REVOKED(Fault):
    """Backing session has been revoked."""
    domain = FaultDomain.SECURITY
    code = "AUTH_103"
    severity = Severity.WARN
    message = "Session revoked"
    public_message = "This session has been signed out"
    retryable = False


class AUTH_SESSION_NOT_FOUND(AUTH_TOKEN_REVOKED):
    """No session record matches the token digest."""
    code = "AUTH_104"
    message = "Session not found"


class AUTH_REFRESH_TOKEN_INVALID(Fault):
    """Refresh token is invalid, expired or its session is gone."""
    domain = FaultDomain.SECURITY
    code = "AUTH_105"
    severity = Severity.WARN
    message = "Invalid refresh token"
    public_message = "Refresh token is invalid or has been revoked. Please log in again."
    retryable = False


# ============================================================================
# Storage Faults
# ============================================================================

class STORE_UNAVAILABLE(Fault):
    """Persistence collaborator unreachable or inconsistent."""
    domain = FaultDomain.STORAGE
    code = "STORE_001"
    severity = Severity.ERROR
    message = "Store unavailable"
    public_message = "Service temporarily unavailable. Please try again."
    retryable = True

    def __init__(self, operation: str | None = None, **context):
        super().__init__(**context)
        if operation:
            self.metadata["operation"] = operation


def is_auth_fault(exception: Exception) -> bool:
    """Check if exception is an auth fault."""
    return isinstance(exception, Fault) and exception.domain == FaultDomain.SECURITY
