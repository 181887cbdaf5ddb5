"""
VaultFaults - Structured error handling for the vault security core.

Failures are NOT bare exceptions. They are typed fault signals with a
stable code, a domain, a severity and a public message that callers may
show to end users without leaking internal detail.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain enumeration
- Severity: Severity levels
- INVALID_INPUT: Precondition violations shared by all components
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
    INVALID_INPUT,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "INVALID_INPUT",
]
