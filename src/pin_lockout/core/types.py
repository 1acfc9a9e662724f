"""Core types and enums."""

from enum import Enum


class LockoutState(str, Enum):
    """Lockout states for a principal."""
    ACTIVE = "active"
    LOCKED = "locked"
    EMERGENCY_LOCKED = "emergency_locked"
    MANAGER_LOCKED = "manager_locked"
    PERMANENTLY_LOCKED = "permanently_locked"


# States entered only through administrative action; they never expire.
ADMINISTRATIVE_STATES = frozenset({
    LockoutState.EMERGENCY_LOCKED,
    LockoutState.MANAGER_LOCKED,
    LockoutState.PERMANENTLY_LOCKED,
})


class RiskLevel(str, Enum):
    """Risk levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AuthMethod(str, Enum):
    """How the principal tried to authenticate."""
    PIN = "pin"
    BIOMETRIC = "biometric"
    EMERGENCY = "emergency"


class UnlockReason(str, Enum):
    """Well-known unlock reasons recorded in the audit trail."""
    TIMEOUT_EXPIRED = "timeout_expired"
    LOCKOUT_EXPIRED = "lockout_expired"
    CLEANUP_EXPIRED = "cleanup_expired"
    SUCCESSFUL_AUTHENTICATION = "successful_authentication"
    EMERGENCY_UNLOCK = "emergency_unlock"
    MANAGER_OVERRIDE = "manager_override"
    ADMINISTRATIVE = "administrative"
