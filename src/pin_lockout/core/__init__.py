"""Core types."""

from pin_lockout.core.types import (
    ADMINISTRATIVE_STATES,
    AuthMethod,
    LockoutState,
    RiskLevel,
    UnlockReason,
)

__all__ = [
    "ADMINISTRATIVE_STATES",
    "AuthMethod",
    "LockoutState",
    "RiskLevel",
    "UnlockReason",
]
