"""PIN Lockout - attempt limiting and progressive lockout for PIN authentication."""

__version__ = "0.1.0"
__author__ = "PIN Lockout Team"

# Core exports
from pin_lockout.core.types import AuthMethod, LockoutState, RiskLevel
from pin_lockout.schemas import LockoutStatistics, LockoutStatus
from pin_lockout.service import LockoutService, create_lockout_service
from pin_lockout.utils import describe_state, format_lockout_duration

__all__ = [
    "AuthMethod",
    "LockoutState",
    "RiskLevel",
    "LockoutStatistics",
    "LockoutStatus",
    "LockoutService",
    "create_lockout_service",
    "describe_state",
    "format_lockout_duration",
]
