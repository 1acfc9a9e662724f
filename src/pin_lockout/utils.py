"""Display helpers for lockout statuses."""

from typing import Union

from pin_lockout.core.types import LockoutState

_STATE_LABELS = {
    LockoutState.ACTIVE: "Active",
    LockoutState.LOCKED: "Temporarily locked",
    LockoutState.EMERGENCY_LOCKED: "Locked (emergency)",
    LockoutState.MANAGER_LOCKED: "Locked (manager approval required)",
    LockoutState.PERMANENTLY_LOCKED: "Permanently locked",
}


def format_lockout_duration(seconds: float) -> str:
    """Format a lockout duration as "1h 30m" or "45m". Seconds are truncated."""
    total_minutes = int(max(seconds, 0) // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def describe_state(state: Union[LockoutState, str]) -> str:
    """Human-readable label for a lockout state."""
    return _STATE_LABELS[LockoutState(state)]
