"""Deterministic time helpers for lockout tests."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Tuple

from pin_lockout.lockout.timers import TimerScheduler

# A Monday at noon UTC: inside business hours
START_TIME = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)

EMERGENCY_CODE = "EMERG-7731"


class ManualClock:
    """Clock that only moves when told to."""
    
    def __init__(self, start: datetime = START_TIME):
        self.now = start
    
    def __call__(self) -> datetime:
        return self.now
    
    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class TickingClock(ManualClock):
    """Clock that moves forward a microsecond on every read."""
    
    def __call__(self) -> datetime:
        self.now = self.now + timedelta(microseconds=1)
        return self.now


class ManualTimerScheduler(TimerScheduler):
    """Records timers instead of running them; tests fire them explicitly."""
    
    def __init__(self):
        self.pending: Dict[str, Tuple[float, Callable[[], None]]] = {}
        self.scheduled_count = 0
    
    def schedule(self, principal_id, delay_seconds, callback):
        self.pending[principal_id] = (delay_seconds, callback)
        self.scheduled_count += 1
    
    def cancel(self, principal_id):
        return self.pending.pop(principal_id, None) is not None
    
    def is_pending(self, principal_id):
        return principal_id in self.pending
    
    def cancel_all(self):
        self.pending.clear()
    
    def delay_for(self, principal_id) -> float:
        return self.pending[principal_id][0]
    
    def fire(self, principal_id) -> None:
        _, callback = self.pending.pop(principal_id)
        callback()
