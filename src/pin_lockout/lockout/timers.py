"""Lockout expiry timers.

One cancellable, fire-once timer per principal. The scheduler knows
nothing about lockout state; the callback re-validates state under the
principal lock before acting.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict

logger = logging.getLogger(__name__)


class TimerScheduler(ABC):
    """Schedules at most one pending callback per principal."""
    
    @abstractmethod
    def schedule(self, principal_id: str, delay_seconds: float, callback: Callable[[], None]) -> None:
        """Schedule callback after delay, replacing any pending timer for the principal."""
        pass
    
    @abstractmethod
    def cancel(self, principal_id: str) -> bool:
        """Cancel the pending timer. Returns True if one was pending."""
        pass
    
    @abstractmethod
    def is_pending(self, principal_id: str) -> bool:
        pass
    
    @abstractmethod
    def cancel_all(self) -> None:
        pass


class ThreadingTimerScheduler(TimerScheduler):
    """threading.Timer per principal, daemonized so shutdown never waits on a lockout."""
    
    def __init__(self) -> None:
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()
    
    def schedule(self, principal_id: str, delay_seconds: float, callback: Callable[[], None]) -> None:
        timer: threading.Timer
        
        def run() -> None:
            with self._lock:
                if self._timers.get(principal_id) is timer:
                    del self._timers[principal_id]
            try:
                callback()
            except Exception:
                logger.exception(f"Lockout timer callback failed for {principal_id}")
        
        timer = threading.Timer(max(0.0, delay_seconds), run)
        timer.daemon = True
        timer.name = f"lockout-timer-{principal_id}"
        
        with self._lock:
            previous = self._timers.pop(principal_id, None)
            if previous is not None:
                previous.cancel()
            self._timers[principal_id] = timer
        timer.start()
    
    def cancel(self, principal_id: str) -> bool:
        with self._lock:
            timer = self._timers.pop(principal_id, None)
        if timer is None:
            return False
        timer.cancel()
        return True
    
    def is_pending(self, principal_id: str) -> bool:
        with self._lock:
            return principal_id in self._timers
    
    def cancel_all(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._timers)
