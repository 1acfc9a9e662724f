"""Lockout - per-principal state machine, locks and expiry timers."""

from pin_lockout.lockout.locks import PrincipalLockRegistry
from pin_lockout.lockout.state_machine import LockoutStateMachine
from pin_lockout.lockout.timers import ThreadingTimerScheduler, TimerScheduler

__all__ = [
    "LockoutStateMachine",
    "PrincipalLockRegistry",
    "ThreadingTimerScheduler",
    "TimerScheduler",
]
