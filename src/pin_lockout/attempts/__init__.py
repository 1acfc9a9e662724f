"""Attempt history."""

from pin_lockout.attempts.store import AttemptStore

__all__ = ["AttemptStore"]
