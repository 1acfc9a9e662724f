"""Lockout State Machine - per-principal lockout decisions.

States:
    active --(max failures in window)--> locked --(expiry | unlock | success)--> active

locked may additionally require a manager override before anyone but a
successful PIN can clear it. manager_locked, emergency_locked and
permanently_locked are entered only by administrative action and never
expire on their own.

Every method that takes a principal id and mutates state expects the
caller to hold that principal's lock (see PrincipalLockRegistry), except
get_status and the timer callback, which take it themselves.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from pin_lockout.attempts.store import AttemptStore
from pin_lockout.common.config.lockout import LockoutConfig
from pin_lockout.common.constants import RiskConstants
from pin_lockout.core.types import (
    ADMINISTRATIVE_STATES,
    LockoutState,
    RiskLevel,
    UnlockReason,
)
from pin_lockout.governance.audit.sink import AuditSink
from pin_lockout.lockout.locks import PrincipalLockRegistry
from pin_lockout.lockout.timers import TimerScheduler
from pin_lockout.persistence.adapter import PersistenceAdapter
from pin_lockout.risk.scorer import classify_risk_level, risk_multiplier
from pin_lockout.schemas import AttemptRecord, LockoutStatus, utc_now

logger = logging.getLogger(__name__)

_ESCALATED_RISK = (RiskLevel.HIGH, RiskLevel.CRITICAL)


class LockoutStateMachine:
    """Owns every principal's LockoutStatus and the lockout timers."""

    # Lockout episodes at or beyond this always need a manager
    MANAGER_OVERRIDE_EPISODE = 3

    def __init__(
        self,
        config: LockoutConfig,
        attempts: AttemptStore,
        audit: AuditSink,
        scheduler: TimerScheduler,
        locks: PrincipalLockRegistry,
        persistence: Optional[PersistenceAdapter] = None,
        clock: Callable[[], datetime] = utc_now,
        emergency_unlock_enabled: Callable[[], bool] = lambda: False,
    ):
        """
        Args:
            config: Lockout policy
            attempts: Attempt history (shared with the risk scorer)
            audit: Audit sink for transitions
            scheduler: Expiry timers
            locks: Per-principal locks; the timer callback takes them
            persistence: Durable mirror; state is memory-only if None
            clock: Source of "now"
            emergency_unlock_enabled: Whether any emergency code is configured
        """
        self.config = config
        self.attempts = attempts
        self.audit = audit
        self.scheduler = scheduler
        self.locks = locks
        self.persistence = persistence
        self.clock = clock
        self.emergency_unlock_enabled = emergency_unlock_enabled
        self._statuses: Dict[str, LockoutStatus] = {}

    # ------------------------------------------------------------------
    # Status access
    # ------------------------------------------------------------------

    def _default_status(self, principal_id: str) -> LockoutStatus:
        return LockoutStatus(
            principal_id=principal_id,
            attempts_remaining=self.config.max_attempts,
            emergency_unlock_available=self.emergency_unlock_enabled(),
            updated_at=self.clock(),
        )

    def _status(self, principal_id: str, now: Optional[datetime] = None) -> LockoutStatus:
        """Mutable status, created lazily and expired if overdue at now. Lock held."""
        now = now if now is not None else self.clock()
        status = self._statuses.get(principal_id)
        if status is None:
            status = self._default_status(principal_id)
            self._statuses[principal_id] = status
            return status

        if (
            status.state == LockoutState.LOCKED
            and status.lockout_expires_at is not None
            and status.lockout_expires_at <= now
        ):
            self.unlock(principal_id, UnlockReason.LOCKOUT_EXPIRED.value, now=now)
        return status

    def get_status(self, principal_id: str) -> LockoutStatus:
        """Snapshot of a principal's status."""
        with self.locks.hold(principal_id):
            snapshot = self._status(principal_id).model_copy(deep=True)
        # Codes may have been rotated since the status was last written
        snapshot.emergency_unlock_available = self._emergency_available(snapshot)
        return snapshot

    def has_status(self, principal_id: str) -> bool:
        return principal_id in self._statuses

    def snapshot(self) -> List[LockoutStatus]:
        """Read-only copies of every status, taken without principal locks."""
        return [status.model_copy(deep=True) for status in list(self._statuses.values())]

    def snapshot_of(self, principal_id: str) -> Optional[LockoutStatus]:
        """Copy of an existing status without creating or expiring it."""
        status = self._statuses.get(principal_id)
        return status.model_copy(deep=True) if status is not None else None

    def principals(self) -> List[str]:
        return list(self._statuses.keys())

    # ------------------------------------------------------------------
    # Attempt handling
    # ------------------------------------------------------------------

    def failed_in_window(self, status: LockoutStatus, now: datetime) -> List[AttemptRecord]:
        """Failures within the reset period and since the last reset."""
        window_start = status.failure_window_started_at
        return [
            a for a in self.attempts.recent_attempts(
                status.principal_id, self.config.reset_period, now=now
            )
            if not a.success and (window_start is None or a.timestamp >= window_start)
        ]

    def on_attempt(self, attempt: AttemptRecord) -> LockoutStatus:
        """Apply a recorded attempt and return a snapshot of the new status. Lock held."""
        principal_id = attempt.principal_id
        now = attempt.timestamp
        # The failure window must open no later than the attempt it counts
        status = self._status(principal_id, now=now)

        status.last_attempt = attempt
        status.total_attempts_in_window = len(
            self.attempts.recent_attempts(principal_id, self.config.reset_period, now=now)
        )

        if attempt.success:
            self._on_success(status, attempt)
        else:
            self._on_failure(status, attempt)

        status.emergency_unlock_available = self._emergency_available(status)
        status.updated_at = self.clock()
        self._save(status)
        return status.model_copy(deep=True)

    def _on_success(self, status: LockoutStatus, attempt: AttemptRecord) -> None:
        if status.state == LockoutState.PERMANENTLY_LOCKED:
            logger.warning(
                f"Successful authentication for permanently locked principal "
                f"{status.principal_id}; lock kept"
            )
            return

        previous_state = status.state
        if previous_state != LockoutState.ACTIVE:
            self.scheduler.cancel(status.principal_id)
            self.audit.log_unlock(
                status.principal_id,
                UnlockReason.SUCCESSFUL_AUTHENTICATION.value,
                None,
                previous_state.value,
            )

        self._reset(status, window_start=attempt.timestamp)

    def _on_failure(self, status: LockoutStatus, attempt: AttemptRecord) -> None:
        if status.state != LockoutState.ACTIVE:
            # Already locked: no new episode, duration or risk level
            status.attempts_remaining = 0
            return

        failed = self.failed_in_window(status, attempt.timestamp)
        status.risk_level = classify_risk_level(attempt.risk_score, len(failed))
        status.attempts_remaining = max(0, self.config.max_attempts - len(failed))
        if len(failed) >= self.config.max_attempts:
            self._trigger_lockout(status, failed, attempt.timestamp)

    # ------------------------------------------------------------------
    # Lockout
    # ------------------------------------------------------------------

    def lockout_number(self, principal_id: str) -> int:
        """1-based episode number derived from high-risk failures in history."""
        high_risk_failures = [
            a for a in self.attempts.recent_attempts(principal_id)
            if not a.success and a.risk_score >= RiskConstants.HIGH_RISK_ATTEMPT_SCORE
        ]
        return len(high_risk_failures) // self.config.max_attempts + 1

    def lockout_duration(self, lockout_number: int, risk_level: RiskLevel) -> timedelta:
        base_seconds = self.config.base_lockout_duration.total_seconds()
        seconds = (
            base_seconds
            * self.config.progressive_multiplier ** (lockout_number - 1)
            * risk_multiplier(risk_level)
        )
        return timedelta(
            seconds=min(seconds, self.config.max_lockout_duration.total_seconds())
        )

    def requires_manager_override(self, risk_level: RiskLevel, lockout_number: int) -> bool:
        if not self.config.manager_override_required:
            return False
        return (
            risk_level in _ESCALATED_RISK
            or lockout_number >= self.MANAGER_OVERRIDE_EPISODE
        )

    def _trigger_lockout(
        self,
        status: LockoutStatus,
        failed: List[AttemptRecord],
        now: datetime,
    ) -> None:
        principal_id = status.principal_id
        number = self.lockout_number(principal_id)
        duration = self.lockout_duration(number, status.risk_level)
        expires_at = now + duration

        status.state = LockoutState.LOCKED
        status.attempts_remaining = 0
        status.lockout_expires_at = expires_at
        status.lockout_duration = duration.total_seconds()
        status.lockout_number = number
        status.requires_manager_override = self.requires_manager_override(
            status.risk_level, number
        )

        self._arm_timer(principal_id, expires_at, now)

        logger.warning(
            f"Principal {principal_id} locked for {duration.total_seconds():.0f}s "
            f"(episode {number}, risk {status.risk_level.value})"
        )
        self.audit.log_lockout(
            principal_id,
            lockout_duration=duration.total_seconds(),
            lockout_number=number,
            risk_level=status.risk_level.value,
            failed_attempts=len(failed),
            requires_manager_override=status.requires_manager_override,
            expires_at=expires_at,
        )

        if status.risk_level in _ESCALATED_RISK:
            self._security_alert(status, failed)

    def _security_alert(self, status: LockoutStatus, failed: List[AttemptRecord]) -> None:
        unique_devices = len({a.device_id for a in failed})
        unique_addresses = len({a.source_address for a in failed})
        logger.warning(
            f"Security alert: high-risk lockout for {status.principal_id} "
            f"(risk={status.risk_level.value}, failures={len(failed)}, "
            f"devices={unique_devices}, addresses={unique_addresses})"
        )
        self.audit.log_security_alert(
            status.principal_id,
            risk_level=status.risk_level.value,
            failed_attempts=len(failed),
            unique_devices=unique_devices,
            unique_addresses=unique_addresses,
        )

    def _arm_timer(self, principal_id: str, expires_at: datetime, now: datetime) -> None:
        delay = (expires_at - now).total_seconds()
        self.scheduler.schedule(
            principal_id,
            delay,
            lambda: self._on_timer_fired(principal_id, expires_at),
        )

    def _on_timer_fired(self, principal_id: str, expected_expiry: datetime) -> None:
        with self.locks.hold(principal_id):
            status = self._statuses.get(principal_id)
            if status is None or status.state != LockoutState.LOCKED:
                return
            if status.lockout_expires_at != expected_expiry:
                # Superseded by a newer episode or already cleared
                return
            self.unlock(principal_id, UnlockReason.TIMEOUT_EXPIRED.value)

    # ------------------------------------------------------------------
    # Unlock and administrative locks
    # ------------------------------------------------------------------

    def _reset(self, status: LockoutStatus, window_start: datetime) -> None:
        status.state = LockoutState.ACTIVE
        status.attempts_remaining = self.config.max_attempts
        status.lockout_expires_at = None
        status.lockout_duration = None
        status.lockout_number = None
        status.requires_manager_override = False
        status.risk_level = RiskLevel.LOW
        status.state_reason = None
        status.failure_window_started_at = window_start

    def unlock(
        self,
        principal_id: str,
        reason: str,
        unlocked_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Return a locked principal to active. Lock held.

        Shared by expiry, emergency, manager and administrative unlocks.

        Returns:
            False if the principal was not locked
        """
        status = self._statuses.get(principal_id)
        if status is None or not status.is_locked:
            return False

        self.scheduler.cancel(principal_id)
        previous_state = status.state
        now = now if now is not None else self.clock()

        self._reset(status, window_start=now)
        status.emergency_unlock_available = self._emergency_available(status)
        status.updated_at = now
        self._save(status)

        logger.info(f"Principal {principal_id} unlocked ({reason})")
        self.audit.log_unlock(principal_id, reason, unlocked_by, previous_state.value)
        return True

    def administrative_lock(
        self,
        principal_id: str,
        state: LockoutState,
        reason: str,
        locked_by: Optional[str] = None,
    ) -> LockoutStatus:
        """Put a principal into a non-expiring administrative state. Lock held.

        Raises:
            ValueError: If state is not an administrative state
        """
        if state not in ADMINISTRATIVE_STATES:
            raise ValueError(f"{state.value} is not an administrative lock state")

        status = self._status(principal_id)
        self.scheduler.cancel(principal_id)

        status.state = state
        status.attempts_remaining = 0
        status.lockout_expires_at = None
        status.lockout_duration = None
        status.requires_manager_override = state == LockoutState.MANAGER_LOCKED
        status.state_reason = reason
        status.emergency_unlock_available = self._emergency_available(status)
        status.updated_at = self.clock()
        self._save(status)

        logger.warning(f"Principal {principal_id} administratively set to {state.value}")
        self.audit.log_administrative_lock(principal_id, state.value, reason, locked_by)
        return status.model_copy(deep=True)

    def _emergency_available(self, status: LockoutStatus) -> bool:
        return (
            self.emergency_unlock_enabled()
            and status.state != LockoutState.PERMANENTLY_LOCKED
        )

    def _save(self, status: LockoutStatus) -> None:
        if self.persistence is not None:
            self.persistence.save(status.principal_id, status)

    # ------------------------------------------------------------------
    # Recovery and maintenance
    # ------------------------------------------------------------------

    def restore(self, status: LockoutStatus) -> None:
        """Install a persisted status, re-arming or expiring its timer. Lock held."""
        principal_id = status.principal_id
        self._statuses[principal_id] = status
        now = self.clock()

        if status.state == LockoutState.LOCKED:
            if status.lockout_expires_at is None or status.lockout_expires_at <= now:
                self.unlock(principal_id, UnlockReason.LOCKOUT_EXPIRED.value)
            else:
                self._arm_timer(principal_id, status.lockout_expires_at, now)

        status.emergency_unlock_available = self._emergency_available(status)

    def expire_if_due(self, principal_id: str, reason: str) -> bool:
        """Unlock an overdue lock whose timer never fired. Lock held."""
        status = self._statuses.get(principal_id)
        if (
            status is not None
            and status.state == LockoutState.LOCKED
            and status.lockout_expires_at is not None
            and status.lockout_expires_at < self.clock()
        ):
            return self.unlock(principal_id, reason)
        return False

    def forget(self, principal_id: str) -> None:
        """Drop an inactive principal's status. Lock held."""
        self.scheduler.cancel(principal_id)
        self._statuses.pop(principal_id, None)
