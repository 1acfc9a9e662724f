"""Lockout Service - the engine's public surface.

Wires the attempt store, risk scorer, state machine, override authority,
audit sink and persistence together. Construct one per process and inject
it wherever authentication decisions are made.

Design principles:
- Per-principal locking only; principals never contend with each other
- Returned statuses are copies; callers never hold engine state
- Audit and persistence failures are logged, never raised
- Invalid input is rejected before any state is touched
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union

from pin_lockout.attempts.store import AttemptStore
from pin_lockout.common.config.lockout import LockoutConfig, load_lockout_config
from pin_lockout.common.config.settings import (
    AuditStorageType,
    Settings,
    StateBackend,
    get_settings,
)
from pin_lockout.common.constants import HistoryConstants
from pin_lockout.common.exceptions import ValidationError
from pin_lockout.common.logging import configure_logging
from pin_lockout.core.types import AuthMethod, LockoutState, UnlockReason
from pin_lockout.governance.audit.sink import AuditSink
from pin_lockout.governance.audit.store import (
    AuditStore,
    FileAuditStore,
    InMemoryAuditStore,
    LoggingAuditStore,
)
from pin_lockout.governance.override import (
    EmergencyCodeSet,
    ManagerCredentialVerifier,
    OverrideAuthority,
)
from pin_lockout.lockout.locks import PrincipalLockRegistry
from pin_lockout.lockout.state_machine import LockoutStateMachine
from pin_lockout.lockout.timers import ThreadingTimerScheduler, TimerScheduler
from pin_lockout.persistence.adapter import PersistenceAdapter
from pin_lockout.persistence.background_writer import BackgroundStoreWriter
from pin_lockout.persistence.kv_store import (
    FileKeyValueStore,
    InMemoryKeyValueStore,
    KeyValueStore,
)
from pin_lockout.risk.scorer import RiskScorer
from pin_lockout.schemas import LockoutStatistics, LockoutStatus, utc_now
from pin_lockout.validators import (
    validate_context,
    validate_error_code,
    validate_identifier,
    validate_method,
    validate_source_address,
)

logger = logging.getLogger(__name__)


class LockoutService:
    """PIN attempt limiting and lockout engine.

    Example:
        service = create_lockout_service()
        status = service.record_attempt("emp_42", "pos_1", "10.0.0.7", success=False)
        if status.is_locked:
            ...
    """

    def __init__(
        self,
        config: Optional[LockoutConfig] = None,
        audit: Optional[AuditSink] = None,
        persistence: Optional[PersistenceAdapter] = None,
        scheduler: Optional[TimerScheduler] = None,
        verifier: Optional[ManagerCredentialVerifier] = None,
        clock=utc_now,
        cleanup_interval_seconds: float = HistoryConstants.CLEANUP_INTERVAL_SECONDS,
        restore: bool = True,
    ):
        """Initialize the service.

        Args:
            config: Lockout policy. Defaults if not provided.
            audit: Audit sink. In-memory if not provided.
            persistence: Durable mirror. State is memory-only if None.
            scheduler: Expiry timers. threading.Timer based if not provided.
            verifier: Checks manager proof for manager overrides.
            clock: Source of "now", injectable for tests.
            cleanup_interval_seconds: Period of the maintenance tick.
            restore: Load persisted state before serving.
        """
        self.config = config if config is not None else LockoutConfig()
        self.audit = audit if audit is not None else AuditSink()
        self.persistence = persistence
        self.clock = clock
        self.cleanup_interval_seconds = cleanup_interval_seconds

        self.locks = PrincipalLockRegistry()
        self.attempts = AttemptStore(persistence)
        self.scorer = RiskScorer(self.attempts, self.config.tzinfo)
        self.scheduler = scheduler if scheduler is not None else ThreadingTimerScheduler()
        self.codes = EmergencyCodeSet(
            self.config.emergency_unlock_codes,
            single_use=self.config.emergency_codes_single_use,
        )
        self.state_machine = LockoutStateMachine(
            config=self.config,
            attempts=self.attempts,
            audit=self.audit,
            scheduler=self.scheduler,
            locks=self.locks,
            persistence=persistence,
            clock=clock,
            emergency_unlock_enabled=lambda: bool(self.codes),
        )
        self.overrides = OverrideAuthority(
            self.state_machine, self.audit, self.codes, verifier
        )

        self._stop_event = threading.Event()
        self._cleanup_thread: Optional[threading.Thread] = None

        if restore and persistence is not None:
            self.restore()

    # ------------------------------------------------------------------
    # Attempts and status
    # ------------------------------------------------------------------

    def record_attempt(
        self,
        principal_id: str,
        device_id: str,
        source_address: str,
        success: bool,
        method: Union[AuthMethod, str] = AuthMethod.PIN,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> LockoutStatus:
        """Record an authentication attempt and return the resulting status.

        Args:
            principal_id: Employee / user being authenticated
            device_id: Terminal the attempt came from
            source_address: Client network address
            success: Whether the PIN was accepted
            method: pin, biometric or emergency
            metadata: user_agent, tenant_id, location and error_code

        Raises:
            ValidationError: If any argument is malformed
        """
        principal_id = validate_identifier(principal_id, "principal_id")
        device_id = validate_identifier(device_id, "device_id")
        source_address = validate_source_address(source_address)
        method = validate_method(method)
        context = validate_context(metadata)
        if not isinstance(success, bool):
            raise ValidationError("success must be a boolean", details={"field": "success"})
        error_code = validate_error_code(metadata)

        with self.locks.hold(principal_id):
            now = self.clock()
            risk_score = self.scorer.score(principal_id, now)
            attempt = self.attempts.record(
                principal_id,
                device_id,
                source_address,
                success,
                method=method,
                context=context,
                error_code=error_code,
                risk_score=risk_score,
                timestamp=now,
            )
            status = self.state_machine.on_attempt(attempt)

        self.audit.log_attempt(attempt, status)
        return status

    def get_lockout_status(self, principal_id: str) -> LockoutStatus:
        principal_id = validate_identifier(principal_id, "principal_id")
        return self.state_machine.get_status(principal_id)

    def is_locked(self, principal_id: str) -> bool:
        return self.get_lockout_status(principal_id).is_locked

    # ------------------------------------------------------------------
    # Unlock paths
    # ------------------------------------------------------------------

    def unlock_user(
        self,
        principal_id: str,
        reason: str = UnlockReason.ADMINISTRATIVE.value,
        unlocked_by: Optional[str] = None,
    ) -> bool:
        """Administrative unlock. Clears any lock, permanent ones included.

        Returns:
            False if the principal was not locked
        """
        principal_id = validate_identifier(principal_id, "principal_id")
        if not reason or not reason.strip():
            raise ValidationError("reason must be non-blank", details={"field": "reason"})
        with self.locks.hold(principal_id):
            return self.state_machine.unlock(principal_id, reason.strip(), unlocked_by)

    def emergency_unlock(self, principal_id: str, code: str, unlocked_by: str) -> bool:
        principal_id = validate_identifier(principal_id, "principal_id")
        unlocked_by = validate_identifier(unlocked_by, "unlocked_by")
        return self.overrides.emergency_unlock(principal_id, code, unlocked_by)

    def manager_unlock(
        self,
        principal_id: str,
        manager_id: str,
        proof: str,
        justification: str,
    ) -> bool:
        principal_id = validate_identifier(principal_id, "principal_id")
        manager_id = validate_identifier(manager_id, "manager_id")
        return self.overrides.manager_unlock(principal_id, manager_id, proof, justification)

    def lock_user(
        self,
        principal_id: str,
        state: Union[LockoutState, str],
        reason: str,
        locked_by: Optional[str] = None,
    ) -> LockoutStatus:
        """Place a principal in manager_locked, emergency_locked or permanently_locked.

        Raises:
            ValidationError: If state is not an administrative state or reason is blank
        """
        principal_id = validate_identifier(principal_id, "principal_id")
        if not reason or not reason.strip():
            raise ValidationError("reason must be non-blank", details={"field": "reason"})
        try:
            state = LockoutState(state)
        except ValueError:
            raise ValidationError(f"Unknown lockout state: {state!r}", details={"field": "state"})

        with self.locks.hold(principal_id):
            try:
                return self.state_machine.administrative_lock(
                    principal_id, state, reason.strip(), locked_by
                )
            except ValueError as e:
                raise ValidationError(str(e), details={"field": "state"})

    def rotate_emergency_codes(self, codes, changed_by: Optional[str] = None) -> None:
        try:
            self.overrides.rotate_emergency_codes(codes, changed_by)
        except ValueError as e:
            raise ValidationError(str(e), details={"field": "codes"})

    def revoke_emergency_code(self, code: str, changed_by: Optional[str] = None) -> bool:
        return self.overrides.revoke_emergency_code(code, changed_by)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_statistics(self, window: Optional[timedelta] = None) -> LockoutStatistics:
        """Aggregate attempts within `window` (24h default) and current statuses."""
        window = window or timedelta(seconds=HistoryConstants.STATISTICS_WINDOW_SECONDS)
        attempts = self.attempts.all_attempts(since=self.clock() - window)
        statuses = self.state_machine.snapshot()

        failed = [a for a in attempts if not a.success]
        scores = [a.risk_score for a in attempts if a.risk_score > 0]

        stats = LockoutStatistics(
            total_attempts=len(attempts),
            failed_attempts=len(failed),
            successful_attempts=len(attempts) - len(failed),
            lockout_events=sum(1 for s in statuses if s.is_locked),
            average_risk_score=sum(scores) / len(scores) if scores else 0.0,
        )
        for status in statuses:
            stats.by_risk_level[status.risk_level] += 1
        return stats

    # ------------------------------------------------------------------
    # Recovery and maintenance
    # ------------------------------------------------------------------

    def restore(self) -> int:
        """Load every persisted principal before serving.

        Locks still in the future get their timers re-armed; expired ones
        are unlocked immediately.

        Returns:
            Number of principals restored
        """
        if self.persistence is None:
            return 0

        restored = 0
        for principal_id in self.persistence.known_principals():
            with self.locks.hold(principal_id):
                self.attempts.replace_history(
                    principal_id, self.persistence.load_history(principal_id)
                )
                status = self.persistence.load(principal_id)
                if status is not None:
                    self.state_machine.restore(status)
                    restored += 1

        logger.info(f"Restored lockout state for {restored} principals")
        self.audit.log_system_event("state_restored", {"principals": restored})
        return restored

    def _last_activity(self, principal_id: str) -> Optional[datetime]:
        history = self.attempts.recent_attempts(principal_id)
        if history:
            return history[-1].timestamp
        status = self.state_machine.snapshot_of(principal_id)
        return status.updated_at if status is not None else None

    def run_cleanup(self) -> Dict[str, int]:
        """One maintenance pass.

        Prunes history older than 7 days, unlocks locks whose timer never
        fired and forgets principals inactive for 7 days.
        """
        now = self.clock()
        history_cutoff = now - timedelta(seconds=HistoryConstants.AGGREGATE_RETENTION_SECONDS)
        inactive_cutoff = now - timedelta(seconds=HistoryConstants.INACTIVE_PRINCIPAL_SECONDS)
        summary = {"pruned_attempts": 0, "expired_locks": 0, "forgotten_principals": 0}

        principals = set(self.attempts.principals()) | set(self.state_machine.principals())
        for principal_id in sorted(principals):
            with self.locks.hold(principal_id):
                summary["pruned_attempts"] += self.attempts.prune(principal_id, history_cutoff)
                if self.state_machine.expire_if_due(
                    principal_id, UnlockReason.CLEANUP_EXPIRED.value
                ):
                    summary["expired_locks"] += 1

                status = self.state_machine.snapshot_of(principal_id)
                if status is not None and status.state != LockoutState.ACTIVE:
                    continue
                last_activity = self._last_activity(principal_id)
                if last_activity is None or last_activity < inactive_cutoff:
                    self.state_machine.forget(principal_id)
                    self.attempts.forget(principal_id)
                    if self.persistence is not None:
                        self.persistence.forget(principal_id)
                    summary["forgotten_principals"] += 1

        logger.info(
            f"Cleanup: pruned {summary['pruned_attempts']} attempts, "
            f"expired {summary['expired_locks']} locks, "
            f"forgot {summary['forgotten_principals']} principals"
        )
        return summary

    def _cleanup_loop(self) -> None:
        while not self._stop_event.wait(self.cleanup_interval_seconds):
            try:
                self.run_cleanup()
            except Exception as e:
                logger.error(f"Lockout cleanup failed: {e}")

    def start(self) -> None:
        """Start the periodic maintenance thread."""
        if self._cleanup_thread is not None and self._cleanup_thread.is_alive():
            return
        self._stop_event.clear()
        self._cleanup_thread = threading.Thread(
            target=self._cleanup_loop,
            name="LockoutCleanup",
            daemon=True,
        )
        self._cleanup_thread.start()
        self.audit.log_system_event("service_started")
        logger.info("LockoutService maintenance started")

    def shutdown(self) -> None:
        """Stop maintenance, cancel timers and flush pending writes."""
        self._stop_event.set()
        if self._cleanup_thread is not None:
            self._cleanup_thread.join(timeout=5.0)
            self._cleanup_thread = None

        self.scheduler.cancel_all()

        if self.persistence is not None and isinstance(self.persistence.store, BackgroundStoreWriter):
            self.persistence.store.shutdown()

        self.audit.log_system_event("service_stopped")
        self.audit.shutdown()
        logger.info("LockoutService shutdown complete")


def create_state_store(settings: Settings) -> KeyValueStore:
    """Build the key-value backend named by settings.

    Raises:
        ImportError: If boto3 is not installed for the dynamodb backend
    """
    if settings.state_backend == StateBackend.DYNAMODB:
        try:
            from pin_lockout.persistence.dynamodb_store import DynamoDBKeyValueStore
        except ImportError as e:
            raise ImportError(f"boto3 not installed, cannot use DynamoDB: {e}") from e
        store: KeyValueStore = DynamoDBKeyValueStore(
            table_name=settings.dynamodb_table,
            region=settings.aws_region,
        )
    elif settings.state_backend == StateBackend.FILE:
        store = FileKeyValueStore(settings.state_dir)
    else:
        return InMemoryKeyValueStore()

    if settings.async_persistence:
        store = BackgroundStoreWriter(store)
    return store


def create_audit_store(settings: Settings) -> AuditStore:
    if settings.audit_storage_type == AuditStorageType.FILE:
        return FileAuditStore(log_dir=str(settings.audit_log_dir))
    if settings.audit_storage_type == AuditStorageType.MEMORY:
        return InMemoryAuditStore()
    return LoggingAuditStore()


def create_lockout_service(
    settings: Optional[Settings] = None,
    config: Optional[LockoutConfig] = None,
    verifier: Optional[ManagerCredentialVerifier] = None,
    start_maintenance: bool = True,
) -> LockoutService:
    """Factory method to create a service with configured backends.

    Args:
        settings: Process settings (default: from environment)
        config: Lockout policy (default: YAML file plus environment)
        verifier: Manager credential verifier
        start_maintenance: Start the hourly cleanup thread

    Returns:
        Configured LockoutService; call shutdown() when done
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level.value)

    config = config or load_lockout_config(settings.config_file)
    audit = AuditSink(
        store=create_audit_store(settings),
        use_background_writer=settings.use_background_audit,
    )
    persistence = PersistenceAdapter(create_state_store(settings))

    service = LockoutService(
        config=config,
        audit=audit,
        persistence=persistence,
        verifier=verifier,
        cleanup_interval_seconds=settings.cleanup_interval_seconds,
    )
    if start_maintenance:
        service.start()
    return service
