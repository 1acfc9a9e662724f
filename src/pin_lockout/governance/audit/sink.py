"""Audit Sink - one structured event per attempt, transition and override.

Write-only. The engine never reads audit history back to make decisions,
and a failing audit backend never fails a decision.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from pin_lockout.governance.audit.background_writer import BackgroundAuditWriter
from pin_lockout.governance.audit.store import AuditStore, InMemoryAuditStore
from pin_lockout.governance.schemas import (
    AuditEvent,
    AuditEventType,
    OverrideRecord,
    OverrideType,
)
from pin_lockout.schemas import AttemptRecord, LockoutStatus

logger = logging.getLogger(__name__)


class AuditSink:
    """Builds audit events and hands them to a store."""
    
    def __init__(
        self,
        store: Optional[AuditStore] = None,
        use_background_writer: bool = False,
    ):
        """Initialize the audit sink.
        
        Args:
            store: Backend for events. In-memory if not provided.
            use_background_writer: Queue writes on a background thread.
        """
        self.store = store if store is not None else InMemoryAuditStore()
        self._writer: Optional[BackgroundAuditWriter] = (
            BackgroundAuditWriter(self.store) if use_background_writer else None
        )
    
    def _append(
        self,
        event_type: AuditEventType,
        principal_id: Optional[str],
        data: Dict[str, Any],
    ) -> AuditEvent:
        event = AuditEvent(event_type=event_type, principal_id=principal_id, data=data)
        try:
            if self._writer is not None:
                return self._writer.append_event(event)
            return self.store.append_event(event)
        except Exception as e:
            logger.error(f"Audit write failed for {event_type.value}: {e}")
            return event
    
    def log_attempt(self, attempt: AttemptRecord, status: LockoutStatus) -> AuditEvent:
        return self._append(
            AuditEventType.AUTH_ATTEMPT,
            attempt.principal_id,
            {
                "attempt_id": attempt.id,
                "device_id": attempt.device_id,
                "source_address": attempt.source_address,
                "success": attempt.success,
                "method": attempt.method.value,
                "error_code": attempt.error_code,
                "risk_score": attempt.risk_score,
                "tenant_id": attempt.context.tenant_id,
                "lockout_state": status.state.value,
                "attempts_remaining": status.attempts_remaining,
            },
        )
    
    def log_lockout(
        self,
        principal_id: str,
        lockout_duration: float,
        lockout_number: int,
        risk_level: str,
        failed_attempts: int,
        requires_manager_override: bool,
        expires_at: datetime,
    ) -> AuditEvent:
        return self._append(
            AuditEventType.ACCOUNT_LOCKED,
            principal_id,
            {
                "lockout_duration": lockout_duration,
                "lockout_number": lockout_number,
                "risk_level": risk_level,
                "failed_attempts": failed_attempts,
                "requires_manager_override": requires_manager_override,
                "lockout_expires_at": expires_at.isoformat(),
            },
        )
    
    def log_unlock(
        self,
        principal_id: str,
        reason: str,
        unlocked_by: Optional[str],
        previous_state: str,
    ) -> AuditEvent:
        return self._append(
            AuditEventType.ACCOUNT_UNLOCKED,
            principal_id,
            {
                "reason": reason,
                "unlocked_by": unlocked_by,
                "previous_state": previous_state,
            },
        )
    
    def log_emergency_unlock(self, override: OverrideRecord) -> AuditEvent:
        return self._append(
            AuditEventType.EMERGENCY_UNLOCK,
            override.principal_id,
            override.model_dump(mode="json"),
        )
    
    def log_manager_override(self, override: OverrideRecord) -> AuditEvent:
        """Log a manager unlock, justification included."""
        return self._append(
            AuditEventType.MANAGER_OVERRIDE,
            override.principal_id,
            override.model_dump(mode="json"),
        )
    
    def log_override_denied(
        self,
        principal_id: str,
        override_type: OverrideType,
        actor_id: Optional[str],
        reason: str,
    ) -> AuditEvent:
        return self._append(
            AuditEventType.OVERRIDE_DENIED,
            principal_id,
            {
                "override_type": override_type.value,
                "actor_id": actor_id,
                "reason": reason,
            },
        )
    
    def log_security_alert(
        self,
        principal_id: str,
        risk_level: str,
        failed_attempts: int,
        unique_devices: int,
        unique_addresses: int,
    ) -> AuditEvent:
        return self._append(
            AuditEventType.SECURITY_ALERT,
            principal_id,
            {
                "risk_level": risk_level,
                "failed_attempts": failed_attempts,
                "unique_devices": unique_devices,
                "unique_addresses": unique_addresses,
            },
        )
    
    def log_administrative_lock(
        self,
        principal_id: str,
        state: str,
        reason: str,
        locked_by: Optional[str],
    ) -> AuditEvent:
        return self._append(
            AuditEventType.ADMINISTRATIVE_LOCK,
            principal_id,
            {"state": state, "reason": reason, "locked_by": locked_by},
        )
    
    def log_emergency_codes_changed(
        self,
        action: str,
        changed_by: Optional[str],
        active_codes: int,
    ) -> AuditEvent:
        # Never log the codes themselves
        return self._append(
            AuditEventType.EMERGENCY_CODES_CHANGED,
            None,
            {"action": action, "changed_by": changed_by, "active_codes": active_codes},
        )
    
    def log_system_event(
        self,
        event_description: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """Log a system event (startup, restore, cleanup, shutdown)."""
        return self._append(
            AuditEventType.SYSTEM_EVENT,
            None,
            {"event_description": event_description, **(metadata or {})},
        )
    
    def flush(self) -> None:
        if self._writer is not None:
            self._writer.flush()
    
    def shutdown(self) -> None:
        if self._writer is not None:
            self._writer.shutdown()
