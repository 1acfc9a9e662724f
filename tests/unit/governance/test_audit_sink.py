"""Unit tests for the audit sink."""

from datetime import timedelta

import pytest

from pin_lockout.common.exceptions import AuditError
from pin_lockout.governance.audit.sink import AuditSink
from pin_lockout.governance.audit.store import AuditStore, InMemoryAuditStore
from pin_lockout.governance.schemas import AuditEventType, OverrideRecord, OverrideType
from pin_lockout.schemas import AttemptContext, AttemptRecord, LockoutStatus

from fixtures.lockout import START_TIME


class BrokenStore(AuditStore):
    def append_event(self, event):
        raise AuditError("store offline")


@pytest.fixture
def store():
    return InMemoryAuditStore()


@pytest.fixture
def sink(store):
    return AuditSink(store=store)


class TestAuditSink:
    """Tests for event construction."""
    
    def test_log_attempt(self, sink, store):
        """Test attempt events carry the decision context."""
        attempt = AttemptRecord(
            principal_id="emp_001",
            device_id="pos_01",
            source_address="10.0.0.5",
            success=False,
            error_code="BAD_PIN",
            risk_score=30,
            context=AttemptContext(tenant_id="rest_9"),
            timestamp=START_TIME,
        )
        status = LockoutStatus(principal_id="emp_001", attempts_remaining=4)
        
        event = sink.log_attempt(attempt, status)
        
        assert event.event_type == AuditEventType.AUTH_ATTEMPT
        assert event.data["attempt_id"] == attempt.id
        assert event.data["error_code"] == "BAD_PIN"
        assert event.data["tenant_id"] == "rest_9"
        assert event.data["attempts_remaining"] == 4
        assert event.data["lockout_state"] == "active"
        assert len(list(store.get_events())) == 1
    
    def test_log_lockout(self, sink):
        """Test lockout events record duration, episode and expiry."""
        event = sink.log_lockout(
            "emp_001",
            lockout_duration=1800.0,
            lockout_number=1,
            risk_level="high",
            failed_attempts=5,
            requires_manager_override=True,
            expires_at=START_TIME + timedelta(minutes=30),
        )
        
        assert event.event_type == AuditEventType.ACCOUNT_LOCKED
        assert event.data["lockout_expires_at"] == "2026-03-02T12:30:00+00:00"
        assert event.data["requires_manager_override"] is True
    
    def test_log_manager_override(self, sink):
        """Test manager overrides carry the justification."""
        record = OverrideRecord(
            override_type=OverrideType.MANAGER,
            principal_id="emp_001",
            actor_id="mgr_7",
            justification="verified",
            previous_state="locked",
            previous_risk_level="high",
        )
        
        event = sink.log_manager_override(record)
        
        assert event.event_type == AuditEventType.MANAGER_OVERRIDE
        assert event.data["override_id"] == record.override_id
        assert event.data["justification"] == "verified"
    
    def test_log_emergency_unlock(self, sink):
        """Test emergency unlocks use their own event type."""
        record = OverrideRecord(
            override_type=OverrideType.EMERGENCY,
            principal_id="emp_001",
            actor_id="ops_1",
            previous_state="locked",
            previous_risk_level="medium",
        )
        
        assert sink.log_emergency_unlock(record).event_type == AuditEventType.EMERGENCY_UNLOCK
    
    def test_log_system_event(self, sink):
        """Test system events merge metadata into the payload."""
        event = sink.log_system_event("state_restored", {"principals": 3})
        
        assert event.principal_id is None
        assert event.data == {"event_description": "state_restored", "principals": 3}
    
    def test_events_are_chained(self, sink, store):
        """Test the sink's writes form a verifiable chain."""
        sink.log_unlock("emp_001", "timeout_expired", None, "locked")
        sink.log_administrative_lock("emp_002", "manager_locked", "policy", "admin_1")
        sink.log_security_alert("emp_003", "critical", 10, 3, 2)
        
        assert store.verify_integrity() is True
    
    def test_store_failure_swallowed(self):
        """Test a failing backend never raises into the caller."""
        sink = AuditSink(store=BrokenStore())
        
        event = sink.log_override_denied("emp_001", OverrideType.EMERGENCY, "ops_1", "invalid_code")
        
        assert event.event_type == AuditEventType.OVERRIDE_DENIED
    
    def test_background_writer(self, store):
        """Test the sink can write through a background writer."""
        sink = AuditSink(store=store, use_background_writer=True)
        try:
            sink.log_emergency_codes_changed("rotated", "admin_1", 2)
            sink.flush()
            
            [event] = list(store.get_events())
            assert event.data == {"action": "rotated", "changed_by": "admin_1", "active_codes": 2}
        finally:
            sink.shutdown()
    
    def test_empty_sized_store_is_kept(self):
        """Test an injected store that reports zero length is not replaced."""
        class SizedStore(InMemoryAuditStore):
            def __len__(self):
                return 0
        
        store = SizedStore()
        sink = AuditSink(store=store)
        
        sink.log_emergency_codes_changed("rotated", "admin_1", 2)
        
        assert sink.store is store
        assert len(list(store.get_events())) == 1
