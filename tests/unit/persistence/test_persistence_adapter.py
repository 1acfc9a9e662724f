"""Unit tests for the persistence adapter."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from pin_lockout.common.exceptions import PersistenceError
from pin_lockout.core.types import LockoutState, RiskLevel
from pin_lockout.persistence.adapter import PersistenceAdapter
from pin_lockout.persistence.kv_store import InMemoryKeyValueStore, KeyValueStore
from pin_lockout.schemas import AttemptRecord, LockoutStatus

from fixtures.lockout import START_TIME


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def adapter(kv):
    return PersistenceAdapter(kv)


def locked_status(principal_id="emp_001"):
    return LockoutStatus(
        principal_id=principal_id,
        state=LockoutState.LOCKED,
        attempts_remaining=0,
        lockout_expires_at=START_TIME + timedelta(minutes=30),
        lockout_duration=1800.0,
        lockout_number=1,
        requires_manager_override=True,
        risk_level=RiskLevel.HIGH,
        failure_window_started_at=START_TIME - timedelta(hours=1),
    )


def attempt(offset_seconds, principal_id="emp_001"):
    return AttemptRecord(
        principal_id=principal_id,
        device_id="pos_01",
        source_address="10.0.0.5",
        success=False,
        risk_score=65,
        timestamp=START_TIME + timedelta(seconds=offset_seconds),
    )


class TestStatusPersistence:
    """Tests for saving and loading statuses."""
    
    def test_keys(self):
        """Test the storage key layout."""
        assert PersistenceAdapter.state_key("emp_001") == "lockout_state_emp_001"
        assert PersistenceAdapter.attempts_key("emp_001") == "lockout_attempts_emp_001"
    
    def test_round_trip(self, adapter):
        """Test a saved status loads back equal."""
        status = locked_status()
        
        assert adapter.save("emp_001", status) is True
        restored = adapter.load("emp_001")
        
        assert restored == status
        assert restored.lockout_expires_at == status.lockout_expires_at
        assert restored.risk_level == RiskLevel.HIGH
    
    def test_load_missing(self, adapter):
        """Test an unknown principal loads as None."""
        assert adapter.load("nobody") is None
    
    def test_corrupt_record_discarded(self, adapter, kv):
        """Test a corrupt record is deleted and treated as missing."""
        kv.set("lockout_state_emp_001", b"{not json")
        
        assert adapter.load("emp_001") is None
        assert kv.get("lockout_state_emp_001") is None
    
    def test_invalid_record_discarded(self, adapter, kv):
        """Test a record failing validation is discarded."""
        kv.set("lockout_state_emp_001", b'{"principal_id": "emp_001", "attempts_remaining": -3}')
        
        assert adapter.load("emp_001") is None
    
    def test_write_failure_swallowed(self):
        """Test a failing backend reports False instead of raising."""
        store = MagicMock(spec=KeyValueStore)
        store.set.side_effect = PersistenceError("disk full", key="k")
        
        assert PersistenceAdapter(store).save("emp_001", locked_status()) is False
    
    def test_read_failure_treated_as_missing(self):
        """Test a failing read loads as None."""
        store = MagicMock(spec=KeyValueStore)
        store.get.side_effect = PersistenceError("timeout", key="k")
        
        assert PersistenceAdapter(store).load("emp_001") is None


class TestHistoryPersistence:
    """Tests for saving and loading attempt histories."""
    
    def test_history_round_trip_sorted(self, adapter):
        """Test histories load back ordered oldest first."""
        records = [attempt(10), attempt(0), attempt(5)]
        adapter.save_history("emp_001", records)
        
        loaded = adapter.load_history("emp_001")
        
        assert [r.timestamp for r in loaded] == sorted(r.timestamp for r in records)
        assert loaded[0].risk_score == 65
    
    def test_corrupt_history_discarded(self, adapter, kv):
        """Test corrupt history reads as empty."""
        kv.set("lockout_attempts_emp_001", b"[{]")
        
        assert adapter.load_history("emp_001") == []
        assert kv.get("lockout_attempts_emp_001") is None
    
    def test_known_principals(self, adapter):
        """Test principals are discovered from both key families."""
        adapter.save("emp_001", locked_status("emp_001"))
        adapter.save_history("emp_002", [attempt(0, "emp_002")])
        
        assert adapter.known_principals() == ["emp_001", "emp_002"]
    
    def test_forget(self, adapter, kv):
        """Test forget removes both keys."""
        adapter.save("emp_001", locked_status())
        adapter.save_history("emp_001", [attempt(0)])
        
        adapter.forget("emp_001")
        
        assert kv.keys() == []
