"""Unit tests for the attempt store."""

from datetime import timedelta

import pytest

from pin_lockout.attempts.store import AttemptStore
from pin_lockout.core.types import AuthMethod
from pin_lockout.persistence.adapter import PersistenceAdapter
from pin_lockout.persistence.kv_store import InMemoryKeyValueStore
from pin_lockout.schemas import AttemptContext

from fixtures.lockout import START_TIME


@pytest.fixture
def adapter():
    return PersistenceAdapter(InMemoryKeyValueStore())


@pytest.fixture
def store(adapter):
    return AttemptStore(adapter)


def record_at(store, offset_seconds, success=False, principal_id="emp_001", **kwargs):
    return store.record(
        principal_id,
        kwargs.pop("device_id", "pos_01"),
        kwargs.pop("source_address", "10.0.0.5"),
        success,
        timestamp=START_TIME + timedelta(seconds=offset_seconds),
        **kwargs,
    )


class TestRecord:
    """Tests for appending attempts."""
    
    def test_record_returns_immutable_attempt(self, store):
        """Test recorded attempts carry every field and an id."""
        attempt = record_at(
            store, 0,
            method=AuthMethod.BIOMETRIC,
            context=AttemptContext(tenant_id="rest_9"),
            error_code="BAD_PIN",
            risk_score=40,
        )
        
        assert attempt.id.startswith("att_")
        assert attempt.method == AuthMethod.BIOMETRIC
        assert attempt.context.tenant_id == "rest_9"
        assert attempt.error_code == "BAD_PIN"
        assert attempt.risk_score == 40
        with pytest.raises(Exception):
            attempt.success = True
    
    def test_history_is_ordered(self, store):
        """Test history is returned oldest first."""
        first = record_at(store, 0)
        second = record_at(store, 10)
        
        assert [a.id for a in store.recent_attempts("emp_001")] == [first.id, second.id]
    
    def test_history_trimmed_to_24_hours(self, store):
        """Test appending drops attempts older than 24h."""
        record_at(store, 0)
        record_at(store, 60)
        latest = record_at(store, 24 * 3600 + 30)
        
        history = store.recent_attempts("emp_001")
        assert len(history) == 2
        assert history[-1].id == latest.id
    
    def test_history_mirrored_to_persistence(self, store, adapter):
        """Test every append saves the history."""
        record_at(store, 0)
        record_at(store, 5)
        
        assert len(adapter.load_history("emp_001")) == 2
    
    def test_principals_are_isolated(self, store):
        """Test histories do not mix between principals."""
        record_at(store, 0, principal_id="emp_001")
        record_at(store, 0, principal_id="emp_002")
        
        assert len(store.recent_attempts("emp_001")) == 1
        assert sorted(store.principals()) == ["emp_001", "emp_002"]


class TestQueries:
    """Tests for windowed reads, pruning and snapshots."""
    
    def test_recent_attempts_window(self, store):
        """Test the window is relative to the given instant."""
        record_at(store, 0)
        record_at(store, 1800)
        record_at(store, 3500)
        
        now = START_TIME + timedelta(seconds=3600)
        recent = store.recent_attempts("emp_001", timedelta(minutes=30), now=now)
        
        assert len(recent) == 1
    
    def test_unknown_principal_has_no_history(self, store):
        """Test an unseen principal returns an empty list."""
        assert store.recent_attempts("nobody") == []
    
    def test_prune(self, store, adapter):
        """Test prune removes attempts at or before the cutoff."""
        record_at(store, 0)
        record_at(store, 100)
        
        removed = store.prune("emp_001", START_TIME)
        
        assert removed == 1
        assert len(store.recent_attempts("emp_001")) == 1
        assert len(adapter.load_history("emp_001")) == 1
    
    def test_replace_history_sorts(self, store):
        """Test restored history is ordered by timestamp."""
        late = record_at(store, 50, principal_id="src")
        early = record_at(store, 10, principal_id="src")
        
        store.replace_history("emp_009", [late, early])
        
        assert [a.id for a in store.recent_attempts("emp_009")] == [early.id, late.id]
    
    def test_all_attempts_since(self, store):
        """Test snapshot across principals honours the cutoff."""
        record_at(store, 0, principal_id="emp_001")
        record_at(store, 100, principal_id="emp_002")
        record_at(store, 200, principal_id="emp_003")
        
        attempts = store.all_attempts(since=START_TIME + timedelta(seconds=50))
        
        assert {a.principal_id for a in attempts} == {"emp_002", "emp_003"}
    
    def test_forget(self, store):
        """Test forget drops a principal's in-memory history."""
        record_at(store, 0)
        store.forget("emp_001")
        
        assert store.recent_attempts("emp_001") == []
    
    def test_works_without_persistence(self):
        """Test the store runs memory-only."""
        store = AttemptStore()
        record_at(store, 0)
        
        assert len(store.recent_attempts("emp_001")) == 1
