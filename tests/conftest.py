"""Shared fixtures for lockout engine tests."""

import pytest

from pin_lockout.common.config.lockout import LockoutConfig
from pin_lockout.governance.audit.sink import AuditSink
from pin_lockout.governance.audit.store import InMemoryAuditStore
from pin_lockout.persistence.adapter import PersistenceAdapter
from pin_lockout.persistence.kv_store import InMemoryKeyValueStore
from pin_lockout.service import LockoutService

from fixtures.lockout import EMERGENCY_CODE, ManualClock, ManualTimerScheduler



@pytest.fixture
def clock():
    """Clock frozen at a weekday noon (UTC)."""
    return ManualClock()


@pytest.fixture
def scheduler():
    """Timer scheduler that never fires on its own."""
    return ManualTimerScheduler()


@pytest.fixture
def lockout_config():
    """Default policy with UTC off-hours and one emergency code."""
    return LockoutConfig(timezone="UTC", emergency_unlock_codes=(EMERGENCY_CODE,))


@pytest.fixture
def audit_store():
    return InMemoryAuditStore()


@pytest.fixture
def audit_sink(audit_store):
    return AuditSink(store=audit_store)


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def persistence(kv_store):
    return PersistenceAdapter(kv_store)


@pytest.fixture
def make_service(lockout_config, audit_sink, persistence, scheduler, clock):
    """Build a LockoutService over the shared fixtures, optionally overriding parts."""
    def _make(**overrides):
        kwargs = dict(
            config=lockout_config,
            audit=audit_sink,
            persistence=persistence,
            scheduler=scheduler,
            clock=clock,
        )
        kwargs.update(overrides)
        return LockoutService(**kwargs)
    return _make


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def fail_attempts(clock):
    """Record n failures `gap` seconds apart; returns the last status."""
    def _fail(service, principal_id="emp_001", n=5, gap=2, device_id="pos_01",
              source_address="10.0.0.5"):
        status = None
        for i in range(n):
            if i:
                clock.advance(seconds=gap)
            status = service.record_attempt(
                principal_id, device_id, source_address, success=False
            )
        return status
    return _fail
