"""Tests for expiry timers and per-principal locks."""

import threading

from pin_lockout.core.types import LockoutState
from pin_lockout.lockout.locks import PrincipalLockRegistry
from pin_lockout.lockout.timers import ThreadingTimerScheduler


class TestThreadingTimerScheduler:
    """Tests for the threading.Timer backed scheduler."""
    
    def test_callback_fires(self):
        """Test a scheduled callback runs and clears its entry."""
        scheduler = ThreadingTimerScheduler()
        fired = threading.Event()
        
        scheduler.schedule("emp_001", 0.01, fired.set)
        
        assert fired.wait(timeout=2.0)
        assert not scheduler.is_pending("emp_001")
    
    def test_cancel(self):
        """Test a cancelled timer never fires."""
        scheduler = ThreadingTimerScheduler()
        fired = threading.Event()
        
        scheduler.schedule("emp_001", 0.5, fired.set)
        
        assert scheduler.cancel("emp_001") is True
        assert scheduler.cancel("emp_001") is False
        assert not fired.wait(timeout=0.8)
    
    def test_reschedule_replaces_previous(self):
        """Test only the latest timer per principal stays pending."""
        scheduler = ThreadingTimerScheduler()
        first = threading.Event()
        second = threading.Event()
        
        scheduler.schedule("emp_001", 0.3, first.set)
        scheduler.schedule("emp_001", 0.01, second.set)
        
        assert second.wait(timeout=2.0)
        assert not first.wait(timeout=0.5)
    
    def test_callback_exception_is_contained(self):
        """Test a failing callback does not break the scheduler."""
        scheduler = ThreadingTimerScheduler()
        failed = threading.Event()
        later = threading.Event()
        
        def boom():
            failed.set()
            raise RuntimeError("callback failed")
        
        scheduler.schedule("emp_001", 0.01, boom)
        assert failed.wait(timeout=2.0)
        
        scheduler.schedule("emp_002", 0.01, later.set)
        assert later.wait(timeout=2.0)
    
    def test_cancel_all(self):
        """Test cancel_all clears every pending timer."""
        scheduler = ThreadingTimerScheduler()
        for i in range(3):
            scheduler.schedule(f"emp_{i}", 5.0, lambda: None)
        
        assert len(scheduler) == 3
        scheduler.cancel_all()
        assert len(scheduler) == 0


class TestPrincipalLockRegistry:
    """Tests for the per-principal lock registry."""
    
    def test_same_principal_same_lock(self):
        """Test one lock object per principal."""
        registry = PrincipalLockRegistry()
        
        assert registry.get("emp_001") is registry.get("emp_001")
        assert registry.get("emp_001") is not registry.get("emp_002")
        assert len(registry) == 2
    
    def test_hold_is_reentrant(self):
        """Test nested holds on one principal do not deadlock."""
        registry = PrincipalLockRegistry()
        
        with registry.hold("emp_001"):
            with registry.hold("emp_001"):
                entered = True
        
        assert entered
    
    def test_other_principals_not_blocked(self):
        """Test holding one principal's lock does not block another."""
        registry = PrincipalLockRegistry()
        acquired = threading.Event()
        
        def other():
            with registry.hold("emp_002"):
                acquired.set()
        
        with registry.hold("emp_001"):
            thread = threading.Thread(target=other)
            thread.start()
            assert acquired.wait(timeout=2.0)
        thread.join()


class TestRealTimerExpiry:
    """Tests for expiry through real timers."""
    
    def test_expired_lock_cleared_by_timer_thread(self, make_service, fail_attempts, clock):
        """Test the timer callback unlocks from another thread once expiry has passed."""
        scheduler = ThreadingTimerScheduler()
        service = make_service(scheduler=scheduler)
        done = threading.Event()
        
        locked = fail_attempts(service, n=5, gap=2)
        assert scheduler.is_pending("emp_001")
        clock.advance(minutes=30)
        
        def fire():
            service.state_machine._on_timer_fired("emp_001", locked.lockout_expires_at)
            done.set()
        
        scheduler.schedule("emp_001", 0.01, fire)
        
        assert done.wait(timeout=2.0)
        assert service.state_machine.snapshot_of("emp_001").state == LockoutState.ACTIVE
        service.shutdown()
