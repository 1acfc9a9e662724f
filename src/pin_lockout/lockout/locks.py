"""Per-principal mutual exclusion.

Every mutation of one principal's status or history runs under that
principal's lock. Different principals never contend with each other;
the registry lock only guards creation of new entries.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class PrincipalLockRegistry:
    """Hands out one re-entrant lock per principal id."""
    
    def __init__(self) -> None:
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()
    
    def get(self, principal_id: str) -> threading.RLock:
        lock = self._locks.get(principal_id)
        if lock is not None:
            return lock
        with self._registry_lock:
            return self._locks.setdefault(principal_id, threading.RLock())
    
    @contextmanager
    def hold(self, principal_id: str) -> Iterator[None]:
        lock = self.get(principal_id)
        with lock:
            yield
    
    def __len__(self) -> int:
        return len(self._locks)
