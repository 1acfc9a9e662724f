"""Background Store Writer - non-blocking persistence writes."""

import threading
from typing import Dict, List, Optional

from pin_lockout.common.background import BackgroundWorker
from pin_lockout.common.constants import PersistenceConstants
from pin_lockout.persistence.kv_store import KeyValueStore

# Pending-write marker for a queued delete
_DELETED = object()


class _WriteOp:
    __slots__ = ("key", "value")
    
    def __init__(self, key: str, value: object):
        self.key = key
        self.value = value
    
    def __repr__(self) -> str:
        action = "delete" if self.value is _DELETED else "set"
        return f"<{action} {self.key}>"


class BackgroundStoreWriter(BackgroundWorker, KeyValueStore):
    """KeyValueStore wrapper that applies set/delete on a background thread.
    
    Reads see queued writes immediately, so callers get read-your-writes
    within the process even before the backend has caught up.
    """
    
    def __init__(
        self,
        store: KeyValueStore,
        max_queue_size: int = PersistenceConstants.QUEUE_SIZE,
        flush_timeout: float = PersistenceConstants.FLUSH_TIMEOUT_SECONDS,
        sync_fallback: bool = True,
    ):
        self.store = store
        # key -> newest queued op not yet applied
        self._pending: Dict[str, _WriteOp] = {}
        self._pending_lock = threading.Lock()
        super().__init__(
            "LockoutStoreWriter",
            max_queue_size=max_queue_size,
            flush_timeout=flush_timeout,
            sync_fallback=sync_fallback,
            get_timeout=PersistenceConstants.QUEUE_GET_TIMEOUT,
        )
    
    def _forget_pending(self, op: _WriteOp) -> None:
        with self._pending_lock:
            if self._pending.get(op.key) is op:
                del self._pending[op.key]
    
    def _handle(self, op: _WriteOp) -> None:
        try:
            if op.value is _DELETED:
                self.store.delete(op.key)
            else:
                self.store.set(op.key, op.value)  # type: ignore[arg-type]
        finally:
            self._forget_pending(op)
    
    def _on_drop(self, op: _WriteOp) -> None:
        self._forget_pending(op)
    
    def _enqueue(self, op: _WriteOp) -> None:
        if self.is_running:
            with self._pending_lock:
                self._pending[op.key] = op
        self.submit(op)
    
    def get(self, key: str) -> Optional[bytes]:
        with self._pending_lock:
            op = self._pending.get(key)
        if op is not None:
            return None if op.value is _DELETED else op.value  # type: ignore[return-value]
        return self.store.get(key)
    
    def set(self, key: str, value: bytes) -> None:
        self._enqueue(_WriteOp(key, bytes(value)))
    
    def delete(self, key: str) -> None:
        self._enqueue(_WriteOp(key, _DELETED))
    
    def keys(self, prefix: str = "") -> List[str]:
        found = set(self.store.keys(prefix))
        with self._pending_lock:
            pending = [(k, op.value) for k, op in self._pending.items() if k.startswith(prefix)]
        for key, value in pending:
            if value is _DELETED:
                found.discard(key)
            else:
                found.add(key)
        return sorted(found)
