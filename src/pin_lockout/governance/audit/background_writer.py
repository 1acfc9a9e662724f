"""Background Audit Writer - audit appends off the decision path."""

from pin_lockout.common.background import BackgroundWorker
from pin_lockout.common.constants import AuditConstants
from pin_lockout.governance.audit.store import AuditStore
from pin_lockout.governance.schemas import AuditEvent


class BackgroundAuditWriter(BackgroundWorker):
    """Queues audit events and appends them to a store on a daemon thread.
    
    Hash chaining happens in the store at write time, so the event returned
    by append_event carries no hash fields yet.
    """
    
    def __init__(
        self,
        store: AuditStore,
        max_queue_size: int = AuditConstants.QUEUE_SIZE,
        flush_timeout: float = AuditConstants.FLUSH_TIMEOUT_SECONDS,
        sync_fallback: bool = True,
    ):
        self.store = store
        super().__init__(
            "LockoutAuditWriter",
            max_queue_size=max_queue_size,
            flush_timeout=flush_timeout,
            sync_fallback=sync_fallback,
            get_timeout=AuditConstants.QUEUE_GET_TIMEOUT,
        )
    
    def _handle(self, event: AuditEvent) -> None:
        self.store.append_event(event)
    
    def append_event(self, event: AuditEvent) -> AuditEvent:
        self.submit(event)
        return event
