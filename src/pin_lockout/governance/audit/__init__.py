"""Audit module - structured, append-only audit trail for the lockout engine.

Components:
- AuditSink: Builds one event per attempt, transition and override
- AuditStore: Abstract base class for storage backends
- FileAuditStore: Daily JSONL files with hash chain integrity
- LoggingAuditStore: Hands events to the structured log pipeline
- InMemoryAuditStore: Development and test backend
- BackgroundAuditWriter: Async writer so decisions never wait on audit I/O
"""

from pin_lockout.governance.audit.background_writer import BackgroundAuditWriter
from pin_lockout.governance.audit.sink import AuditSink
from pin_lockout.governance.audit.store import (
    AuditStore,
    FileAuditStore,
    InMemoryAuditStore,
    LoggingAuditStore,
)

__all__ = [
    "AuditSink",
    "AuditStore",
    "FileAuditStore",
    "InMemoryAuditStore",
    "LoggingAuditStore",
    "BackgroundAuditWriter",
]
