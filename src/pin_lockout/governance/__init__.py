"""Governance - audit trail and privileged unlocks.

Components:
- AuditSink: Structured, append-only audit events
- OverrideAuthority: Emergency code and manager override unlocks
- EmergencyCodeSet: Hashed, rotatable emergency codes
- Schemas: Audit events and override records
"""

from pin_lockout.governance.audit import (
    AuditSink,
    AuditStore,
    FileAuditStore,
    InMemoryAuditStore,
    LoggingAuditStore,
)
from pin_lockout.governance.override import (
    EmergencyCodeSet,
    ManagerCredentialVerifier,
    OverrideAuthority,
)
from pin_lockout.governance.schemas import (
    AuditEvent,
    AuditEventType,
    OverrideRecord,
    OverrideType,
)

__all__ = [
    "AuditSink",
    "AuditStore",
    "FileAuditStore",
    "InMemoryAuditStore",
    "LoggingAuditStore",
    "EmergencyCodeSet",
    "ManagerCredentialVerifier",
    "OverrideAuthority",
    "AuditEvent",
    "AuditEventType",
    "OverrideRecord",
    "OverrideType",
]
