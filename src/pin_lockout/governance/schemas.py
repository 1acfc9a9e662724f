"""Governance schemas - audit events and override records."""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from pin_lockout.common.constants import AuditConstants
from pin_lockout.schemas import utc_now


class AuditEventType(str, Enum):
    """Types of audit events."""
    AUTH_ATTEMPT = "auth_attempt"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_UNLOCKED = "account_unlocked"
    EMERGENCY_UNLOCK = "emergency_unlock"
    MANAGER_OVERRIDE = "manager_override"
    OVERRIDE_DENIED = "override_denied"
    SECURITY_ALERT = "security_alert"
    ADMINISTRATIVE_LOCK = "administrative_lock"
    EMERGENCY_CODES_CHANGED = "emergency_codes_changed"
    SYSTEM_EVENT = "system_event"


class OverrideType(str, Enum):
    """Privileged unlock paths."""
    EMERGENCY = "emergency"
    MANAGER = "manager"


class AuditEvent(BaseModel):
    """A single immutable audit event.
    """
    event_id: str = Field(
        default_factory=lambda: f"aud_{uuid4().hex[:12]}",
        description="Unique event identifier"
    )
    event_type: AuditEventType = Field(
        ...,
        description="Type of event being logged"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event was created"
    )
    principal_id: Optional[str] = Field(
        default=None,
        description="Principal the event concerns"
    )
    data: Dict[str, Any] = Field(
        default_factory=dict,
        description="Event payload"
    )
    source: str = Field(
        default=AuditConstants.SOURCE,
        description="Emitting subsystem"
    )
    
    # Integrity
    previous_hash: Optional[str] = Field(
        default=None,
        description="Hash of previous event (for chain integrity)"
    )
    entry_hash: Optional[str] = Field(
        default=None,
        description="Hash of this event"
    )
    
    def to_jsonl(self) -> str:
        """Serialize event to JSONL format."""
        return json.dumps(self.model_dump(mode="json"), default=str)
    
    @classmethod
    def from_jsonl(cls, line: str) -> "AuditEvent":
        """Deserialize event from JSONL format."""
        return cls.model_validate(json.loads(line))


class OverrideRecord(BaseModel):
    """Record of a privileged unlock, kept in the audit payload.
    
    Who unlocked, how, and why. Justification is mandatory for managers.
    """
    override_id: str = Field(
        default_factory=lambda: f"ovr_{uuid4().hex[:12]}",
        description="Unique override identifier"
    )
    timestamp: datetime = Field(default_factory=utc_now)
    override_type: OverrideType
    principal_id: str
    actor_id: str = Field(..., description="Manager or operator who unlocked")
    justification: Optional[str] = None
    previous_state: str
    previous_risk_level: str
