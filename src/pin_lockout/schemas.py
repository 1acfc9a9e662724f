"""Lockout schemas - attempts, status and statistics."""

from datetime import datetime, timezone
from typing import Dict, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field

from pin_lockout.core.types import AuthMethod, LockoutState, RiskLevel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AttemptContext(BaseModel):
    """Client context captured with an attempt."""
    
    model_config = ConfigDict(frozen=True)
    
    user_agent: str = Field(default="", description="Client user agent")
    tenant_id: str = Field(default="", description="Restaurant / tenant identifier")
    location: Optional[str] = Field(default=None, description="Terminal location")


class AttemptRecord(BaseModel):
    """A single authentication attempt.
    
    Immutable. Created by the attempt store on every authentication call.
    """
    
    model_config = ConfigDict(frozen=True)
    
    id: str = Field(
        default_factory=lambda: f"att_{uuid4().hex}",
        description="Unique attempt identifier"
    )
    principal_id: str = Field(..., description="Principal the attempt was for")
    device_id: str = Field(..., description="Terminal or device identifier")
    source_address: str = Field(..., description="Client network address")
    timestamp: datetime = Field(default_factory=utc_now)
    success: bool = Field(..., description="Whether the credential was accepted")
    method: AuthMethod = Field(default=AuthMethod.PIN)
    error_code: Optional[str] = Field(default=None)
    risk_score: int = Field(default=0, ge=0, le=100)
    context: AttemptContext = Field(default_factory=AttemptContext)


class RiskFactors(BaseModel):
    """Which behavioural signals fired for an attempt."""
    
    rapid_attempts: bool = False
    multiple_devices: bool = False
    multiple_addresses: bool = False
    off_hours: bool = False
    pattern_detected: bool = False
    score: int = Field(default=0, ge=0, le=100)
    
    def fired(self) -> list[str]:
        """Names of the signals that contributed to the score."""
        names = (
            "rapid_attempts",
            "multiple_devices",
            "multiple_addresses",
            "off_hours",
            "pattern_detected",
        )
        return [name for name in names if getattr(self, name)]


class LockoutStatus(BaseModel):
    """Current lockout decision state for one principal.
    
    One per principal. Re-derived on every attempt rather than appended.
    """
    
    principal_id: str
    state: LockoutState = LockoutState.ACTIVE
    attempts_remaining: int = Field(..., ge=0)
    total_attempts_in_window: int = Field(default=0, ge=0)
    lockout_expires_at: Optional[datetime] = None
    lockout_duration: Optional[float] = Field(
        default=None,
        description="Lockout duration in seconds"
    )
    lockout_number: Optional[int] = Field(
        default=None,
        description="Which progressive lockout episode this is"
    )
    requires_manager_override: bool = False
    emergency_unlock_available: bool = False
    risk_level: RiskLevel = RiskLevel.LOW
    last_attempt: Optional[AttemptRecord] = None
    failure_window_started_at: Optional[datetime] = Field(
        default=None,
        description="Failures before this instant no longer count"
    )
    state_reason: Optional[str] = Field(
        default=None,
        description="Reason recorded with an administrative lock"
    )
    updated_at: datetime = Field(default_factory=utc_now)
    
    @computed_field  # type: ignore[misc]
    @property
    def is_locked(self) -> bool:
        return self.state != LockoutState.ACTIVE
    
    @computed_field  # type: ignore[misc]
    @property
    def can_unlock(self) -> bool:
        return self.state != LockoutState.PERMANENTLY_LOCKED
    
    def to_json(self) -> str:
        return self.model_dump_json()
    
    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "LockoutStatus":
        return cls.model_validate_json(data)


class LockoutStatistics(BaseModel):
    """Aggregate view over recent attempts and current statuses."""
    
    total_attempts: int = 0
    failed_attempts: int = 0
    successful_attempts: int = 0
    lockout_events: int = 0
    average_risk_score: float = 0.0
    by_risk_level: Dict[RiskLevel, int] = Field(
        default_factory=lambda: {level: 0 for level in RiskLevel}
    )
