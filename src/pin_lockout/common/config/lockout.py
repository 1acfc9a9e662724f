"""Lockout policy configuration.

LockoutConfig is loaded once at startup from YAML plus environment
overrides and is immutable for the life of the process.
"""

import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from pin_lockout.common.exceptions import ConfigurationError


DEFAULT_CONFIG_FILE = (
    Path(__file__).parent.parent.parent.parent.parent / "config" / "lockout_rules.yaml"
)


class LockoutConfig(BaseModel):
    """Lockout policy for PIN authentication."""
    
    model_config = ConfigDict(frozen=True, extra="forbid")
    
    max_attempts: int = Field(
        default=5,
        ge=3,
        le=10,
        description="Failed attempts allowed in the window before lockout"
    )
    base_lockout_minutes: float = Field(
        default=15,
        ge=5,
        le=60,
        description="Duration of a first, low-risk lockout"
    )
    max_lockout_minutes: float = Field(
        default=24 * 60,
        gt=0,
        description="Upper bound for any computed lockout"
    )
    progressive_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Growth factor applied per prior lockout episode"
    )
    reset_period_minutes: float = Field(
        default=60,
        gt=0,
        description="Failures older than this no longer count"
    )
    emergency_unlock_codes: Tuple[str, ...] = Field(
        default=(),
        description="Pre-shared emergency unlock secrets"
    )
    emergency_codes_single_use: bool = Field(
        default=False,
        description="Consume an emergency code after one successful unlock"
    )
    manager_override_required: bool = Field(
        default=True,
        description="Whether risky lockouts require a manager to unlock"
    )
    timezone: Optional[str] = Field(
        default=None,
        description="IANA zone for off-hours detection; host local time if unset"
    )
    
    @field_validator("emergency_unlock_codes")
    @classmethod
    def _codes_not_blank(cls, codes: Tuple[str, ...]) -> Tuple[str, ...]:
        for code in codes:
            if not code or not code.strip():
                raise ValueError("emergency unlock codes must not be blank")
        return codes
    
    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone {value!r}")
        return value
    
    @model_validator(mode="after")
    def _max_not_below_base(self) -> "LockoutConfig":
        if self.max_lockout_minutes < self.base_lockout_minutes:
            raise ValueError("max_lockout_minutes must be >= base_lockout_minutes")
        return self
    
    @property
    def base_lockout_duration(self) -> timedelta:
        return timedelta(minutes=self.base_lockout_minutes)
    
    @property
    def max_lockout_duration(self) -> timedelta:
        return timedelta(minutes=self.max_lockout_minutes)
    
    @property
    def reset_period(self) -> timedelta:
        return timedelta(minutes=self.reset_period_minutes)
    
    @property
    def tzinfo(self) -> Optional[ZoneInfo]:
        return ZoneInfo(self.timezone) if self.timezone else None


_ENV_OVERRIDES = {
    "PIN_MAX_ATTEMPTS": "max_attempts",
    "PIN_LOCKOUT_DURATION_MINUTES": "base_lockout_minutes",
    "PIN_MAX_LOCKOUT_MINUTES": "max_lockout_minutes",
    "PIN_MANAGER_OVERRIDE_REQUIRED": "manager_override_required",
    "PIN_LOCKOUT_TIMEZONE": "timezone",
}


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(raw)
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is not None and value != "":
            merged[field_name] = value
    
    codes = os.environ.get("PIN_EMERGENCY_UNLOCK_CODES")
    if codes:
        merged["emergency_unlock_codes"] = [
            code.strip() for code in codes.split(",") if code.strip()
        ]
    return merged


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Malformed lockout config: {path}", details={"error": str(e)}
        )
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read lockout config: {path}", details={"error": str(e)}
        )
    
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Lockout config must be a mapping: {path}")
    
    # Allow the settings to live under a top-level "lockout" key
    return raw.get("lockout", raw)


def load_lockout_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> LockoutConfig:
    """Load and validate the lockout policy.
    
    Load order (later wins):
    1. Model defaults
    2. YAML file (explicit path, or config/lockout_rules.yaml if present)
    3. Environment variables (PIN_MAX_ATTEMPTS, PIN_LOCKOUT_DURATION_MINUTES, ...)
    4. Explicit overrides
    
    Args:
        path: YAML file. Must exist when given explicitly.
        overrides: Field values applied last.
        
    Returns:
        Validated, frozen LockoutConfig
        
    Raises:
        ConfigurationError: If the file is missing, malformed or invalid
    """
    raw: Dict[str, Any] = {}
    
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(f"Lockout config file not found: {config_path}")
        raw = _read_yaml(config_path)
    elif DEFAULT_CONFIG_FILE.exists():
        raw = _read_yaml(DEFAULT_CONFIG_FILE)
    
    raw = _apply_env_overrides(raw)
    if overrides:
        raw.update(overrides)
    
    try:
        return LockoutConfig.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigurationError(
            "Invalid lockout configuration",
            details={"errors": e.errors(include_url=False, include_input=False)},
        )
