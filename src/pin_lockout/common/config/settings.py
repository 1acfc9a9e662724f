"""Process settings - where state, audit and logs go.

Provides environment-aware settings with sensible defaults.
All settings are loaded from environment variables with fallbacks.
Lockout policy values live in LockoutConfig, not here.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Type, TypeVar

from pin_lockout.common.constants import HistoryConstants
from pin_lockout.common.exceptions import ConfigurationError

E = TypeVar("E", bound=Enum)


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StateBackend(str, Enum):
    """Key-value backends for lockout state and history."""
    MEMORY = "memory"
    FILE = "file"
    DYNAMODB = "dynamodb"


class AuditStorageType(str, Enum):
    """Audit storage backend types."""
    MEMORY = "memory"
    FILE = "file"
    LOG = "log"


def _env_enum(name: str, enum_cls: Type[E], default: str) -> E:
    raw = os.getenv(name, default)
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = [member.value for member in enum_cls]
        raise ConfigurationError(
            f"{name} must be one of {allowed}, got {raw!r}",
            details={"variable": name, "value": raw},
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}",
            details={"variable": name, "value": raw},
        )


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Process settings for the lockout engine.
    
    All settings can be overridden via environment variables prefixed with
    PIN_LOCKOUT_.
    
    Example:
        PIN_LOCKOUT_ENVIRONMENT=production
        PIN_LOCKOUT_STATE_BACKEND=dynamodb
        PIN_LOCKOUT_DYNAMODB_TABLE=lockout-state
    """
    
    # Core settings
    environment: Environment = field(
        default_factory=lambda: _env_enum(
            "PIN_LOCKOUT_ENVIRONMENT", Environment, "development"
        )
    )
    debug: bool = field(
        default_factory=lambda: _env_bool("PIN_LOCKOUT_DEBUG")
    )
    log_level: LogLevel = field(
        default_factory=lambda: _env_enum("PIN_LOCKOUT_LOG_LEVEL", LogLevel, "INFO")
    )
    config_file: Optional[Path] = field(
        default_factory=lambda: (
            Path(os.environ["PIN_LOCKOUT_CONFIG_FILE"])
            if os.getenv("PIN_LOCKOUT_CONFIG_FILE") else None
        )
    )
    
    # State persistence
    state_backend: StateBackend = field(
        default_factory=lambda: _env_enum(
            "PIN_LOCKOUT_STATE_BACKEND", StateBackend, "memory"
        )
    )
    state_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("PIN_LOCKOUT_STATE_DIR", "./data/lockout")
        )
    )
    dynamodb_table: Optional[str] = field(
        default_factory=lambda: os.getenv("PIN_LOCKOUT_DYNAMODB_TABLE")
    )
    aws_region: str = field(
        default_factory=lambda: os.getenv("AWS_DEFAULT_REGION", "us-east-1")
    )
    async_persistence: bool = field(
        default_factory=lambda: _env_bool("PIN_LOCKOUT_ASYNC_PERSISTENCE", "true")
    )
    
    # Audit settings
    audit_storage_type: AuditStorageType = field(
        default_factory=lambda: _env_enum(
            "PIN_LOCKOUT_AUDIT_STORAGE_TYPE", AuditStorageType, "log"
        )
    )
    audit_log_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("PIN_LOCKOUT_AUDIT_LOG_DIR", "./logs/audit")
        )
    )
    use_background_audit: bool = field(
        default_factory=lambda: _env_bool("PIN_LOCKOUT_BACKGROUND_AUDIT")
    )
    
    # Maintenance
    cleanup_interval_seconds: int = field(
        default_factory=lambda: _env_int(
            "PIN_LOCKOUT_CLEANUP_INTERVAL_SECONDS",
            HistoryConstants.CLEANUP_INTERVAL_SECONDS,
        )
    )
    
    def __post_init__(self):
        """Validate settings after initialization."""
        if self.state_backend == StateBackend.DYNAMODB and not self.dynamodb_table:
            raise ConfigurationError(
                "PIN_LOCKOUT_DYNAMODB_TABLE must be set when using the dynamodb state backend"
            )
        
        if self.cleanup_interval_seconds <= 0:
            raise ConfigurationError(
                "PIN_LOCKOUT_CLEANUP_INTERVAL_SECONDS must be positive",
                details={"value": self.cleanup_interval_seconds},
            )
        
        # Warn about debug in production
        if self.environment == Environment.PRODUCTION and self.debug:
            import warnings
            warnings.warn(
                "Debug mode is enabled in production environment",
                RuntimeWarning,
                stacklevel=2
            )
    
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION


# Singleton instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings instance.
    
    Returns:
        Settings: The settings singleton.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton (useful for testing)."""
    global _settings
    _settings = None
