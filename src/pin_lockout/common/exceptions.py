"""Custom exceptions for the PIN lockout engine.

Provides a hierarchy of exceptions for different error types.
All engine exceptions inherit from PinLockoutException.
"""

from typing import Any, Dict, Optional


class PinLockoutException(Exception):
    """Base exception for all lockout engine errors.
    
    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """
    
    def __init__(
        self,
        message: str,
        code: str = "LOCKOUT_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(PinLockoutException):
    """Raised when configuration is invalid or missing."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFIG_ERROR", details=details)


class ValidationError(PinLockoutException):
    """Raised when input validation fails at the engine boundary."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class PersistenceError(PinLockoutException):
    """Raised by a key-value backend when a read or write fails."""
    
    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        if key is not None:
            details["key"] = key
        super().__init__(message, code="PERSISTENCE_ERROR", details=details)


class AuditError(PinLockoutException):
    """Raised when audit logging fails."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="AUDIT_ERROR", details=details)


class AuditLogIntegrityError(AuditError):
    """Raised when audit log hash chain verification fails."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.code = "AUDIT_INTEGRITY_ERROR"
