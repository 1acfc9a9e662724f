"""Boundary validation for identifiers handed to the engine.

Malformed input is rejected here, before any engine state is touched.
"""

import re
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from pin_lockout.common.constants import ValidationConstants
from pin_lockout.common.exceptions import ValidationError
from pin_lockout.core.types import AuthMethod
from pin_lockout.schemas import AttemptContext

_IDENTIFIER_RE = re.compile(ValidationConstants.IDENTIFIER_PATTERN)


def validate_identifier(value: Any, field_name: str) -> str:
    """Validate a principal, device or manager identifier.
    
    Raises:
        ValidationError: If the identifier is empty, too long or has
            characters outside [A-Za-z0-9_.:@-]
    """
    if not isinstance(value, str) or not value:
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            details={"field": field_name},
        )
    if len(value) > ValidationConstants.MAX_IDENTIFIER_LENGTH:
        raise ValidationError(
            f"{field_name} exceeds {ValidationConstants.MAX_IDENTIFIER_LENGTH} characters",
            details={"field": field_name, "length": len(value)},
        )
    if not _IDENTIFIER_RE.match(value):
        raise ValidationError(
            f"{field_name} contains invalid characters",
            details={"field": field_name},
        )
    return value


def validate_source_address(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            "source_address must be a non-empty string",
            details={"field": "source_address"},
        )
    if len(value) > ValidationConstants.MAX_SOURCE_ADDRESS_LENGTH:
        raise ValidationError(
            "source_address is too long",
            details={"field": "source_address", "length": len(value)},
        )
    return value.strip()


def validate_method(method: Union[AuthMethod, str]) -> AuthMethod:
    try:
        return AuthMethod(method)
    except ValueError:
        raise ValidationError(
            f"Unknown authentication method: {method!r}",
            details={"field": "method", "allowed": [m.value for m in AuthMethod]},
        )


def validate_context(
    metadata: Optional[Union[AttemptContext, Dict[str, Any]]],
) -> AttemptContext:
    """Build an AttemptContext from caller metadata.
    
    Unknown keys are ignored here; error_code goes through validate_error_code.
    """
    if metadata is None:
        return AttemptContext()
    if isinstance(metadata, AttemptContext):
        return metadata
    if not isinstance(metadata, dict):
        raise ValidationError(
            f"metadata must be a mapping, got {type(metadata).__name__}",
            details={"field": "metadata"},
        )
    
    known = {k: metadata[k] for k in ("user_agent", "tenant_id", "location") if k in metadata}
    try:
        return AttemptContext.model_validate(known)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid attempt metadata",
            details={"errors": e.errors(include_url=False, include_input=False)},
        )


def validate_error_code(
    metadata: Optional[Union[AttemptContext, Dict[str, Any]]],
) -> Optional[str]:
    """Extract the optional error_code from caller metadata.
    
    Raises:
        ValidationError: If error_code is not a string or is too long
    """
    if not isinstance(metadata, dict) or metadata.get("error_code") is None:
        return None
    error_code = metadata["error_code"]
    if not isinstance(error_code, str):
        raise ValidationError(
            f"error_code must be a string, got {type(error_code).__name__}",
            details={"field": "error_code"},
        )
    if len(error_code) > ValidationConstants.MAX_ERROR_CODE_LENGTH:
        raise ValidationError(
            f"error_code exceeds {ValidationConstants.MAX_ERROR_CODE_LENGTH} characters",
            details={"field": "error_code", "length": len(error_code)},
        )
    return error_code
