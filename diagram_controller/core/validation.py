"""
Request field validation - resource-agnostic checks on JSON bodies.

Every check takes the parsed body (a string-keyed dict) and returns None when
the body passes, or a human-readable error string naming the offending field.
Callers run an ordered list of checks and report the first failure, so cheap
structural checks (unknown fields, types) go before semantic ones (enum
membership, cross-field consistency).
"""

from typing import Any, Iterable, Optional

from .errors import ValidationError
from .models import FieldType


def js_type_name(value: Any) -> str:
    """Name a JSON value's type the way API clients see it."""
    if value is None:
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_unknown_fields(body: dict, allowed: Iterable[str]) -> Optional[str]:
    """Reject any body key not in the allow-list."""
    allowed = list(allowed)
    unknown = [key for key in body if key not in allowed]
    if unknown:
        return f"Unknown field(s): {', '.join(unknown)}. Allowed fields: {', '.join(allowed)}"
    return None


def check_field_type(body: dict, field: str, expected: FieldType | str) -> Optional[str]:
    """Check one field's JSON type. Absent fields always pass."""
    if field not in body:
        return None
    expected = FieldType(expected)
    value = body[field]

    if expected == FieldType.STRING and not isinstance(value, str):
        return f'Field "{field}" must be a string, got {js_type_name(value)}'
    if expected == FieldType.BOOLEAN and not isinstance(value, bool):
        return f'Field "{field}" must be a boolean, got {js_type_name(value)}'
    if expected == FieldType.NUMBER and not _is_number(value):
        return f'Field "{field}" must be a number, got {js_type_name(value)}'
    if expected == FieldType.OBJECT and not isinstance(value, dict):
        return f'Field "{field}" must be an object'
    if expected in (FieldType.NULLABLE_STRING, FieldType.REFERENCE):
        if value is not None and not isinstance(value, str):
            return f'Field "{field}" must be a string or null, got {js_type_name(value)}'
    return None


def check_non_empty_string(body: dict, field: str) -> Optional[str]:
    if field not in body:
        return None
    value = body[field]
    if not isinstance(value, str) or value.strip() == "":
        return f'Field "{field}" must be a non-empty string'
    return None


def check_enum(body: dict, field: str, choices: Iterable[Any]) -> Optional[str]:
    """Check closed-set membership. Absent fields pass."""
    if field not in body:
        return None
    choices = list(choices)
    if body[field] not in choices:
        allowed = ", ".join(str(c) for c in choices)
        return f'Invalid value "{body[field]}" for field "{field}". Allowed: {allowed}'
    return None


def check_required(body: dict, field: str) -> Optional[str]:
    if body.get(field) in (None, ""):
        return f'Field "{field}" is required'
    return None


def check_not_empty(body: dict, allowed: Iterable[str]) -> Optional[str]:
    """Update bodies must change at least one field."""
    if not body:
        return f"At least one field must be provided. Allowed fields: {', '.join(allowed)}"
    return None


def first_error(*checks: Optional[str]) -> Optional[str]:
    """Return the first failing check, or None if all passed."""
    for error in checks:
        if error:
            return error
    return None


def require_valid(*checks: Optional[str]) -> None:
    """Raise ValidationError with the first failing check."""
    error = first_error(*checks)
    if error:
        raise ValidationError(error)
