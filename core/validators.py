"""
Input validation utilities for the complaint management system.

Each validator raises ``core.exceptions.ValidationError`` so the API layer
can map every bad input onto the same 422 notice.
"""
import enum
import uuid
from typing import Optional, Type, TypeVar

from core.exceptions import ValidationError
from database.models import AppRole, ComplaintCategory, ComplaintStatus

E = TypeVar("E", bound=enum.Enum)


def validate_uuid(uuid_string: str) -> bool:
    """
    Validate UUID format.

    Args:
        uuid_string: String to validate

    Returns:
        True if valid UUID format
    """
    try:
        uuid.UUID(uuid_string)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def require_text(value: Optional[str], field: str, max_length: Optional[int] = None) -> str:
    """
    Return ``value`` stripped, rejecting missing or whitespace-only input.

    Args:
        value: Raw input
        field: Field name used in the error message
        max_length: Optional upper bound on the stripped length

    Returns:
        Stripped text
    """
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text


def _parse_enum(enum_class: Type[E], value, field: str) -> E:
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_class)
        raise ValidationError(f"Invalid {field} '{value}'. Must be one of: {allowed}")


def parse_category(value) -> ComplaintCategory:
    """Parse a complaint category value."""
    return _parse_enum(ComplaintCategory, value, "category")


def parse_status(value) -> ComplaintStatus:
    """Parse a complaint status value."""
    return _parse_enum(ComplaintStatus, value, "status")


def parse_role(value) -> AppRole:
    """Parse a role value."""
    return _parse_enum(AppRole, value, "role")
