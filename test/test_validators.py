"""
Input validators shared by the services.
"""
import uuid

import pytest

from core.exceptions import ValidationError
from core.validators import validate_uuid, require_text, parse_category, parse_role
from database.models import AppRole, ComplaintCategory


def test_validate_uuid():
    assert validate_uuid(str(uuid.uuid4()))
    for value in ("no-such-id", "", None, "1234", "' OR 1=1 --"):
        assert not validate_uuid(value)


def test_require_text_strips_and_bounds_length():
    assert require_text("  Leaking tap  ", "title", max_length=11) == "Leaking tap"
    with pytest.raises(ValidationError):
        require_text("   ", "title")
    with pytest.raises(ValidationError):
        require_text(None, "title")
    with pytest.raises(ValidationError):
        require_text("x" * 12, "title", max_length=11)


def test_enum_parsers_accept_values_case_insensitively():
    assert parse_category(" Technical ") == ComplaintCategory.TECHNICAL
    assert parse_role(AppRole.STAFF) == AppRole.STAFF
    with pytest.raises(ValidationError):
        parse_role("dean")
