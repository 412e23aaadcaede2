# tests/test_validation.py

from __future__ import annotations

from datetime import date

import pytest

from tasksync.core.errors import ValidationError
from tasksync.tasks.validation import validate_task_fields

TODAY = date(2025, 3, 10)


def test_valid_add_form_is_normalized() -> None:
    clean = validate_task_fields(
        {"name": "  Ship report ", "deadline": "2025-03-10", "description": " soon "},
        today=TODAY,
    )
    assert clean == {"name": "Ship report", "deadline": date(2025, 3, 10), "description": "soon"}


def test_add_form_requires_name_and_deadline() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_task_fields({}, today=TODAY)
    assert set(excinfo.value.errors) == {"name", "deadline"}


@pytest.mark.parametrize(
    ("fields", "bad_field"),
    [
        ({"name": "ab", "deadline": "2025-04-01"}, "name"),
        ({"name": "x" * 101, "deadline": "2025-04-01"}, "name"),
        ({"name": "Valid", "deadline": "2025-04-01", "description": "d" * 501}, "description"),
        ({"name": "Valid", "deadline": "2025-03-09"}, "deadline"),
        ({"name": "Valid", "deadline": "next week"}, "deadline"),
    ],
)
def test_field_constraints(fields: dict, bad_field: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_task_fields(fields, today=TODAY)
    assert list(excinfo.value.errors) == [bad_field]


def test_partial_edit_only_checks_present_fields() -> None:
    assert validate_task_fields({"description": ""}, partial=True, today=TODAY) == {"description": ""}
    with pytest.raises(ValidationError):
        validate_task_fields({"name": "no"}, partial=True, today=TODAY)
