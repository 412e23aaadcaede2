# src/tasksync/tasks/validation.py

from __future__ import annotations

"""
Form-level validation for task input.

Runs in the presentation layer before the task layer is called; the cache
and gateway do not re-check these rules.
"""

from datetime import date
from typing import Any

from ..core.errors import ValidationError
from .task_models import parse_deadline, utc_now

NAME_MIN = 3
NAME_MAX = 100
DESCRIPTION_MAX = 500


def validate_task_fields(
    fields: dict[str, Any],
    *,
    partial: bool = False,
    today: date | None = None,
) -> dict[str, Any]:
    """
    Check and normalize name/description/deadline.

    partial=True validates only the keys present (edit form); otherwise name
    and deadline are required (add form). Returns cleaned fields.
    """
    today = today or utc_now().date()
    errors: dict[str, str] = {}
    clean: dict[str, Any] = {}

    if "name" in fields or not partial:
        name = str(fields.get("name") or "").strip()
        if not name:
            errors["name"] = "Task name is required"
        elif len(name) < NAME_MIN:
            errors["name"] = f"Task name must be at least {NAME_MIN} characters"
        elif len(name) > NAME_MAX:
            errors["name"] = f"Task name must be less than {NAME_MAX} characters"
        else:
            clean["name"] = name

    if "description" in fields:
        description = str(fields.get("description") or "").strip()
        if len(description) > DESCRIPTION_MAX:
            errors["description"] = f"Description must be less than {DESCRIPTION_MAX} characters"
        else:
            clean["description"] = description

    if "deadline" in fields or not partial:
        raw = fields.get("deadline")
        if raw is None or str(raw).strip() == "":
            errors["deadline"] = "Deadline is required"
        else:
            try:
                deadline = parse_deadline(raw)
            except ValueError:
                errors["deadline"] = "Deadline must be a date (YYYY-MM-DD)"
            else:
                if deadline < today:
                    errors["deadline"] = "Deadline must be today or in the future"
                else:
                    clean["deadline"] = deadline

    if errors:
        raise ValidationError(errors)
    return clean
