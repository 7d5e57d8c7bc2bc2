from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional, TypedDict, Union

from .errors import TodoValidationError

DESCRIPTION_MAX_LENGTH = 200


# PUBLIC_INTERFACE
class TaskCategory(str, Enum):
    """Closed set of categories a todo can belong to."""

    WORK = "Work"
    PERSONAL = "Personal"
    ERRANDS = "Errands"
    HEALTH = "Health"
    FINANCE = "Finance"
    EDUCATION = "Education"
    OTHER = "Other"


TASK_CATEGORIES = tuple(c.value for c in TaskCategory)


# PUBLIC_INTERFACE
def coerce_category(value: Union[TaskCategory, str, None]) -> TaskCategory:
    """
    Map a category label to a TaskCategory member.

    Labels are matched case-insensitively after stripping whitespace.
    Raises TodoValidationError for anything outside the fixed set.
    """
    if isinstance(value, TaskCategory):
        return value
    if isinstance(value, str):
        wanted = value.strip().lower()
        for category in TaskCategory:
            if category.value.lower() == wanted:
                return category
    raise TodoValidationError(
        {"category": f"category must be one of: {', '.join(TASK_CATEGORIES)}"}
    )


# PUBLIC_INTERFACE
def normalize_description(value: Optional[str]) -> str:
    """Strip a description and enforce the 1..200 character bound."""
    if value is None:
        raise TodoValidationError({"description": "Description cannot be empty."})
    s = value.strip()
    if not s:
        raise TodoValidationError({"description": "Description cannot be empty."})
    if len(s) > DESCRIPTION_MAX_LENGTH:
        raise TodoValidationError({"description": "Description too long."})
    return s


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    Store-neutral record for a single todo.

    Fields:
    - id: opaque identifier assigned by the store, never reused
    - owner_id: identifier of the owning user
    - description: stripped text, 1..200 chars
    - category: one of TASK_CATEGORIES
    - completed: completion flag, False at creation
    - created_at: aware UTC timestamp assigned once by the store
    - due_date: optional calendar day
    """

    id: str
    owner_id: str
    description: str
    category: str
    completed: bool
    created_at: datetime
    due_date: Optional[date]
