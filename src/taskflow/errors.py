from __future__ import annotations

from typing import Dict, Optional


class TaskFlowError(Exception):
    """Base class for errors raised by the todo service."""


# PUBLIC_INTERFACE
class TodoValidationError(TaskFlowError):
    """
    Input failed local validation (empty or too long description, category
    outside the fixed set, malformed date). Raised before any store call.
    """

    def __init__(self, field_errors: Dict[str, str]) -> None:
        self.field_errors = dict(field_errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.field_errors.items()))


# PUBLIC_INTERFACE
class AuthRequired(TaskFlowError):
    """No authenticated owner is available; the caller must sign in first."""

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


# PUBLIC_INTERFACE
class NotFound(TaskFlowError):
    """The todo does not exist for the given owner."""

    def __init__(self, todo_id: Optional[str] = None) -> None:
        self.todo_id = todo_id
        super().__init__("Todo not found")


# PUBLIC_INTERFACE
class SuggestionUnavailable(TaskFlowError):
    """The category suggestion could not be produced. Never fatal."""


# PUBLIC_INTERFACE
class StoreUnavailable(TaskFlowError):
    """The persistence backend failed for infrastructure reasons. Retryable."""
