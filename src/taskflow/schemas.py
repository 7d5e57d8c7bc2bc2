from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import TodoValidationError
from .models import DESCRIPTION_MAX_LENGTH, TaskCategory, coerce_category, normalize_description
from .utils import DueDateInput, parse_due_date


def _check_description(v: Optional[str]) -> str:
    try:
        return normalize_description(v)
    except TodoValidationError as e:
        raise ValueError(e.field_errors["description"]) from e


def _check_category(v: object) -> TaskCategory:
    try:
        return coerce_category(v)  # type: ignore[arg-type]
    except TodoValidationError as e:
        raise ValueError(e.field_errors["category"]) from e


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "description": "Buy groceries",
                "category": "Errands",
                "due_date": "2025-02-01",
            }
        }
    )

    description: str = Field(
        ..., description=f"What needs to be done (1..{DESCRIPTION_MAX_LENGTH} characters)"
    )
    category: TaskCategory = Field(..., description="One of the fixed task categories")
    due_date: Optional[date] = Field(
        default=None,
        description="Optional due date. Accepts an ISO8601 date; datetimes are truncated to their day",
    )

    @field_validator("description", mode="before")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _check_description(v)

    @field_validator("category", mode="before")
    @classmethod
    def validate_category(cls, v: object) -> TaskCategory:
        """
        Accept category labels case-insensitively; reject anything outside the set.
        """
        return _check_category(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def validate_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        """
        Normalize due_date from str/date/datetime to date.
        """
        return parse_due_date(v)


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.
    All fields are optional; only provided fields will be updated.
    An explicit null due_date clears it.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "category": "Personal",
                "due_date": "2025-01-01",
            }
        }
    )

    description: Optional[str] = Field(default=None, description="What needs to be done")
    category: Optional[TaskCategory] = Field(default=None, description="One of the fixed task categories")
    due_date: Optional[date] = Field(default=None, description="Due date, or null to clear it")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("description", mode="before")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        """
        If description is provided, strip whitespace and enforce 1..200 length.
        """
        if v is None:
            return v
        return _check_description(v)

    @field_validator("category", mode="before")
    @classmethod
    def validate_category(cls, v: object) -> Optional[TaskCategory]:
        if v is None:
            return v
        return _check_category(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def validate_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return parse_due_date(v)

    def clears_due_date(self) -> bool:
        """True when the caller explicitly sent a null due date."""
        return self.due_date is None and "due_date" in self.model_fields_set


# PUBLIC_INTERFACE
class TodoToggle(BaseModel):
    """Body of the toggle endpoint."""

    completed: bool = Field(..., description="New completion status")


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "4f1c2a9e0b5d4c7e8a3f6b2d1e9c0a7b",
                "owner_id": "user-123",
                "description": "Buy groceries",
                "category": "Errands",
                "completed": False,
                "due_date": "2025-02-01",
                "created_at": "2025-01-25T10:15:30.123456+00:00",
            }
        }
    )

    id: str = Field(..., description="Unique identifier of the todo item")
    owner_id: str = Field(..., description="Identifier of the owning user")
    description: str = Field(..., description="What needs to be done")
    category: TaskCategory = Field(..., description="Task category")
    completed: bool = Field(..., description="Completion status flag")
    due_date: Optional[date] = Field(default=None, description="Due date as an ISO8601 date")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")


# PUBLIC_INTERFACE
class CategorySuggestion(BaseModel):
    """Advisory (label, rationale) pair produced from a task description."""

    model_config = ConfigDict(frozen=True)

    label: TaskCategory
    rationale: str = ""


# PUBLIC_INTERFACE
class SuggestCategoryInput(BaseModel):
    """Request body for the category suggestion endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    task_description: str = Field(
        ...,
        alias="taskDescription",
        description="The description of the task for which to suggest a category.",
    )


# PUBLIC_INTERFACE
class SuggestCategoryOutput(BaseModel):
    """
    Structured output requested from the language model, and returned by the API.
    """

    model_config = ConfigDict(populate_by_name=True)

    suggested_category: str = Field(
        ...,
        alias="suggestedCategory",
        description=(
            "The suggested category for the task, chosen from: Work, Personal, Errands, "
            "Health, Finance, Education, or Other."
        ),
    )
    reasoning: str = Field(
        ..., description="The reasoning behind the suggested category."
    )

    @classmethod
    def from_suggestion(cls, suggestion: CategorySuggestion) -> "SuggestCategoryOutput":
        return cls(suggestedCategory=suggestion.label.value, reasoning=suggestion.rationale)


# PUBLIC_INTERFACE
class SuggestionResponse(BaseModel):
    """Envelope for the suggestion endpoint; suggestion is null when none is available."""

    suggestion: Optional[SuggestCategoryOutput] = None


# PUBLIC_INTERFACE
class CategoryList(BaseModel):
    """The fixed category set."""

    categories: List[TaskCategory]
