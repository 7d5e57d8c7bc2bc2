"""
Form and list-view rules for todos.

TodoFormController drives the add form and the edit surface: it validates
input before any store call, feeds description edits to the suggestion
debouncer, and keeps the user's input when a save fails. TodoBoard is the
task list: toggles and deletes are applied locally first and reconciled
with (or rolled back from) the store's answer.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Union

from .auth import require_owner
from .debounce import SuggestionDebouncer
from .errors import NotFound, StoreUnavailable, TodoValidationError
from .models import TodoEntity, coerce_category, normalize_description
from .repositories import Repository
from .schemas import CategorySuggestion, TodoCreate, TodoUpdate
from .utils import parse_due_date

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "This task no longer exists."
STORE_FAILURE_MESSAGE = "Could not reach the task store. Please try again."


# PUBLIC_INTERFACE
class TodoState(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    DELETED = "deleted"


# PUBLIC_INTERFACE
def state_of(todo: Optional[TodoEntity]) -> TodoState:
    """Lifecycle state of a persisted todo; None stands for a deleted one."""
    if todo is None:
        return TodoState.DELETED
    return TodoState.COMPLETED if todo["completed"] else TodoState.ACTIVE


@dataclass
class TodoForm:
    """Field values and messages of the add form or the edit surface."""

    description: str = ""
    category: Optional[str] = None
    due_date: Optional[Union[date, str]] = None
    editing_id: Optional[str] = None
    is_open: bool = True
    field_errors: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def for_todo(cls, todo: TodoEntity) -> "TodoForm":
        return cls(
            description=todo["description"],
            category=todo["category"],
            due_date=todo["due_date"],
            editing_id=todo["id"],
        )

    @property
    def state(self) -> Optional[TodoState]:
        """DRAFT for an add form; an edit surface follows its record (see state_of)."""
        return TodoState.DRAFT if self.editing_id is None else None

    def reset(self) -> None:
        self.description = ""
        self.category = None
        self.due_date = None
        self.field_errors = {}
        self.error = None


# PUBLIC_INTERFACE
def validate_form(form: TodoForm) -> Union[TodoCreate, TodoUpdate]:
    """
    Check every field of the form and build the store payload.

    Raises TodoValidationError with one message per bad field.
    """
    errors: Dict[str, str] = {}
    description = category = due = None

    try:
        description = normalize_description(form.description)
    except TodoValidationError as e:
        errors.update(e.field_errors)

    if form.category is None or not str(form.category).strip():
        errors["category"] = "Please select a category."
    else:
        try:
            category = coerce_category(form.category)
        except TodoValidationError as e:
            errors.update(e.field_errors)

    try:
        due = parse_due_date(form.due_date)
    except ValueError:
        errors["due_date"] = "Invalid date."

    if errors:
        raise TodoValidationError(errors)

    if form.editing_id is None:
        return TodoCreate(description=description, category=category, due_date=due)
    # The edit surface always sends the due date, so clearing it sticks
    return TodoUpdate(description=description, category=category, due_date=due)


# PUBLIC_INTERFACE
class TodoFormController:
    """
    Drives one add form (todo=None) or one edit surface (todo given).
    When a board is given it is refreshed after every successful save.
    """

    def __init__(
        self,
        repository: Repository,
        owner_id: Optional[str],
        debouncer: Optional[SuggestionDebouncer] = None,
        todo: Optional[TodoEntity] = None,
        board: Optional["TodoBoard"] = None,
    ) -> None:
        self._repo = repository
        self.owner_id = require_owner(owner_id)
        self.debouncer = debouncer
        self.board = board
        self.form = TodoForm.for_todo(todo) if todo is not None else TodoForm()
        self.submitting = False

    @property
    def is_edit(self) -> bool:
        return self.form.editing_id is not None

    @property
    def suggestion(self) -> Optional[CategorySuggestion]:
        return self.debouncer.suggestion if self.debouncer else None

    def on_description_change(self, text: str) -> None:
        self.form.description = text
        self.form.field_errors.pop("description", None)
        if self.debouncer is not None:
            self.debouncer.on_change(text)

    def set_category(self, category: Optional[str]) -> None:
        self.form.category = category
        self.form.field_errors.pop("category", None)

    def set_due_date(self, due_date: Optional[Union[date, str]]) -> None:
        self.form.due_date = due_date
        self.form.field_errors.pop("due_date", None)

    def apply_suggestion(self) -> Optional[CategorySuggestion]:
        """
        Copy the suggested category into the form and consume the suggestion.
        Nothing is persisted.
        """
        if self.debouncer is None:
            return None
        suggestion = self.debouncer.consume()
        if suggestion is not None:
            self.set_category(suggestion.label.value)
        return suggestion

    def submit(self) -> Optional[TodoEntity]:
        """
        Validate and save the form.

        Returns the saved record, or None when validation or the store failed
        (see form.field_errors / form.error). Field values are kept on failure.
        """
        self.form.field_errors = {}
        self.form.error = None
        try:
            payload = validate_form(self.form)
        except TodoValidationError as e:
            self.form.field_errors = e.field_errors
            return None

        self.submitting = True
        try:
            if isinstance(payload, TodoCreate):
                saved = self._repo.create(self.owner_id, payload)
            else:
                saved = self._repo.update(self.owner_id, self.form.editing_id, payload)
        except NotFound:
            self.form.error = NOT_FOUND_MESSAGE
            return None
        except StoreUnavailable as e:
            logger.warning("Saving todo failed: %s", e)
            self.form.error = STORE_FAILURE_MESSAGE
            return None
        finally:
            self.submitting = False

        if self.debouncer is not None:
            self.debouncer.clear()
        if self.is_edit:
            self.form.is_open = False
        else:
            self.form.reset()
        if self.board is not None:
            self.board.refresh()
        return saved


# PUBLIC_INTERFACE
class TodoBoard:
    """
    Local snapshot of an owner's todos with optimistic toggle and delete.
    """

    def __init__(self, repository: Repository, owner_id: Optional[str]) -> None:
        self._repo = repository
        self.owner_id = require_owner(owner_id)
        self.todos: List[TodoEntity] = []
        self.error: Optional[str] = None

    def _find(self, todo_id: str) -> Optional[int]:
        for i, t in enumerate(self.todos):
            if t["id"] == todo_id:
                return i
        return None

    def _index(self, todo_id: str) -> Optional[int]:
        """Position of the todo in the snapshot, reloading once when it is missing."""
        i = self._find(todo_id)
        if i is None:
            self.refresh()
            i = self._find(todo_id)
            if i is None and self.error is None:
                self.error = NOT_FOUND_MESSAGE
        return i

    def refresh(self) -> List[TodoEntity]:
        try:
            self.todos = self._repo.list(self.owner_id)
            self.error = None
        except StoreUnavailable as e:
            logger.warning("Loading todos failed: %s", e)
            self.error = STORE_FAILURE_MESSAGE
        return self.todos

    def toggle(self, todo_id: str, completed: bool) -> Optional[TodoEntity]:
        i = self._index(todo_id)
        if i is None:
            return None
        before = self.todos[i].copy()
        self.todos[i] = {**before, "completed": completed}
        try:
            saved = self._repo.toggle_complete(self.owner_id, todo_id, completed)
        except NotFound:
            self.error = NOT_FOUND_MESSAGE
            self.refresh()
            return None
        except StoreUnavailable as e:
            logger.warning("Toggling todo %s failed: %s", todo_id, e)
            self.todos[i] = before
            self.error = STORE_FAILURE_MESSAGE
            return None
        self.todos[i] = saved
        return saved

    def delete(self, todo_id: str) -> bool:
        i = self._index(todo_id)
        if i is None:
            return False
        removed = self.todos.pop(i)
        try:
            self._repo.delete(self.owner_id, todo_id)
        except NotFound:
            self.error = NOT_FOUND_MESSAGE
            self.refresh()
            return False
        except StoreUnavailable as e:
            logger.warning("Deleting todo %s failed: %s", todo_id, e)
            self.todos.insert(i, removed)
            self.error = STORE_FAILURE_MESSAGE
            return False
        return True
