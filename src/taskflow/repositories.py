from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from functools import lru_cache
from threading import RLock
from typing import Dict, List, Optional

from .auth import require_owner
from .errors import NotFound
from .models import TodoEntity, coerce_category, normalize_description
from .schemas import TodoCreate, TodoUpdate
from .settings import get_settings
from .utils import utc_now

logger = logging.getLogger(__name__)


def new_todo_id() -> str:
    """Allocate an opaque identifier; uuid4 values are never reused."""
    return uuid.uuid4().hex


def apply_update(existing: TodoEntity, data: TodoUpdate) -> TodoEntity:
    """
    Return a copy of ``existing`` with only the supplied fields changed.
    id, owner_id and created_at are never rewritten.
    """
    updated = existing.copy()
    if data.description is not None:
        updated["description"] = normalize_description(data.description)
    if data.category is not None:
        updated["category"] = coerce_category(data.category).value
    if data.completed is not None:
        updated["completed"] = data.completed
    if data.due_date is not None or data.clears_due_date():
        updated["due_date"] = data.due_date
    return updated


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract repository contract for todo storage backends.

    Every operation takes the owner id explicitly; records of one owner are
    never visible to another.
    """

    @staticmethod
    def _require_owner(owner_id: Optional[str]) -> str:
        return require_owner(owner_id)

    @abstractmethod
    def list(self, owner_id: str) -> List[TodoEntity]:
        """Return the owner's todos, newest created_at first. Empty list when none."""

    @abstractmethod
    def get(self, owner_id: str, todo_id: str) -> TodoEntity:
        """Return one todo. Raises NotFound when absent for this owner."""

    @abstractmethod
    def create(self, owner_id: str, data: TodoCreate) -> TodoEntity:
        """Create and return a new todo with completed=False and a server timestamp."""

    @abstractmethod
    def update(self, owner_id: str, todo_id: str, data: TodoUpdate) -> TodoEntity:
        """Update supplied fields of a todo and return the post-update record."""

    def toggle_complete(self, owner_id: str, todo_id: str, completed: bool) -> TodoEntity:
        """Set only the completed flag."""
        return self.update(owner_id, todo_id, TodoUpdate(completed=completed))

    @abstractmethod
    def delete(self, owner_id: str, todo_id: str) -> None:
        """Delete a todo permanently. Raises NotFound when absent."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    Records are partitioned per owner.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, Dict[str, TodoEntity]] = {}
        self._seq: Dict[str, int] = {}
        self._next_seq = 1
        self._last_ts: Optional[datetime] = None

    def _now(self) -> datetime:
        # created_at never goes backwards even if the wall clock does
        now = utc_now()
        if self._last_ts is not None and now < self._last_ts:
            now = self._last_ts
        self._last_ts = now
        return now

    def _partition(self, owner_id: str) -> Dict[str, TodoEntity]:
        return self._items.setdefault(owner_id, {})

    def create(self, owner_id: str, data: TodoCreate) -> TodoEntity:
        owner_id = self._require_owner(owner_id)
        description = normalize_description(data.description)
        category = coerce_category(data.category).value
        with self._lock:
            entity: TodoEntity = {
                "id": new_todo_id(),
                "owner_id": owner_id,
                "description": description,
                "category": category,
                "completed": False,
                "created_at": self._now(),
                "due_date": data.due_date,
            }
            self._partition(owner_id)[entity["id"]] = entity
            self._seq[entity["id"]] = self._next_seq
            self._next_seq += 1
        return entity.copy()

    def get(self, owner_id: str, todo_id: str) -> TodoEntity:
        owner_id = self._require_owner(owner_id)
        with self._lock:
            item = self._items.get(owner_id, {}).get(todo_id)
            if item is None:
                raise NotFound(todo_id)
            return item.copy()

    def update(self, owner_id: str, todo_id: str, data: TodoUpdate) -> TodoEntity:
        owner_id = self._require_owner(owner_id)
        with self._lock:
            existing = self._items.get(owner_id, {}).get(todo_id)
            if existing is None:
                raise NotFound(todo_id)
            updated = apply_update(existing, data)
            self._items[owner_id][todo_id] = updated
        # Re-read so the caller sees exactly what was stored
        return self.get(owner_id, todo_id)

    def delete(self, owner_id: str, todo_id: str) -> None:
        owner_id = self._require_owner(owner_id)
        with self._lock:
            if self._items.get(owner_id, {}).pop(todo_id, None) is None:
                raise NotFound(todo_id)
            self._seq.pop(todo_id, None)

    def list(self, owner_id: str) -> List[TodoEntity]:
        owner_id = self._require_owner(owner_id)
        with self._lock:
            items = list(self._items.get(owner_id, {}).values())
            items_sorted = sorted(
                items,
                key=lambda t: (t["created_at"], self._seq.get(t["id"], 0)),
                reverse=True,
            )
            # Return copies to avoid external mutation
            return [t.copy() for t in items_sorted]


class CachedRepository(Repository):
    """
    Caches each owner's listing in front of another repository.

    Every mutation drops that owner's cached listing, so a list() after a
    write always reflects the write.
    """

    def __init__(self, backend: Repository) -> None:
        self._backend = backend
        self._lock = RLock()
        self._listings: Dict[str, List[TodoEntity]] = {}

    @property
    def backend(self) -> Repository:
        return self._backend

    def invalidate(self, owner_id: str) -> None:
        with self._lock:
            self._listings.pop(owner_id, None)

    def list(self, owner_id: str) -> List[TodoEntity]:
        owner_id = self._require_owner(owner_id)
        with self._lock:
            cached = self._listings.get(owner_id)
            if cached is None:
                cached = self._backend.list(owner_id)
                self._listings[owner_id] = cached
            return [t.copy() for t in cached]

    def get(self, owner_id: str, todo_id: str) -> TodoEntity:
        return self._backend.get(owner_id, todo_id)

    def create(self, owner_id: str, data: TodoCreate) -> TodoEntity:
        try:
            created = self._backend.create(owner_id, data)
        finally:
            self.invalidate(owner_id)
        logger.info("Created todo %s for owner %s", created["id"], owner_id)
        return created

    def update(self, owner_id: str, todo_id: str, data: TodoUpdate) -> TodoEntity:
        try:
            return self._backend.update(owner_id, todo_id, data)
        finally:
            self.invalidate(owner_id)

    def toggle_complete(self, owner_id: str, todo_id: str, completed: bool) -> TodoEntity:
        try:
            return self._backend.toggle_complete(owner_id, todo_id, completed)
        finally:
            self.invalidate(owner_id)

    def delete(self, owner_id: str, todo_id: str) -> None:
        try:
            self._backend.delete(owner_id, todo_id)
        finally:
            self.invalidate(owner_id)
        logger.info("Deleted todo %s for owner %s", todo_id, owner_id)


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_repository() -> Repository:
    """
    Return the process-wide repository selected by settings, behind a listing cache.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository (standard library sqlite3)
    """
    settings = get_settings()
    backend: Repository
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        backend = SQLiteRepository(settings.sqlite_db_path)
    else:
        backend = InMemoryRepository()
    logger.info("Using %s persistence backend", settings.persistence_backend)
    return CachedRepository(backend)
