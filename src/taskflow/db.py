from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Generator, List, Optional

from .errors import NotFound, StoreUnavailable
from .models import TodoEntity, coerce_category, normalize_description
from .repositories import Repository, apply_update, new_todo_id
from .schemas import TodoCreate, TodoUpdate
from .utils import to_utc_datetime, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "todos"
    id: str = "id"
    owner_id: str = "owner_id"
    description: str = "description"
    category: str = "category"
    completed: str = "completed"
    due_date: str = "due_date"
    created_at: str = "created_at"


_COLS = _Cols()


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.
    Each call runs in its own transaction.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            logger.exception("Could not open todo database at %s", self._db_path)
            raise StoreUnavailable(f"Todo store unavailable: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.exception("Todo store operation failed")
            raise StoreUnavailable(f"Todo store unavailable: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} TEXT PRIMARY KEY,
                    {_COLS.owner_id} TEXT NOT NULL,
                    {_COLS.description} TEXT NOT NULL,
                    {_COLS.category} TEXT NOT NULL,
                    {_COLS.completed} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.due_date} TEXT NULL,
                    {_COLS.created_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_owner_created "
                f"ON {_COLS.table}({_COLS.owner_id}, {_COLS.created_at})"
            )

    def _row_to_entity(self, row: sqlite3.Row) -> TodoEntity:
        due_raw: Optional[str] = row[_COLS.due_date]
        return {
            "id": str(row[_COLS.id]),
            "owner_id": str(row[_COLS.owner_id]),
            "description": str(row[_COLS.description]),
            "category": coerce_category(row[_COLS.category]).value,
            "completed": bool(row[_COLS.completed]),
            "due_date": date.fromisoformat(due_raw) if due_raw else None,
            "created_at": to_utc_datetime(row[_COLS.created_at]),
        }

    def _fetch(self, conn: sqlite3.Connection, owner_id: str, todo_id: str) -> TodoEntity:
        row = conn.execute(
            f"SELECT * FROM {_COLS.table} WHERE {_COLS.owner_id} = ? AND {_COLS.id} = ?",
            (owner_id, todo_id),
        ).fetchone()
        if row is None:
            raise NotFound(todo_id)
        return self._row_to_entity(row)

    def create(self, owner_id: str, data: TodoCreate) -> TodoEntity:
        owner_id = self._require_owner(owner_id)
        description = normalize_description(data.description)
        category = coerce_category(data.category).value
        due = data.due_date.isoformat() if data.due_date else None
        todo_id = new_todo_id()
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.id}, {_COLS.owner_id}, {_COLS.description},
                    {_COLS.category}, {_COLS.completed}, {_COLS.due_date}, {_COLS.created_at})
                VALUES (?, ?, ?, ?, 0, ?, ?)
                """,
                (todo_id, owner_id, description, category, due, utc_now().isoformat(timespec="microseconds")),
            )
            return self._fetch(conn, owner_id, todo_id)

    def get(self, owner_id: str, todo_id: str) -> TodoEntity:
        owner_id = self._require_owner(owner_id)
        with self._conn() as conn:
            return self._fetch(conn, owner_id, todo_id)

    def update(self, owner_id: str, todo_id: str, data: TodoUpdate) -> TodoEntity:
        owner_id = self._require_owner(owner_id)
        with self._conn() as conn:
            current = self._fetch(conn, owner_id, todo_id)
            updated = apply_update(current, data)
            conn.execute(
                f"""
                UPDATE {_COLS.table}
                SET {_COLS.description} = ?, {_COLS.category} = ?, {_COLS.completed} = ?,
                    {_COLS.due_date} = ?
                WHERE {_COLS.owner_id} = ? AND {_COLS.id} = ?
                """,
                (
                    updated["description"],
                    updated["category"],
                    1 if updated["completed"] else 0,
                    updated["due_date"].isoformat() if updated["due_date"] else None,
                    owner_id,
                    todo_id,
                ),
            )
            return self._fetch(conn, owner_id, todo_id)

    def delete(self, owner_id: str, todo_id: str) -> None:
        owner_id = self._require_owner(owner_id)
        with self._conn() as conn:
            cur = conn.execute(
                f"DELETE FROM {_COLS.table} WHERE {_COLS.owner_id} = ? AND {_COLS.id} = ?",
                (owner_id, todo_id),
            )
            if cur.rowcount == 0:
                raise NotFound(todo_id)

    def list(self, owner_id: str) -> List[TodoEntity]:
        owner_id = self._require_owner(owner_id)
        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {_COLS.table}
                WHERE {_COLS.owner_id} = ?
                ORDER BY {_COLS.created_at} DESC, rowid DESC
                """,
                (owner_id,),
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]
