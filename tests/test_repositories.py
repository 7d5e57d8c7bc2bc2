import sqlite3
from datetime import date

import pytest

from taskflow.db import SQLiteRepository
from taskflow.errors import AuthRequired, NotFound, StoreUnavailable, TodoValidationError
from taskflow.models import TaskCategory
from taskflow.repositories import CachedRepository, InMemoryRepository
from taskflow.schemas import TodoCreate, TodoUpdate
from taskflow.utils import utc_now


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteRepository(str(tmp_path / "todos.db"))
    return InMemoryRepository()


def make(description="Buy groceries", category=TaskCategory.ERRANDS, due_date=None) -> TodoCreate:
    return TodoCreate(description=description, category=category, due_date=due_date)


class TestStoreContract:
    def test_create_then_list(self, repo, owner_id):
        before = utc_now()
        created = repo.create(owner_id, make(due_date=date(2030, 1, 2)))
        listed = repo.list(owner_id)

        assert [t["id"] for t in listed] == [created["id"]]
        todo = listed[0]
        assert todo["description"] == "Buy groceries"
        assert todo["category"] == "Errands"
        assert todo["due_date"] == date(2030, 1, 2)
        assert todo["completed"] is False
        assert todo["owner_id"] == owner_id
        assert todo["created_at"] >= before
        assert todo["created_at"].tzinfo is not None

    def test_list_empty(self, repo, owner_id):
        assert repo.list(owner_id) == []

    def test_list_newest_first(self, repo, owner_id):
        ids = [repo.create(owner_id, make(f"task {i}"))["id"] for i in range(4)]
        assert [t["id"] for t in repo.list(owner_id)] == list(reversed(ids))

    def test_owner_partitioning(self, repo, owner_id):
        created = repo.create(owner_id, make())
        assert repo.list("someone-else") == []
        with pytest.raises(NotFound):
            repo.get("someone-else", created["id"])
        with pytest.raises(NotFound):
            repo.update("someone-else", created["id"], TodoUpdate(completed=True))
        with pytest.raises(NotFound):
            repo.delete("someone-else", created["id"])
        assert repo.get(owner_id, created["id"])["completed"] is False

    def test_missing_owner_is_rejected(self, repo):
        with pytest.raises(AuthRequired):
            repo.list("")
        with pytest.raises(AuthRequired):
            repo.create(None, make())

    def test_owner_id_is_trimmed_like_the_auth_guard(self, repo, owner_id):
        created = repo.create(f"  {owner_id} ", make())
        assert created["owner_id"] == owner_id
        assert [t["id"] for t in repo.list(owner_id)] == [created["id"]]
        assert repo.get(f"{owner_id}\t", created["id"])["id"] == created["id"]

    def test_toggle_round_trip(self, repo, owner_id):
        created = repo.create(owner_id, make(due_date=date(2030, 1, 2)))
        done = repo.toggle_complete(owner_id, created["id"], True)
        assert done["completed"] is True
        undone = repo.toggle_complete(owner_id, created["id"], False)
        assert undone == created

    def test_update_category_only(self, repo, owner_id):
        created = repo.create(owner_id, make(due_date=date(2030, 1, 2)))
        updated = repo.update(owner_id, created["id"], TodoUpdate(category="Personal"))
        assert updated["category"] == "Personal"
        assert updated["description"] == created["description"]
        assert updated["due_date"] == created["due_date"]
        assert updated["created_at"] == created["created_at"]

    def test_update_clears_due_date_only_when_sent(self, repo, owner_id):
        created = repo.create(owner_id, make(due_date=date(2030, 1, 2)))
        kept = repo.update(owner_id, created["id"], TodoUpdate(description="Buy bread"))
        assert kept["due_date"] == date(2030, 1, 2)
        cleared = repo.update(owner_id, created["id"], TodoUpdate(due_date=None))
        assert cleared["due_date"] is None
        assert cleared["description"] == "Buy bread"

    def test_update_missing(self, repo, owner_id):
        with pytest.raises(NotFound):
            repo.update(owner_id, "nope", TodoUpdate(description="x"))

    def test_delete_twice(self, repo, owner_id):
        created = repo.create(owner_id, make())
        repo.delete(owner_id, created["id"])
        assert all(t["id"] != created["id"] for t in repo.list(owner_id))
        with pytest.raises(NotFound):
            repo.delete(owner_id, created["id"])

    def test_ids_are_not_reused(self, repo, owner_id):
        first = repo.create(owner_id, make())
        repo.delete(owner_id, first["id"])
        second = repo.create(owner_id, make())
        assert second["id"] != first["id"]

    def test_adapter_rejects_unvalidated_input(self, repo, owner_id):
        bad = TodoCreate.model_construct(description="   ", category=TaskCategory.WORK, due_date=None)
        with pytest.raises(TodoValidationError):
            repo.create(owner_id, bad)
        bad_category = TodoCreate.model_construct(description="ok", category="Chores", due_date=None)
        with pytest.raises(TodoValidationError):
            repo.create(owner_id, bad_category)
        assert repo.list(owner_id) == []


class TestCachedRepository:
    def test_listing_is_cached_until_a_mutation(self, owner_id):
        backend = InMemoryRepository()
        calls = []
        original = backend.list

        def counting_list(owner):
            calls.append(owner)
            return original(owner)

        backend.list = counting_list  # type: ignore[method-assign]
        repo = CachedRepository(backend)

        repo.list(owner_id)
        repo.list(owner_id)
        assert len(calls) == 1

        created = repo.create(owner_id, make())
        assert [t["id"] for t in repo.list(owner_id)] == [created["id"]]
        assert len(calls) == 2

        repo.toggle_complete(owner_id, created["id"], True)
        assert repo.list(owner_id)[0]["completed"] is True

        repo.update(owner_id, created["id"], TodoUpdate(category="Health"))
        assert repo.list(owner_id)[0]["category"] == "Health"

        repo.delete(owner_id, created["id"])
        assert repo.list(owner_id) == []

    def test_cached_listing_is_not_shared_mutable_state(self, owner_id):
        repo = CachedRepository(InMemoryRepository())
        repo.create(owner_id, make())
        first = repo.list(owner_id)
        first[0]["description"] = "tampered"
        assert repo.list(owner_id)[0]["description"] == "Buy groceries"

    def test_failed_mutation_still_invalidates(self, owner_id):
        repo = CachedRepository(InMemoryRepository())
        repo.list(owner_id)
        with pytest.raises(NotFound):
            repo.delete(owner_id, "missing")
        assert repo.list(owner_id) == []


class TestSQLiteFailures:
    def test_broken_database_surfaces_store_unavailable(self, tmp_path, owner_id):
        path = tmp_path / "todos.db"
        repo = SQLiteRepository(str(path))
        repo.create(owner_id, make())

        conn = sqlite3.connect(path)
        conn.execute("DROP TABLE todos")
        conn.commit()
        conn.close()

        with pytest.raises(StoreUnavailable):
            repo.list(owner_id)

    def test_data_survives_reopen(self, tmp_path, owner_id):
        path = str(tmp_path / "todos.db")
        created = SQLiteRepository(path).create(owner_id, make(due_date=date(2031, 3, 4)))
        reopened = SQLiteRepository(path).get(owner_id, created["id"])
        assert reopened == created
