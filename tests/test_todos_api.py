import uuid
from datetime import datetime, timezone

from fastapi.testclient import TestClient

from taskflow.main import app
from taskflow.models import TaskCategory
from taskflow.routers.suggestions import get_category_suggester

from fakes import FakeSuggester

client = TestClient(app)

TODOS = "/api/v1/todos/"


def new_owner() -> dict:
    return {"X-User-Id": f"user-{uuid.uuid4().hex[:8]}"}


def parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def create_todo_payload(description="Test Task", category="Work", due_date=None):
    payload = {"description": description, "category": category}
    if due_date is not None:
        payload["due_date"] = due_date
    return payload


def assert_todo_shape(todo: dict):
    for key in ["id", "owner_id", "description", "category", "completed", "created_at", "due_date"]:
        assert key in todo
    assert isinstance(todo["id"], str)
    assert isinstance(todo["completed"], bool)
    assert todo["category"] in [c.value for c in TaskCategory]
    parse_ts(todo["created_at"])


class TestHealth:
    def test_health_check(self):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] == "memory"


class TestAuth:
    def test_missing_identity_is_redirected_to_sign_in(self):
        res = client.get(TODOS)
        assert res.status_code == 401
        body = res.json()
        assert body["error"] == "AuthRequired"
        assert body["redirect"] == "/login"
        assert res.headers["location"] == "/login"

    def test_blank_identity_is_rejected(self):
        res = client.post(TODOS, json=create_todo_payload(), headers={"X-User-Id": "  "})
        assert res.status_code == 401

    def test_owners_do_not_see_each_other(self):
        alice, bob = new_owner(), new_owner()
        tid = client.post(TODOS, json=create_todo_payload("Alice's task"), headers=alice).json()["id"]

        assert client.get(TODOS, headers=bob).json() == []
        assert client.get(f"{TODOS}{tid}", headers=bob).status_code == 404
        assert client.patch(f"{TODOS}{tid}", json={"category": "Other"}, headers=bob).status_code == 404
        assert client.delete(f"{TODOS}{tid}", headers=bob).status_code == 404
        # still there for its owner
        assert client.get(f"{TODOS}{tid}", headers=alice).status_code == 200


class TestTodosCRUD:
    def test_create_todo_minimal(self):
        owner = new_owner()
        res = client.post(TODOS, json=create_todo_payload(description="  Buy milk  "), headers=owner)
        assert res.status_code == 201
        todo = res.json()
        assert_todo_shape(todo)
        assert todo["description"] == "Buy milk"
        assert todo["category"] == "Work"
        assert todo["completed"] is False
        assert todo["due_date"] is None
        assert todo["owner_id"] == owner["X-User-Id"]

    def test_create_ignores_client_supplied_completed(self):
        payload = {**create_todo_payload(), "completed": True}
        res = client.post(TODOS, json=payload, headers=new_owner())
        assert res.status_code == 201
        assert res.json()["completed"] is False

    def test_create_accepts_lowercase_category(self):
        res = client.post(TODOS, json=create_todo_payload(category="errands"), headers=new_owner())
        assert res.status_code == 201
        assert res.json()["category"] == "Errands"

    def test_create_with_due_date(self):
        res = client.post(
            TODOS, json=create_todo_payload(description="Pay bills", due_date="2099-12-25"), headers=new_owner()
        )
        assert res.status_code == 201
        assert res.json()["due_date"] == "2099-12-25"

    def test_list_is_newest_first(self):
        owner = new_owner()
        for name in ["first", "second", "third"]:
            assert client.post(TODOS, json=create_todo_payload(name), headers=owner).status_code == 201
        items = client.get(TODOS, headers=owner).json()
        assert [t["description"] for t in items] == ["third", "second", "first"]
        created = [parse_ts(t["created_at"]) for t in items]
        assert created == sorted(created, reverse=True)

    def test_list_empty_for_new_owner(self):
        res = client.get(TODOS, headers=new_owner())
        assert res.status_code == 200
        assert res.json() == []

    def test_get_todo_and_not_found(self):
        owner = new_owner()
        tid = client.post(TODOS, json=create_todo_payload("Read book"), headers=owner).json()["id"]

        res_get = client.get(f"{TODOS}{tid}", headers=owner)
        assert res_get.status_code == 200
        assert res_get.json()["description"] == "Read book"

        res_404 = client.get(f"{TODOS}does-not-exist", headers=owner)
        assert res_404.status_code == 404
        assert res_404.json()["detail"] == "Todo not found"

    def test_patch_category_only_keeps_other_fields(self):
        owner = new_owner()
        created = client.post(
            TODOS, json=create_todo_payload("Partial", "Work", "2030-05-01"), headers=owner
        ).json()

        res = client.patch(f"{TODOS}{created['id']}", json={"category": "Personal"}, headers=owner)
        assert res.status_code == 200
        patched = res.json()
        assert patched["category"] == "Personal"
        assert patched["description"] == "Partial"
        assert patched["due_date"] == "2030-05-01"
        assert patched["created_at"] == created["created_at"]

    def test_patch_null_due_date_clears_it(self):
        owner = new_owner()
        tid = client.post(TODOS, json=create_todo_payload(due_date="2030-05-01"), headers=owner).json()["id"]
        res = client.patch(f"{TODOS}{tid}", json={"due_date": None}, headers=owner)
        assert res.status_code == 200
        assert res.json()["due_date"] is None

    def test_toggle_round_trip(self):
        owner = new_owner()
        created = client.post(TODOS, json=create_todo_payload("Toggle me", "Health"), headers=owner).json()
        tid = created["id"]

        on = client.post(f"{TODOS}{tid}/toggle", json={"completed": True}, headers=owner)
        assert on.status_code == 200
        assert on.json()["completed"] is True

        off = client.post(f"{TODOS}{tid}/toggle", json={"completed": False}, headers=owner).json()
        assert off == created

    def test_toggle_not_found(self):
        res = client.post(f"{TODOS}missing/toggle", json={"completed": True}, headers=new_owner())
        assert res.status_code == 404

    def test_delete_todo(self):
        owner = new_owner()
        tid = client.post(TODOS, json=create_todo_payload("ToDelete"), headers=owner).json()["id"]

        res_del = client.delete(f"{TODOS}{tid}", headers=owner)
        assert res_del.status_code == 204
        assert res_del.text == ""

        assert all(t["id"] != tid for t in client.get(TODOS, headers=owner).json())
        res_del_again = client.delete(f"{TODOS}{tid}", headers=owner)
        assert res_del_again.status_code == 404
        assert res_del_again.json()["detail"] == "Todo not found"

    def test_end_to_end_scenario(self):
        owner = new_owner()
        before = datetime.now(timezone.utc)
        created = client.post(TODOS, json=create_todo_payload("Buy groceries", "Errands"), headers=owner)
        assert created.status_code == 201
        todo = created.json()
        assert parse_ts(todo["created_at"]) >= before.replace(microsecond=0)

        listed = client.get(TODOS, headers=owner).json()
        assert listed[0]["id"] == todo["id"]

        updated = client.patch(f"{TODOS}{todo['id']}", json={"due_date": "2025-01-01"}, headers=owner).json()
        assert updated["due_date"] == "2025-01-01"
        assert updated["description"] == "Buy groceries"
        assert updated["category"] == "Errands"

        client.post(f"{TODOS}{todo['id']}/toggle", json={"completed": True}, headers=owner)
        assert client.get(TODOS, headers=owner).json()[0]["completed"] is True

        assert client.delete(f"{TODOS}{todo['id']}", headers=owner).status_code == 204
        assert client.get(TODOS, headers=owner).json() == []


class TestValidationErrors:
    def assert_validation_body(self, res):
        assert res.status_code == 422
        body = res.json()
        assert body.get("error") == "ValidationError"
        assert body.get("message") == "Request validation failed"
        assert isinstance(body.get("detail"), list)

    def test_create_blank_description(self):
        res = client.post(TODOS, json={"description": "  ", "category": "Work"}, headers=new_owner())
        self.assert_validation_body(res)

    def test_create_description_too_long(self):
        res = client.post(TODOS, json=create_todo_payload("x" * 201), headers=new_owner())
        self.assert_validation_body(res)

    def test_create_description_at_limit(self):
        res = client.post(TODOS, json=create_todo_payload("x" * 200), headers=new_owner())
        assert res.status_code == 201

    def test_create_unknown_category(self):
        res = client.post(TODOS, json=create_todo_payload(category="Groceries"), headers=new_owner())
        self.assert_validation_body(res)

    def test_create_missing_category(self):
        res = client.post(TODOS, json={"description": "No category"}, headers=new_owner())
        self.assert_validation_body(res)

    def test_patch_bad_due_date(self):
        owner = new_owner()
        tid = client.post(TODOS, json=create_todo_payload("Due date bad"), headers=owner).json()["id"]
        res = client.patch(f"{TODOS}{tid}", json={"due_date": "not-a-date"}, headers=owner)
        self.assert_validation_body(res)


class TestCategoriesAndSuggestions:
    def teardown_method(self):
        app.dependency_overrides.pop(get_category_suggester, None)

    def test_list_categories(self):
        res = client.get("/api/v1/categories")
        assert res.status_code == 200
        assert res.json()["categories"] == [
            "Work", "Personal", "Errands", "Health", "Finance", "Education", "Other"
        ]

    def test_suggestion_returned(self):
        fake = FakeSuggester(labels={"groceries": TaskCategory.ERRANDS})
        app.dependency_overrides[get_category_suggester] = lambda: fake
        res = client.post(
            "/api/v1/suggestions/category",
            json={"taskDescription": "Buy groceries"},
            headers=new_owner(),
        )
        assert res.status_code == 200
        suggestion = res.json()["suggestion"]
        assert suggestion["suggestedCategory"] == "Errands"
        assert suggestion["reasoning"]
        assert fake.calls == ["Buy groceries"]

    def test_short_description_skips_model(self):
        fake = FakeSuggester()
        app.dependency_overrides[get_category_suggester] = lambda: fake
        res = client.post(
            "/api/v1/suggestions/category", json={"taskDescription": " ab "}, headers=new_owner()
        )
        assert res.status_code == 200
        assert res.json() == {"suggestion": None}
        assert fake.calls == []

    def test_model_failure_degrades_to_no_suggestion(self):
        app.dependency_overrides[get_category_suggester] = lambda: FakeSuggester(fail=True)
        res = client.post(
            "/api/v1/suggestions/category",
            json={"taskDescription": "Book dentist appointment"},
            headers=new_owner(),
        )
        assert res.status_code == 200
        assert res.json() == {"suggestion": None}

    def test_suggestion_requires_identity(self):
        app.dependency_overrides[get_category_suggester] = lambda: FakeSuggester()
        res = client.post("/api/v1/suggestions/category", json={"taskDescription": "Buy groceries"})
        assert res.status_code == 401
