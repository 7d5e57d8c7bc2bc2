from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from ..auth import get_owner_dependency
from ..repositories import Repository, get_repository
from ..schemas import TodoCreate, TodoOut, TodoToggle, TodoUpdate

router = APIRouter(
    prefix="/api/v1/todos",
    tags=["todos"],
)

_owner = get_owner_dependency()


def _get_repo(repo: Repository = Depends(get_repository)) -> Repository:
    """
    Dependency wrapper for repository to keep signatures clean.
    """
    return repo


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[TodoOut],
    summary="List Todos",
    description="List the current owner's todos, newest first.",
    responses={
        200: {"description": "List retrieved successfully"},
        401: {"description": "Authentication required"},
    },
)
def list_todos(owner_id: str = Depends(_owner), repo: Repository = Depends(_get_repo)) -> List[TodoOut]:
    """
    List todos ordered by creation time, descending.
    """
    return [TodoOut(**it) for it in repo.list(owner_id)]  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TodoOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item and return the created resource.",
    responses={
        201: {"description": "Todo created successfully"},
        422: {"description": "Validation error"},
    },
)
def create_todo(
    payload: TodoCreate,
    owner_id: str = Depends(_owner),
    repo: Repository = Depends(_get_repo),
) -> TodoOut:
    """
    Create a new Todo.
    """
    created = repo.create(owner_id, payload)
    return TodoOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses={
        200: {"description": "Todo found"},
        404: {"description": "Todo not found"},
    },
)
def get_todo(todo_id: str, owner_id: str = Depends(_owner), repo: Repository = Depends(_get_repo)) -> TodoOut:
    """
    Retrieve a single Todo item by its ID.
    """
    return TodoOut(**repo.get(owner_id, todo_id))  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Update Todo",
    description="Partially update fields of a Todo item. A null due_date clears it.",
    responses={
        200: {"description": "Todo updated"},
        404: {"description": "Todo not found"},
    },
)
def patch_todo(
    todo_id: str,
    payload: TodoUpdate,
    owner_id: str = Depends(_owner),
    repo: Repository = Depends(_get_repo),
) -> TodoOut:
    """
    Partial update of a Todo item.
    """
    updated = repo.update(owner_id, todo_id, payload)
    return TodoOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "/{todo_id}/toggle",
    response_model=TodoOut,
    summary="Toggle Todo",
    description="Set the completion flag of a Todo item.",
    responses={
        200: {"description": "Todo updated"},
        404: {"description": "Todo not found"},
    },
)
def toggle_todo(
    todo_id: str,
    payload: TodoToggle,
    owner_id: str = Depends(_owner),
    repo: Repository = Depends(_get_repo),
) -> TodoOut:
    toggled = repo.toggle_complete(owner_id, todo_id, payload.completed)
    return TodoOut(**toggled)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Todo",
    description="Delete a Todo item by ID. Deletion is permanent.",
    responses={
        204: {"description": "Todo deleted"},
        404: {"description": "Todo not found"},
    },
)
def delete_todo(todo_id: str, owner_id: str = Depends(_owner), repo: Repository = Depends(_get_repo)) -> None:
    """
    Delete a Todo. Returns 204 on success, 404 if not found.
    """
    repo.delete(owner_id, todo_id)
    return None
