from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends

from ..auth import get_owner_dependency
from ..errors import SuggestionUnavailable
from ..models import TaskCategory
from ..schemas import CategoryList, SuggestCategoryInput, SuggestCategoryOutput, SuggestionResponse
from ..settings import get_settings
from ..suggestions import CategorySuggester, get_suggester

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["suggestions"])

_owner = get_owner_dependency()


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_category_suggester() -> CategorySuggester:
    """Process-wide suggester, so the model client is reused across requests."""
    return get_suggester()


# PUBLIC_INTERFACE
@router.get(
    "/categories",
    response_model=CategoryList,
    summary="List Categories",
    description="The fixed set of task categories.",
)
def list_categories() -> CategoryList:
    return CategoryList(categories=list(TaskCategory))


# PUBLIC_INTERFACE
@router.post(
    "/suggestions/category",
    response_model=SuggestionResponse,
    summary="Suggest Category",
    description=(
        "Ask the language model for a category for a task description. "
        "The suggestion is null when the description is too short or no "
        "suggestion could be produced."
    ),
    responses={
        200: {"description": "Suggestion (possibly null)"},
        401: {"description": "Authentication required"},
    },
    dependencies=[Depends(_owner)],
)
async def suggest_category(
    payload: SuggestCategoryInput,
    suggester: CategorySuggester = Depends(get_category_suggester),
) -> SuggestionResponse:
    """
    Return an advisory category suggestion. Failures degrade to null.
    """
    description = payload.task_description.strip()
    if len(description) < get_settings().suggestion_min_length:
        return SuggestionResponse(suggestion=None)

    try:
        suggestion = await suggester.suggest(description)
    except SuggestionUnavailable as e:
        logger.warning("Error suggesting category: %s", e)
        return SuggestionResponse(suggestion=None)
    return SuggestionResponse(suggestion=SuggestCategoryOutput.from_suggestion(suggestion))
