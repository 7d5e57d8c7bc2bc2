"""
Category suggestions from a hosted language model.

A single prompt asks the model for one of the fixed categories and a short
reasoning, as JSON. The reply is treated as untrusted text: it is parsed,
checked against the fixed set, and anything else becomes
SuggestionUnavailable. No retries.
"""
from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import ValidationError

from .errors import SuggestionUnavailable, TodoValidationError
from .models import TASK_CATEGORIES, coerce_category
from .schemas import CategorySuggestion, SuggestCategoryOutput
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

MIN_SUGGESTION_LENGTH = 3

PROMPT_TEMPLATE = """You are a task categorization expert. Given the description of a task, you will suggest a category for it.

The available categories are: {categories}.

Respond with a JSON object with two fields:
- "suggestedCategory": exactly one of the available categories
- "reasoning": a brief reasoning for your suggestion

Task description: {task_description}
"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


# PUBLIC_INTERFACE
def build_prompt(task_description: str) -> str:
    """Render the fixed prompt template for a description."""
    categories = ", ".join(TASK_CATEGORIES[:-1]) + f", or {TASK_CATEGORIES[-1]}"
    return PROMPT_TEMPLATE.format(categories=categories, task_description=task_description)


# PUBLIC_INTERFACE
def parse_suggestion(text: Optional[str]) -> CategorySuggestion:
    """
    Parse the model's JSON reply into a CategorySuggestion.

    Raises SuggestionUnavailable when the reply is empty, not JSON, does not
    match the output schema, or names a category outside the fixed set.
    """
    if not text or not text.strip():
        raise SuggestionUnavailable("Empty response from the suggestion model")

    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        output = SuggestCategoryOutput.model_validate(json.loads(cleaned))
    except (json.JSONDecodeError, ValidationError) as e:
        raise SuggestionUnavailable(f"Malformed suggestion response: {e}") from e

    try:
        label = coerce_category(output.suggested_category)
    except TodoValidationError as e:
        raise SuggestionUnavailable(
            f"Suggested category {output.suggested_category!r} is not an allowed category"
        ) from e
    return CategorySuggestion(label=label, rationale=output.reasoning.strip())


# PUBLIC_INTERFACE
class CategorySuggester(ABC):
    """Contract for anything that can suggest a category for a description."""

    @abstractmethod
    async def suggest(self, description: str) -> CategorySuggestion:
        """Return a suggestion or raise SuggestionUnavailable."""


class GeminiCategorySuggester(CategorySuggester):
    """
    CategorySuggester backed by a Gemini model through the google-genai SDK.

    The client is created lazily so the service starts without an API key;
    the first suggestion then fails with SuggestionUnavailable.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-2.0-flash",
        client: Any = None,
        temperature: float = 0.2,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self.temperature = temperature
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._api_key:
                raise SuggestionUnavailable("Suggestion model API key not configured.")
            from google import genai

            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def _generation_config(self) -> Any:
        from google.genai import types

        return types.GenerateContentConfig(
            temperature=self.temperature,
            response_mime_type="application/json",
            response_schema=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "suggestedCategory": types.Schema(
                        type=types.Type.STRING,
                        description="One of: " + ", ".join(TASK_CATEGORIES),
                    ),
                    "reasoning": types.Schema(type=types.Type.STRING),
                },
                required=["suggestedCategory", "reasoning"],
            ),
        )

    async def suggest(self, description: str) -> CategorySuggestion:
        if not description or not description.strip():
            raise SuggestionUnavailable("Task description is empty")

        client = self._get_client()
        logger.debug("Requesting category suggestion from model %s", self.model)
        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=build_prompt(description.strip()),
                config=self._generation_config(),
            )
        except Exception as e:
            logger.warning("Category suggestion request failed: %s", e)
            raise SuggestionUnavailable(f"Suggestion request failed: {e}") from e

        feedback = getattr(response, "prompt_feedback", None)
        if feedback is not None and getattr(feedback, "block_reason", None):
            raise SuggestionUnavailable(f"Prompt blocked: {feedback.block_reason}")

        suggestion = parse_suggestion(getattr(response, "text", None))
        logger.debug("Model suggested %s", suggestion.label.value)
        return suggestion


# PUBLIC_INTERFACE
def get_suggester(settings: Optional[Settings] = None) -> CategorySuggester:
    """Return the configured CategorySuggester."""
    settings = settings or get_settings()
    return GeminiCategorySuggester(api_key=settings.gemini_api_key, model=settings.gemini_model)
