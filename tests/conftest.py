import os
import uuid

import pytest

# Tests run against the in-memory backend with header-based identity and no model key
os.environ["PERSISTENCE_BACKEND"] = "memory"
os.environ["ENABLE_BASIC_AUTH"] = "false"
os.environ.pop("GEMINI_API_KEY", None)
os.environ.pop("GOOGLE_API_KEY", None)


@pytest.fixture
def owner_id() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"
