"""
Shared pytest fixtures and path setup for unit tests.
"""

import os
import sys
from pathlib import Path

# Keep developer credentials and overrides out of the test run.
for _var in ("OPENAI_API_KEY", "OPENAI_MODEL", "OPENAI_BASE_URL", "OLLAMA_MODEL", "OLLAMA_BASE", "QUILL_DEFAULT_PROVIDER"):
    os.environ.pop(_var, None)

# Add backend/src to sys.path so quill.* imports work when running pytest from repo root.
PROJECT_SRC = Path(__file__).resolve().parents[2]
if str(PROJECT_SRC) not in sys.path:
    sys.path.insert(0, str(PROJECT_SRC))

import pytest

import quill.providers  # noqa: F401  (registers built-in producers)
from quill.core.cancellation import CancellationToken
from quill.core.config import Settings
from tests.unit.providers.shared import OLLAMA_BASE, OPENAI_BASE


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        openai_api_key=None,
        openai_model="gpt-4o-mini",
        openai_base_url=OPENAI_BASE,
        ollama_model="llama3.1",
        ollama_base=OLLAMA_BASE,
        default_provider="ollama",
    )


@pytest.fixture
def settings_with_key(settings: Settings) -> Settings:
    return settings.model_copy(update={"openai_api_key": "sk-test-key"})


@pytest.fixture
def token() -> CancellationToken:
    return CancellationToken()
