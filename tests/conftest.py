"""Pytest configuration and fixtures."""

import os

import pytest

from docpatch.core.config import get_settings


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["DOCPATCH_ENV"] = "test"
    os.environ["GENERATION_PROVIDER"] = "openai"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ.pop("SUPABASE_URL", None)
    os.environ.pop("SUPABASE_SERVICE_ROLE_KEY", None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
