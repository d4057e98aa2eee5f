"""Pytest configuration and fixtures."""

import os
from unittest.mock import MagicMock

import pytest

# Settings are read at import time by get_logger; set them before app modules load
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["DIALECTIC_ENV"] = "test"


@pytest.fixture
def mock_logger():
    """Logger stand-in so tests can assert on emitted diagnostics."""
    return MagicMock()
