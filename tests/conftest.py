"""
Global test configuration with support for different test types.
"""

import logging
import os
from unittest.mock import MagicMock, patch

import pytest

from gemini_structured import RetryEngine, StructuredSettings
from gemini_structured.instrumentation import InMemoryObserver


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def isolate_gemini_env(request, monkeypatch):
    """Ensure a clean GEMINI_* environment for each test.

    - Removes all GEMINI_* variables before each test
    - Leaves non-GEMINI_* variables intact for stability

    Escape hatches:
      - @pytest.mark.allow_env_pollution: keep current env unchanged
      - tests marked with @pytest.mark.api automatically bypass isolation
        so real environment can be used when explicitly running API tests.
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return

    for key in list(os.environ.keys()):
        if key.startswith("GEMINI_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Keep SDK transport logging out of test output."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)


# --- Test Environment Markers ---
def pytest_configure(config):
    """Configure custom markers for test organization."""
    markers = [
        "unit: Fast, isolated unit tests",
        "contract: Invariants of the construct loop that must never regress",
        "api: Real API integration tests (requires API key)",
        "allow_env_pollution: Keep GEMINI_* environment variables for this test",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


def pytest_collection_modifyitems(config, items):  # noqa: ARG001
    """Automatically skip API tests when API key is unavailable."""
    if not (os.getenv("GEMINI_API_KEY") and os.getenv("ENABLE_API_TESTS")):
        skip_api = pytest.mark.skip(
            reason="API tests require GEMINI_API_KEY and ENABLE_API_TESTS=1",
        )
        for item in items:
            if "api" in item.keywords:
                item.add_marker(skip_api)


# --- Core Fixtures ---


@pytest.fixture
def mock_api_key():
    """Provide a consistent, fake API key for tests."""
    return "test_api_key_12345_67890_abcdef_ghijkl"


@pytest.fixture
def sleeps():
    """Delays requested by the engine, recorded instead of slept."""
    return []


@pytest.fixture
def engine(sleeps):
    """A RetryEngine with default settings that never actually sleeps."""
    return RetryEngine(StructuredSettings(), sleep=sleeps.append)


@pytest.fixture
def observer():
    """An in-memory observer to assert on lifecycle events."""
    return InMemoryObserver()


@pytest.fixture
def mock_genai_client():
    """Patch the SDK client class so no network client is ever created."""
    with patch("gemini_structured.client.gemini_generator.genai.Client") as mock_cls:
        mock_cls.return_value = MagicMock()
        yield mock_cls
