"""
Configuration for real API integration tests.
"""

import os

import pytest

from gemini_structured import GeminiGenerator


@pytest.fixture(scope="session")
def real_generator():
    """Real Gemini generator for API integration tests."""
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        pytest.skip("GEMINI_API_KEY required for API tests")

    return GeminiGenerator(model="gemini-2.0-flash", api_key=api_key)


@pytest.fixture
def api_rate_limiter():
    """Ensure API tests don't exceed rate limits."""
    import time

    time.sleep(5)  # 5 second delay between API tests
    yield
    time.sleep(1)
