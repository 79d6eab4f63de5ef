"""
Pytest configuration and fixtures for Marathon Cloud CLI tests.
"""

import httpx
import pytest

from marathon_cloud.config import reset_settings


@pytest.fixture(autouse=True)
def reset_marathon_settings(monkeypatch):
    """Isolate tests from MARATHON_* variables and cached settings."""
    import os

    for key in list(os.environ):
        if key.startswith("MARATHON_"):
            monkeypatch.delenv(key)
    reset_settings()
    yield
    reset_settings()


# ============================================================================
# HTTP Mocks
# ============================================================================


@pytest.fixture
def mock_api_transport():
    """
    Factory for httpx.MockTransport that records requests.

    Usage:
        transport, requests = mock_api_transport(handler)
    """

    def _create(handler):
        requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        return httpx.MockTransport(_record), requests

    return _create


# ============================================================================
# Test Data Fixtures
# ============================================================================


@pytest.fixture
def sample_run_data():
    """Sample completed run from the API."""
    return {
        "id": "0dfe9125-dad5-42c9-b642-5599530caa79",
        "name": "commit 1a2b3c",
        "link": None,
        "state": "passed",
        "completed": "2024-03-01T12:00:00Z",
        "passed": 12,
        "failed": 0,
        "ignored": 1,
        "total_run_time": 321.5,
        "tests_done": "2024-03-01T11:58:00Z",
        "created": "2024-03-01T11:50:00Z",
        "updated": "2024-03-01T12:00:00Z",
    }
