"""
Test configuration and fixtures for the Reve bridge tests.

Provides a signed session token, a mocked ``HttpClient`` for service level
tests and settings that never touch the real upstream.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import jwt
import pytest

from reve.config import Settings
from reve.services.projects import ProjectResolver
from reve.utils.http_client import HttpClient
from reve.utils.session import ReveSession
from tests._helpers import SleepRecorder

PROJECT_ID = "proj-1"
USER_ID = "user-123"
COOKIE = "_session=abcdef0123456789abcdef0123456789"


@pytest.fixture
def token():
    """An HS256 token with a ``sub`` claim; the signature is never checked."""
    return jwt.encode({"sub": USER_ID, "name": "Test User"}, "not-the-real-secret", algorithm="HS256")


@pytest.fixture
def authorization(token):
    return f"Bearer {token}"


@pytest.fixture
def session(authorization):
    return ReveSession.from_credentials(authorization, COOKIE)


@pytest.fixture
def mock_http_client():
    """Mock HTTP client; ``get``/``post`` are ``AsyncMock``s returning httpx responses."""
    return AsyncMock(spec=HttpClient)


@pytest.fixture
def projects(mock_http_client):
    return ProjectResolver(mock_http_client, PROJECT_ID)


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def test_settings(authorization):
    """Settings for tests: explicit project, fast polling, no verbose output."""
    return Settings(
        authorization=authorization,
        cookie=COOKIE,
        project_id=PROJECT_ID,
        max_polling_attempts=3,
        polling_interval_ms=0,
    )
