"""Test configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# Set test environment variables BEFORE importing the package
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("LINEAR_ACCESS_TOKEN", None)

from linear_mcp.config import Settings
from linear_mcp.security.credentials import AuthMode
from linear_mcp.security.session import AuthSession


def _make_response(json_data=None, status_code=200, text=""):
    """Build a mock httpx.Response-like object.

    The mock has .json(), .status_code, .text and .raise_for_status() (no-op).
    """
    resp = MagicMock()
    resp.json.return_value = json_data
    resp.status_code = status_code
    resp.text = text
    resp.raise_for_status = MagicMock()
    return resp


@pytest.fixture
def make_response():
    """Factory for mock HTTP responses."""
    return _make_response


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, linear_access_token=None)


@pytest.fixture
def mock_http_client():
    """Patch the shared HTTP client with an AsyncMock."""
    client = AsyncMock()
    with patch("linear_mcp.connectors.http_client.get_http_client", return_value=client):
        yield client


@pytest.fixture
def pat_session(settings) -> AuthSession:
    """Session authenticated with a personal access token."""
    session = AuthSession(settings)
    session.initialize(AuthMode.PERSONAL_TOKEN, {"token": "pat_123"})
    return session


@pytest.fixture
def oauth_params():
    return {"clientId": "c", "clientSecret": "s", "redirectUri": "https://cb"}


@pytest.fixture
def oauth_session(settings, oauth_params) -> AuthSession:
    """Session waiting for an OAuth authorization code."""
    session = AuthSession(settings)
    session.initialize(AuthMode.OAUTH, oauth_params)
    return session


def _authorize(
    session: AuthSession,
    access_token: str = "access-1",
    refresh_token="refresh-1",
    expires_in: float = 3600,
) -> AuthSession:
    """Put an OAuth session straight into the authenticated state."""
    session._credential = session.credential.with_tokens(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    )
    return session


@pytest.fixture
def authorized_oauth_session(oauth_session) -> AuthSession:
    """OAuth session holding a token that expires in an hour."""
    return _authorize(oauth_session)


@pytest.fixture
def authorize():
    """Helper that marks an OAuth session as authenticated."""
    return _authorize
