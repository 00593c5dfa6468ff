"""Tests for AuthSession (initialize, authorization URL, callback, refresh).

Verifies:
- A session is authenticated only after the step that completes its mode.
- Re-initialization is rejected except to restart an OAuth flow.
- A failed callback leaves the stored credential untouched.
- A failed refresh drops the token set and returns to awaiting a code.
- get_client() always carries the current token.

The token endpoint is reached through the shared HTTP client, patched at
linear_mcp.connectors.http_client.get_http_client.
"""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from linear_mcp.config import Settings
from linear_mcp.connectors.exceptions import AuthExchangeError, ConfigurationError, StateError
from linear_mcp.security.credentials import AuthMode, OAuthCredential, PersonalToken
from linear_mcp.security.session import AuthSession


class TestInitialize:
    """Tests for AuthSession.initialize()."""

    def test_new_session_is_unconfigured(self, settings):
        session = AuthSession(settings)

        assert session.credential is None
        assert session.mode is None
        assert not session.is_authenticated()

    def test_personal_token_authenticates_immediately(self, settings):
        session = AuthSession(settings)
        session.initialize(AuthMode.PERSONAL_TOKEN, {"token": "pat_123"})

        assert session.is_authenticated()
        assert session.credential == PersonalToken(token="pat_123")

    def test_personal_token_accepts_access_token_key(self, settings):
        session = AuthSession(settings)
        session.initialize("pat", {"accessToken": "pat_123"})

        assert session.is_authenticated()
        assert session.mode is AuthMode.PERSONAL_TOKEN

    def test_personal_token_missing(self, settings):
        session = AuthSession(settings)

        with pytest.raises(ConfigurationError, match="token"):
            session.initialize(AuthMode.PERSONAL_TOKEN, {})

        assert session.credential is None

    def test_oauth_is_pending_until_callback(self, oauth_session):
        assert oauth_session.mode is AuthMode.OAUTH
        assert not oauth_session.is_authenticated()

    def test_oauth_stores_scopes_from_settings(self, oauth_session):
        assert oauth_session.credential.scopes == ("read", "write", "issues:create")

    def test_oauth_missing_fields(self, settings):
        session = AuthSession(settings)

        with pytest.raises(ConfigurationError, match="clientSecret, redirectUri"):
            session.initialize(AuthMode.OAUTH, {"clientId": "c"})

        assert session.credential is None

    def test_unknown_mode(self, settings):
        with pytest.raises(ConfigurationError, match="Unknown authentication mode"):
            AuthSession(settings).initialize("basic", {"token": "x"})

    def test_reinitialize_pat_rejected(self, pat_session):
        with pytest.raises(ConfigurationError, match="already authenticated"):
            pat_session.initialize(AuthMode.PERSONAL_TOKEN, {"token": "other"})

        assert pat_session.credential.token == "pat_123"

    def test_oauth_over_authenticated_pat_rejected(self, pat_session, oauth_params):
        with pytest.raises(ConfigurationError, match="already authenticated"):
            pat_session.initialize(AuthMode.OAUTH, oauth_params)

        assert pat_session.mode is AuthMode.PERSONAL_TOKEN

    def test_pat_over_authenticated_oauth_rejected(self, authorized_oauth_session):
        with pytest.raises(ConfigurationError):
            authorized_oauth_session.initialize(AuthMode.PERSONAL_TOKEN, {"token": "pat_123"})

        assert authorized_oauth_session.is_authenticated()

    def test_oauth_restart_allowed(self, authorized_oauth_session):
        authorized_oauth_session.initialize(
            AuthMode.OAUTH,
            {"clientId": "c2", "clientSecret": "s2", "redirectUri": "https://cb2"},
        )

        assert not authorized_oauth_session.is_authenticated()
        assert authorized_oauth_session.credential.client_id == "c2"

    def test_pat_after_pending_oauth_allowed(self, oauth_session):
        oauth_session.initialize(AuthMode.PERSONAL_TOKEN, {"token": "pat_123"})

        assert oauth_session.is_authenticated()
        assert oauth_session.mode is AuthMode.PERSONAL_TOKEN


class TestFromSettings:
    """Tests for AuthSession.from_settings()."""

    def test_bootstraps_personal_token(self):
        settings = Settings(_env_file=None, linear_access_token="pat_123")
        session = AuthSession.from_settings(settings)

        assert session.is_authenticated()
        assert session.mode is AuthMode.PERSONAL_TOKEN

    def test_without_token(self, settings):
        session = AuthSession.from_settings(settings)

        assert not session.is_authenticated()
        assert session.credential is None


class TestAuthorizationUrl:
    """Tests for AuthSession.get_authorization_url()."""

    def test_contains_client_and_redirect(self, oauth_session):
        url = oauth_session.get_authorization_url()

        assert url.startswith("https://linear.app/oauth/authorize?")
        assert "client_id=c" in url
        assert "redirect_uri=https%3A%2F%2Fcb" in url

    def test_query_parameters(self, oauth_session):
        query = parse_qs(urlparse(oauth_session.get_authorization_url()).query)

        assert query["response_type"] == ["code"]
        assert query["scope"] == ["read,write,issues:create"]
        assert "state" not in query

    def test_deterministic(self, oauth_session):
        assert oauth_session.get_authorization_url() == oauth_session.get_authorization_url()

    def test_state_included_when_given(self, oauth_session):
        query = parse_qs(urlparse(oauth_session.get_authorization_url(state="xyz")).query)
        assert query["state"] == ["xyz"]

    def test_rejected_for_personal_token(self, pat_session):
        with pytest.raises(StateError):
            pat_session.get_authorization_url()

    def test_rejected_when_unconfigured(self, settings):
        with pytest.raises(StateError):
            AuthSession(settings).get_authorization_url()

    def test_rejected_when_authenticated(self, authorized_oauth_session):
        with pytest.raises(StateError, match="already authenticated"):
            authorized_oauth_session.get_authorization_url()


@pytest.mark.asyncio
class TestHandleCallback:
    """Tests for AuthSession.handle_callback()."""

    async def test_success(self, oauth_session, mock_http_client, make_response):
        mock_http_client.post.return_value = make_response({
            "access_token": "access-1",
            "refresh_token": "refresh-1",
            "expires_in": 86399,
        })

        before = datetime.now(timezone.utc)
        await oauth_session.handle_callback("good-code")

        credential = oauth_session.credential
        assert oauth_session.is_authenticated()
        assert credential.access_token == "access-1"
        assert credential.refresh_token == "refresh-1"
        assert credential.expires_at >= before + timedelta(seconds=86399)

        call = mock_http_client.post.call_args
        assert call.args[0] == "https://api.linear.app/oauth/token"
        assert call.kwargs["data"] == {
            "grant_type": "authorization_code",
            "code": "good-code",
            "redirect_uri": "https://cb",
            "client_id": "c",
            "client_secret": "s",
        }

    async def test_without_expiry(self, oauth_session, mock_http_client, make_response):
        mock_http_client.post.return_value = make_response({"access_token": "access-1"})

        await oauth_session.handle_callback("good-code")

        assert oauth_session.credential.expires_at is None
        assert not oauth_session.needs_token_refresh()

    @pytest.mark.parametrize("expires_in", [None, "soon"])
    async def test_invalid_expiry(self, oauth_session, mock_http_client, make_response, expires_in):
        before = oauth_session.credential
        mock_http_client.post.return_value = make_response(
            {"access_token": "access-1", "expires_in": expires_in}
        )

        with pytest.raises(AuthExchangeError, match="expires_in"):
            await oauth_session.handle_callback("code")

        assert oauth_session.credential is before

    async def test_numeric_string_expiry(self, oauth_session, mock_http_client, make_response):
        mock_http_client.post.return_value = make_response(
            {"access_token": "access-1", "expires_in": "3600"}
        )

        await oauth_session.handle_callback("code")

        assert oauth_session.credential.expires_at is not None

    async def test_rejected_code_leaves_session_unchanged(
        self, oauth_session, mock_http_client, make_response
    ):
        before = oauth_session.credential
        mock_http_client.post.return_value = make_response(
            {"error": "invalid_grant"}, status_code=400, text='{"error":"invalid_grant"}'
        )

        with pytest.raises(AuthExchangeError) as exc_info:
            await oauth_session.handle_callback("bad-code")

        assert exc_info.value.status_code == 400
        assert not oauth_session.is_authenticated()
        assert oauth_session.credential is before

    async def test_transport_error(self, oauth_session, mock_http_client):
        before = oauth_session.credential
        mock_http_client.post.side_effect = httpx.ConnectError("refused")

        with pytest.raises(AuthExchangeError, match="ConnectError"):
            await oauth_session.handle_callback("code")

        assert oauth_session.credential is before

    async def test_missing_access_token(self, oauth_session, mock_http_client, make_response):
        mock_http_client.post.return_value = make_response({"token_type": "Bearer"})

        with pytest.raises(AuthExchangeError, match="No access token"):
            await oauth_session.handle_callback("code")

        assert not oauth_session.is_authenticated()

    async def test_invalid_json(self, oauth_session, mock_http_client, make_response):
        response = make_response()
        response.json.side_effect = ValueError("not json")
        mock_http_client.post.return_value = response

        with pytest.raises(AuthExchangeError, match="invalid JSON"):
            await oauth_session.handle_callback("code")

    async def test_rejected_for_personal_token(self, pat_session, mock_http_client):
        with pytest.raises(StateError):
            await pat_session.handle_callback("code")

        mock_http_client.post.assert_not_awaited()

    async def test_rejected_when_already_authenticated(
        self, authorized_oauth_session, mock_http_client
    ):
        with pytest.raises(StateError):
            await authorized_oauth_session.handle_callback("code")

        mock_http_client.post.assert_not_awaited()


class TestNeedsTokenRefresh:
    """Tests for AuthSession.needs_token_refresh()."""

    def test_personal_token_never(self, pat_session):
        far_future = datetime.now(timezone.utc) + timedelta(days=3650)
        assert not pat_session.needs_token_refresh()
        assert not pat_session.needs_token_refresh(now=far_future)

    def test_pending_oauth_never(self, oauth_session):
        assert not oauth_session.needs_token_refresh()

    def test_within_margin(self, oauth_session, authorize):
        authorize(oauth_session, expires_in=60)
        assert oauth_session.needs_token_refresh()

    def test_outside_margin(self, oauth_session, authorize):
        authorize(oauth_session, expires_in=3600)
        assert not oauth_session.needs_token_refresh()

    def test_already_expired(self, oauth_session, authorize):
        authorize(oauth_session, expires_in=-10)
        assert oauth_session.needs_token_refresh()

    def test_custom_now(self, authorized_oauth_session):
        later = datetime.now(timezone.utc) + timedelta(hours=2)
        assert authorized_oauth_session.needs_token_refresh(now=later)

    def test_margin_from_settings(self, oauth_params, authorize):
        settings = Settings(_env_file=None, token_refresh_margin_seconds=0)
        session = AuthSession(settings)
        session.initialize(AuthMode.OAUTH, oauth_params)
        authorize(session, expires_in=60)

        assert not session.needs_token_refresh()


@pytest.mark.asyncio
class TestRefreshAccessToken:
    """Tests for AuthSession.refresh_access_token()."""

    async def test_success(self, authorized_oauth_session, mock_http_client, make_response):
        mock_http_client.post.return_value = make_response({
            "access_token": "access-2",
            "refresh_token": "refresh-2",
            "expires_in": 3600,
        })

        await authorized_oauth_session.refresh_access_token()

        credential = authorized_oauth_session.credential
        assert credential.access_token == "access-2"
        assert credential.refresh_token == "refresh-2"
        assert authorized_oauth_session.is_authenticated()

        data = mock_http_client.post.call_args.kwargs["data"]
        assert data["grant_type"] == "refresh_token"
        assert data["refresh_token"] == "refresh-1"
        assert data["client_id"] == "c"

    async def test_keeps_refresh_token_when_not_rotated(
        self, authorized_oauth_session, mock_http_client, make_response
    ):
        mock_http_client.post.return_value = make_response({"access_token": "access-2"})

        await authorized_oauth_session.refresh_access_token()

        assert authorized_oauth_session.credential.refresh_token == "refresh-1"

    async def test_rejected_refresh_downgrades_session(
        self, authorized_oauth_session, mock_http_client, make_response
    ):
        mock_http_client.post.return_value = make_response(
            {"error": "invalid_grant"}, status_code=400
        )

        with pytest.raises(AuthExchangeError):
            await authorized_oauth_session.refresh_access_token()

        credential = authorized_oauth_session.credential
        assert not authorized_oauth_session.is_authenticated()
        assert isinstance(credential, OAuthCredential)
        assert credential.refresh_token is None
        assert credential.client_id == "c"
        # Back to awaiting a code
        assert "client_id=c" in authorized_oauth_session.get_authorization_url()

    async def test_invalid_expiry_downgrades_session(
        self, authorized_oauth_session, mock_http_client, make_response
    ):
        mock_http_client.post.return_value = make_response(
            {"access_token": "access-2", "expires_in": None}
        )

        with pytest.raises(AuthExchangeError, match="expires_in"):
            await authorized_oauth_session.refresh_access_token()

        assert not authorized_oauth_session.is_authenticated()
        assert authorized_oauth_session.credential.access_token is None
        assert authorized_oauth_session.credential.client_id == "c"

    async def test_missing_refresh_token(self, oauth_session, authorize, mock_http_client):
        authorize(oauth_session, refresh_token=None)

        with pytest.raises(AuthExchangeError, match="No refresh token"):
            await oauth_session.refresh_access_token()

        assert not oauth_session.is_authenticated()
        mock_http_client.post.assert_not_awaited()

    async def test_rejected_for_personal_token(self, pat_session, mock_http_client):
        with pytest.raises(StateError):
            await pat_session.refresh_access_token()

        assert pat_session.is_authenticated()

    async def test_rejected_when_pending(self, oauth_session, mock_http_client):
        with pytest.raises(StateError):
            await oauth_session.refresh_access_token()


@pytest.mark.asyncio
class TestGetClient:
    """Tests for AuthSession.get_client()."""

    async def test_personal_token_client(self, pat_session):
        client = pat_session.get_client()

        assert client.endpoint == "https://api.linear.app/graphql"
        assert client.auth_header == "Authorization"
        assert client.auth_value == "pat_123"
        assert client.max_retries == 0

    async def test_oauth_client_uses_bearer(self, authorized_oauth_session):
        assert authorized_oauth_session.get_client().auth_value == "Bearer access-1"

    async def test_client_follows_refresh(
        self, authorized_oauth_session, mock_http_client, make_response
    ):
        mock_http_client.post.return_value = make_response({"access_token": "access-2"})

        await authorized_oauth_session.refresh_access_token()

        assert authorized_oauth_session.get_client().auth_value == "Bearer access-2"

    async def test_unauthenticated(self, oauth_session):
        with pytest.raises(StateError, match="Not authenticated"):
            oauth_session.get_client()

    async def test_retry_budget_from_settings(self):
        settings = Settings(_env_file=None, linear_max_retries=2)
        session = AuthSession(settings)
        session.initialize(AuthMode.PERSONAL_TOKEN, {"token": "pat_123"})

        assert session.get_client().max_retries == 2
