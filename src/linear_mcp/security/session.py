"""Authentication session lifecycle for the Linear API.

``AuthSession`` owns the process's single credential and enforces the
session state machine::

    Unconfigured --initialize(PAT)--> Authenticated(PAT)
    Unconfigured --initialize(OAuth)--> AwaitingCode
    AwaitingCode --handle_callback ok--> Authenticated(OAuth)
    Authenticated(OAuth) --refresh ok--> Authenticated(OAuth)
    Authenticated(OAuth) --refresh failed--> AwaitingCode

Only ``initialize``, ``handle_callback`` and ``refresh_access_token``
replace the credential, and each does so with a single assignment of a
fully built value.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlencode

import httpx

from ..config import Settings, get_settings
from ..connectors.exceptions import AuthExchangeError, ConfigurationError, StateError
from ..connectors.graphql import GraphQLClient
from .credentials import AuthMode, Credential, OAuthCredential, PersonalToken

logger = logging.getLogger(__name__)


def _require(params: Mapping[str, Any], *keys: str) -> Dict[str, str]:
    missing = [key for key in keys if not params.get(key)]
    if missing:
        raise ConfigurationError(
            f"Missing required parameters: {', '.join(missing)}"
        )
    return {key: str(params[key]) for key in keys}


class AuthSession:
    """Holds the current Linear credential and drives its lifecycle."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._credential: Optional[Credential] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AuthSession":
        """Build a session, authenticating immediately if a PAT is configured."""
        session = cls(settings)
        if session.settings.linear_access_token:
            session.initialize(
                AuthMode.PERSONAL_TOKEN,
                {"token": session.settings.linear_access_token},
            )
        return session

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    @property
    def mode(self) -> Optional[AuthMode]:
        return self._credential.mode if self._credential else None

    # -- state transitions -------------------------------------------------

    def initialize(self, mode: Union[AuthMode, str], params: Mapping[str, Any]) -> None:
        """Configure the session for a personal token or an OAuth flow.

        A personal token authenticates the session immediately. OAuth
        parameters are stored and the session waits for a callback code.

        Raises:
            ConfigurationError: Unknown mode, missing parameters, or the
                session is already authenticated and this is not an OAuth
                restart.
        """
        try:
            mode = AuthMode(mode)
        except ValueError:
            raise ConfigurationError(f"Unknown authentication mode: {mode!r}") from None

        if self.is_authenticated() and not (
            mode is AuthMode.OAUTH and self.mode is AuthMode.OAUTH
        ):
            raise ConfigurationError(
                f"Session is already authenticated with {self.mode.value}; "
                f"cannot re-initialize with {mode.value}"
            )

        if mode is AuthMode.PERSONAL_TOKEN:
            token = params.get("token") or params.get("accessToken")
            if not token:
                raise ConfigurationError("Missing required parameter: token")
            self._credential = PersonalToken(token=str(token))
            logger.info("Authenticated with personal access token")
            return

        values = _require(params, "clientId", "clientSecret", "redirectUri")
        restarting = self.mode is AuthMode.OAUTH
        self._credential = OAuthCredential(
            client_id=values["clientId"],
            client_secret=values["clientSecret"],
            redirect_uri=values["redirectUri"],
            scopes=tuple(self.settings.get_scopes()),
        )
        logger.info(
            "%s OAuth flow for client %s",
            "Restarted" if restarting else "Initialized",
            values["clientId"],
        )

    def get_authorization_url(self, state: Optional[str] = None) -> str:
        """Build the Linear authorization URL the user must visit.

        Raises:
            StateError: Session is not awaiting an OAuth authorization code.
        """
        credential = self._awaiting_code("request an authorization URL")
        query = {
            "client_id": credential.client_id,
            "redirect_uri": credential.redirect_uri,
            "response_type": "code",
            "scope": ",".join(credential.scopes),
        }
        if state:
            query["state"] = state
        return f"{self.settings.linear_authorize_url}?{urlencode(query)}"

    async def handle_callback(self, code: str) -> None:
        """Exchange an authorization code for an access/refresh token pair.

        On failure the stored credential is left exactly as it was.

        Raises:
            StateError: Session is not awaiting an OAuth authorization code.
            AuthExchangeError: Transport failure or the provider rejected the code.
        """
        credential = self._awaiting_code("handle an OAuth callback")
        if not code:
            raise AuthExchangeError("Missing authorization code")

        token_info = await self._request_tokens({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": credential.redirect_uri,
            "client_id": credential.client_id,
            "client_secret": credential.client_secret,
        })

        self._credential = credential.with_tokens(
            access_token=token_info["access_token"],
            refresh_token=token_info.get("refresh_token"),
            expires_at=self._expires_at(token_info),
        )
        logger.info("OAuth authorization completed for client %s", credential.client_id)

    async def refresh_access_token(self) -> None:
        """Obtain a new access token using the stored refresh token.

        A missing or rejected refresh token drops the token set so the
        session returns to awaiting an authorization code.

        Raises:
            StateError: Session is not an authenticated OAuth session.
            AuthExchangeError: No refresh token, or the provider rejected it.
        """
        credential = self._credential
        if not isinstance(credential, OAuthCredential):
            raise StateError("Token refresh is only available for OAuth sessions")
        if not credential.is_authorized:
            raise StateError("OAuth session is not authenticated; complete the callback first")

        if not credential.refresh_token:
            self._credential = credential.without_tokens()
            logger.warning("No refresh token available; re-authorization required")
            raise AuthExchangeError("No refresh token available; re-authorize with linear_auth")

        try:
            token_info = await self._request_tokens({
                "grant_type": "refresh_token",
                "refresh_token": credential.refresh_token,
                "client_id": credential.client_id,
                "client_secret": credential.client_secret,
            })
        except AuthExchangeError:
            self._credential = credential.without_tokens()
            logger.warning("Token refresh rejected; re-authorization required")
            raise

        self._credential = credential.with_tokens(
            access_token=token_info["access_token"],
            refresh_token=token_info.get("refresh_token") or credential.refresh_token,
            expires_at=self._expires_at(token_info),
        )
        logger.info("Refreshed OAuth access token")

    # -- queries -----------------------------------------------------------

    def is_authenticated(self) -> bool:
        """True iff a usable credential is present."""
        return self._credential is not None and self._credential.is_authorized

    def needs_token_refresh(self, now: Optional[datetime] = None) -> bool:
        """True iff an authenticated OAuth token expires within the safety margin."""
        credential = self._credential
        if not isinstance(credential, OAuthCredential) or not credential.is_authorized:
            return False
        return credential.expires_within(
            self.settings.token_refresh_margin_seconds, now=now
        )

    def get_client(self) -> GraphQLClient:
        """Return a GraphQL client carrying the current credential.

        Built per call so a refreshed token is picked up immediately.

        Raises:
            StateError: Session is not authenticated.
        """
        credential = self._credential
        if credential is None or not credential.is_authorized:
            raise StateError("Not authenticated. Call linear_auth first.")
        return GraphQLClient(
            endpoint=self.settings.linear_api_url,
            auth_header="Authorization",
            auth_value=credential.authorization_value,
            max_retries=self.settings.linear_max_retries,
        )

    # -- helpers -----------------------------------------------------------

    def _awaiting_code(self, action: str) -> OAuthCredential:
        credential = self._credential
        if not isinstance(credential, OAuthCredential):
            raise StateError(f"Cannot {action}: OAuth flow has not been initialized")
        if credential.is_authorized:
            raise StateError(f"Cannot {action}: session is already authenticated")
        return credential

    async def _request_tokens(self, data: Dict[str, str]) -> Dict[str, Any]:
        from ..connectors.http_client import get_http_client

        grant_type = data["grant_type"]
        try:
            response = await get_http_client().post(
                self.settings.linear_token_url,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise AuthExchangeError(
                f"Token request failed ({grant_type}): {type(exc).__name__}"
            ) from exc

        if response.status_code != 200:
            raise AuthExchangeError(
                f"Token endpoint rejected {grant_type}: HTTP {response.status_code}",
                status_code=response.status_code,
                response_body=response.text[:500],
            )

        try:
            token_info = response.json()
        except ValueError as exc:
            raise AuthExchangeError("Token endpoint returned invalid JSON") from exc

        if not isinstance(token_info, dict) or not token_info.get("access_token"):
            raise AuthExchangeError("No access token received")

        if "expires_in" in token_info:
            try:
                token_info["expires_in"] = int(token_info["expires_in"])
            except (TypeError, ValueError) as exc:
                raise AuthExchangeError(
                    f"Token endpoint returned invalid expires_in: {token_info['expires_in']!r}"
                ) from exc
        return token_info

    @staticmethod
    def _expires_at(token_info: Mapping[str, Any]) -> Optional[datetime]:
        if "expires_in" not in token_info:
            return None
        return datetime.now(timezone.utc) + timedelta(seconds=token_info["expires_in"])
