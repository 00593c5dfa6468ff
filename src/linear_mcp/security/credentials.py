"""Credential types for Linear authentication.

A session holds exactly one credential: a ``PersonalToken`` or an
``OAuthCredential``. Both are frozen; state transitions build a new
credential and swap it in whole.
"""

import dataclasses
import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import ClassVar, Optional, Tuple, Union


class AuthMode(str, enum.Enum):
    """Supported authentication modes."""

    PERSONAL_TOKEN = "pat"
    OAUTH = "oauth"


@dataclass(frozen=True)
class PersonalToken:
    """Long-lived personal API key. Never expires, never refreshes."""

    mode: ClassVar[AuthMode] = AuthMode.PERSONAL_TOKEN

    token: str

    def __repr__(self) -> str:
        return "<PersonalToken(token='***')>"

    @property
    def is_authorized(self) -> bool:
        return bool(self.token)

    @property
    def authorization_value(self) -> str:
        # Linear expects personal API keys without a Bearer prefix
        return self.token


@dataclass(frozen=True)
class OAuthCredential:
    """OAuth application settings plus the token set obtained for them."""

    mode: ClassVar[AuthMode] = AuthMode.OAUTH

    client_id: str
    client_secret: str
    redirect_uri: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scopes: Tuple[str, ...] = ()

    def __repr__(self) -> str:
        return (
            f"<OAuthCredential(client_id='{self.client_id}', "
            f"authorized={self.is_authorized}, expires_at={self.expires_at})>"
        )

    @property
    def is_authorized(self) -> bool:
        """True once the callback exchange produced an access token."""
        return bool(self.access_token)

    @property
    def authorization_value(self) -> str:
        return f"Bearer {self.access_token}"

    def expires_within(self, seconds: float, now: Optional[datetime] = None) -> bool:
        """True if the token expires at or before ``now + seconds``.

        Tokens without an expiry never report as expiring.
        """
        if not self.expires_at:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now + timedelta(seconds=seconds)

    def with_tokens(
        self,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: Optional[datetime],
    ) -> "OAuthCredential":
        return dataclasses.replace(
            self,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )

    def without_tokens(self) -> "OAuthCredential":
        """Same client configuration, back to awaiting an authorization code."""
        return dataclasses.replace(
            self, access_token=None, refresh_token=None, expires_at=None
        )


Credential = Union[PersonalToken, OAuthCredential]
