"""Authentication for the Linear API."""

from .credentials import AuthMode, Credential, OAuthCredential, PersonalToken
from .session import AuthSession

__all__ = [
    "AuthMode",
    "AuthSession",
    "Credential",
    "OAuthCredential",
    "PersonalToken",
]
