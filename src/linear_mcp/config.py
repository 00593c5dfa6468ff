"""Configuration management for Linear MCP."""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env" if os.getenv("ENVIRONMENT") != "test" else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "linear-mcp"
    app_version: str = "0.1.0"
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Personal access token; bypasses the OAuth flow when set
    linear_access_token: Optional[str] = Field(default=None)

    # Linear endpoints
    linear_api_url: str = Field(default="https://api.linear.app/graphql")
    linear_authorize_url: str = Field(default="https://linear.app/oauth/authorize")
    linear_token_url: str = Field(default="https://api.linear.app/oauth/token")
    linear_oauth_scopes: str = Field(
        default="read,write,issues:create",
        description="Comma-separated OAuth scopes requested during authorization",
    )

    # Refresh OAuth tokens this many seconds before they expire
    token_refresh_margin_seconds: int = Field(default=300, ge=0)

    # HTTP
    http_timeout: float = Field(default=30.0, gt=0)
    linear_max_retries: int = Field(
        default=0,
        ge=0,
        description="Retries for transient GraphQL failures. 0 disables retry.",
    )

    @field_validator("linear_access_token", mode="before")
    @classmethod
    def validate_access_token(cls, v):
        if v is None:
            return None
        token = str(v).strip()
        if not token or token == "your-linear-access-token":
            return None
        return token

    def get_scopes(self) -> List[str]:
        """Parse OAuth scopes from config."""
        return [s.strip() for s in self.linear_oauth_scopes.split(",") if s.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
