"""Shared async HTTP client.

A single ``httpx.AsyncClient`` is reused for GraphQL calls and OAuth token
exchanges so the connection pool survives across tool calls.
"""

import logging
from typing import Optional

import httpx

from ..config import get_settings

logger = logging.getLogger(__name__)

_http_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    """Return the shared HTTP client, creating it on first use."""
    global _http_client
    if _http_client is None or _http_client.is_closed:
        settings = get_settings()
        _http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout),
            headers={"User-Agent": f"{settings.app_name}/{settings.app_version}"},
        )
        logger.debug("Created shared HTTP client (timeout=%.1fs)", settings.http_timeout)
    return _http_client


async def close_http_client() -> None:
    """Close the shared HTTP client if it was created."""
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
        logger.debug("Closed shared HTTP client")
