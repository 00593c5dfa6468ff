"""Lightweight async GraphQL client for the Linear API.

Sends one query or mutation document per ``execute`` call over the shared
HTTP client and returns the ``data`` portion of the response.
"""

import logging
from typing import Any, Dict, Optional

from .exceptions import RemoteOperationError

logger = logging.getLogger(__name__)

# Client errors whose body is not inspected; retry.py maps them by status
_STATUS_ONLY_CODES = {401, 403, 404, 429}


def _raise_for_graphql_errors(body: Any, status_code: int) -> None:
    errors = body.get("errors") if isinstance(body, dict) else None
    if not errors:
        return
    error_messages = "; ".join(
        e.get("message", "Unknown error") if isinstance(e, dict) else str(e)
        for e in errors
    )
    logger.debug("GraphQL errors: %s", error_messages)
    raise RemoteOperationError(
        f"GraphQL error: {error_messages}",
        status_code=status_code,
        response_body=str(errors)[:500],
    )


class GraphQLClient:
    """Async GraphQL client that uses the shared HTTP client."""

    def __init__(
        self,
        endpoint: str,
        auth_header: str = "Authorization",
        auth_value: str = "",
        max_retries: int = 0,
    ):
        self.endpoint = endpoint
        self.auth_header = auth_header
        self.auth_value = auth_value
        self.max_retries = max_retries

    async def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Execute a single GraphQL query.

        Linear answers validation failures and unknown ids with HTTP 400
        and an ``errors`` array; those messages are kept.

        Args:
            query: GraphQL query string.
            variables: Optional query variables.

        Returns:
            The "data" portion of the response.

        Raises:
            RemoteOperationError: If the request fails or the response
                contains GraphQL errors.
        """
        from .http_client import get_http_client
        from .retry import retry_with_backoff

        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        async def _do_request():
            client = get_http_client()
            response = await client.post(
                self.endpoint,
                json=payload,
                headers={
                    self.auth_header: self.auth_value,
                    "Content-Type": "application/json",
                },
            )
            status = response.status_code
            if 400 <= status < 500 and status not in _STATUS_ONLY_CODES:
                try:
                    _raise_for_graphql_errors(response.json(), status)
                except ValueError:
                    pass  # not JSON; raise_for_status reports the status
            response.raise_for_status()
            return response

        response = await retry_with_backoff(_do_request, max_retries=self.max_retries)
        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteOperationError(
                "Invalid JSON in GraphQL response",
                status_code=response.status_code,
            ) from exc

        _raise_for_graphql_errors(body, response.status_code)
        return body.get("data") or {}
