"""Turn httpx failures into RemoteOperationError kinds, optionally retrying.

Linear calls are single-shot unless ``LINEAR_MAX_RETRIES`` grants a budget.
Within a budget, throttling (429), gateway/server errors (5xx) and
connect/timeout failures are retried with full-jitter backoff. Credential
rejections (401/403) always fail on the first attempt.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Set

import httpx

from .exceptions import (
    RemoteAuthError,
    RemoteNotFoundError,
    RemoteOperationError,
    RemoteRateLimitError,
    RemoteTimeoutError,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES: Set[int] = {429, 500, 502, 503, 504}
AUTH_FAILURE_CODES: Set[int] = {401, 403}

DEFAULT_MAX_RETRIES = 0
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0


def _status_error(exc: httpx.HTTPStatusError) -> RemoteOperationError:
    """Map a final (not retried) HTTP status failure to its error kind."""
    status = exc.response.status_code
    if status in AUTH_FAILURE_CODES:
        return RemoteAuthError(f"Authentication failed: HTTP {status}", status_code=status)
    if status == 429:
        return RemoteRateLimitError(
            "Rate limited: HTTP 429", retry_after=_parse_retry_after(exc.response)
        )
    if status == 404:
        return RemoteNotFoundError("Not found: HTTP 404")
    return RemoteOperationError(
        f"API error: HTTP {status}",
        status_code=status,
        response_body=exc.response.text[:500],
    )


async def retry_with_backoff(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    **kwargs: Any,
) -> Any:
    """Await ``fn(*args, **kwargs)``, retrying up to ``max_retries`` times.

    Raises:
        RemoteAuthError: 401/403, never retried.
        RemoteRateLimitError: 429 once the budget is spent; carries ``retry_after``.
        RemoteNotFoundError: 404.
        RemoteTimeoutError: connect/timeout failure once the budget is spent.
        RemoteOperationError: any other status or transport failure.
    """
    attempt = 0
    while True:
        try:
            return await fn(*args, **kwargs)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status not in RETRYABLE_STATUS_CODES or attempt >= max_retries:
                raise _status_error(exc) from exc
            delay = _compute_delay(attempt, base_delay, max_delay, exc.response)
            logger.warning(
                "HTTP %d from Linear, retry %d/%d in %.1fs",
                status,
                attempt + 1,
                max_retries,
                delay,
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            if attempt >= max_retries:
                raise RemoteTimeoutError(
                    f"Request failed after {attempt + 1} attempt(s): {type(exc).__name__}"
                ) from exc
            delay = _compute_delay(attempt, base_delay, max_delay)
            logger.warning(
                "%s talking to Linear, retry %d/%d in %.1fs",
                type(exc).__name__,
                attempt + 1,
                max_retries,
                delay,
            )
        except httpx.HTTPError as exc:
            raise RemoteOperationError(
                f"Transport error: {type(exc).__name__}: {exc}"
            ) from exc

        await asyncio.sleep(delay)
        attempt += 1


def _compute_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    response: httpx.Response | None = None,
) -> float:
    """Seconds to wait before the next attempt.

    A numeric Retry-After wins (capped at ``max_delay``); otherwise a
    uniform draw from ``[0, min(max_delay, base_delay * 2**attempt)]``.
    """
    if response is not None:
        retry_after = _parse_retry_after(response)
        if retry_after is not None:
            return min(retry_after, max_delay)

    ceiling = min(base_delay * (2**attempt), max_delay)
    return random.uniform(0, ceiling)


def _parse_retry_after(response: httpx.Response) -> float | None:
    # HTTP-date values are not supported
    value = response.headers.get("Retry-After") or response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None
