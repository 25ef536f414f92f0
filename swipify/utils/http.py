"""HTTP utilities providing retry/backoff semantics for idempotent calls."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import httpx

RETRYABLE_STATUS_CODES = frozenset({500, 502, 503, 504})


class RetryConfig:
    def __init__(self, *, attempts: int = 3, backoff_seconds: float = 0.5) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Call ``func`` until it returns a 2xx response.

    Transport failures and 5xx answers are retried; any other error status is
    raised immediately as :class:`httpx.HTTPStatusError`.
    """
    config = retry_config or RetryConfig()
    attempt = 0
    last_exception: Exception | None = None

    while attempt < config.attempts:
        try:
            response = await func(*args, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code not in RETRYABLE_STATUS_CODES:
                raise
            last_exception = exc
        except httpx.TransportError as exc:
            last_exception = exc
        attempt += 1
        if attempt >= config.attempts:
            break
        await asyncio.sleep(config.backoff_seconds * attempt)

    if last_exception is not None:
        raise last_exception
    raise RuntimeError("Request failed without raising an exception")


__all__ = ["RETRYABLE_STATUS_CODES", "RetryConfig", "request_with_retry"]
