"""Shared concurrency primitives for catalog fan-out.

Bounds the number of simultaneous music-catalog requests a single fan-out
may issue, so a burst of playlist-track lookups cannot exhaust the upstream
rate limit.

Two patterns are exposed:

1. **throttled_gather** -- a drop-in replacement for ``asyncio.gather`` that
   wraps each awaitable in a semaphore acquire/release.
2. **parallel_fetch** -- the fan-out-then-merge pattern used by the user
   playlist branch: dispatch N catalog calls in parallel, log failures,
   and return a flat list of every successful result.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from contextune.utils.logging import get_logger

_T = TypeVar("_T")

# Four concurrent calls keeps playlist fan-out well below Spotify's rolling
# 30-second rate window.
_DEFAULT_CONCURRENCY = 4

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional semaphore for concurrency control.  Defaults to a fresh
        semaphore allowing ``_DEFAULT_CONCURRENCY`` calls at once.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        semaphore = asyncio.Semaphore(_DEFAULT_CONCURRENCY)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def parallel_fetch(
    fetch_fn: Callable[..., Awaitable[list[Any]]],
    calls: list[dict[str, Any]],
    logger: structlog.BoundLogger | None = None,
    error_msg: str = "catalog_fetch_failed",
) -> list[Any]:
    """Execute several catalog calls in parallel and merge their results.

    Parameters
    ----------
    fetch_fn:
        The async function to call, once per entry in ``calls``.
    calls:
        Keyword-argument dicts, one per call.
    logger:
        Optional structured logger for warnings on failures.
    error_msg:
        Log event name for failed calls.

    Returns
    -------
    list[Any]
        Flattened list of results from the calls that succeeded.
    """
    if logger is None:
        logger = _logger

    coros = [fetch_fn(**kwargs) for kwargs in calls]
    raw_results = await throttled_gather(coros, return_exceptions=True)

    merged: list[Any] = []
    for idx, result in enumerate(raw_results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            logger.warning(error_msg, call=calls[idx], error=str(result))
        elif isinstance(result, list):
            merged.extend(result)
        else:
            merged.append(result)

    return merged
