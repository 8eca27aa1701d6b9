# app/services/retry.py
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Sequence, TypeVar

T = TypeVar("T")

logger = logging.getLogger("lca.retry")


async def retry(fn: Callable[..., Awaitable[T]], args: Sequence[Any] = (), retries: int = 1) -> T:
    """
    Await `fn(*args)`; on failure try again immediately, at most `retries`
    more times. The last exception propagates unchanged.
    """
    attempts = max(0, int(retries)) + 1
    for attempt in range(1, attempts + 1):
        try:
            return await fn(*args)
        except Exception as e:
            if attempt >= attempts:
                raise
            logger.warning(
                "%s failed (attempt %d/%d): %s",
                getattr(fn, "__name__", repr(fn)), attempt, attempts, e,
            )
    raise AssertionError("unreachable")
