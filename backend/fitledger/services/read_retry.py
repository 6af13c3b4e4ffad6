"""
Bounded backoff for reads that race a just-finished write (e.g. a summary read right after
the last set was saved). Stale-but-available wins over blocking: after the last retry the
caller gets whatever was read.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from fitledger.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


async def read_with_backoff(
    load: Callable[[], Awaitable[T]],
    is_ready: Callable[[T], bool],
    *,
    retries: int | None = None,
    base_delay: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Call load() until is_ready(result) or retries are exhausted; delay is base_delay * attempt.
    A failing load is retried too; if no load ever succeeded the last error is raised.
    """
    max_retries = settings.read_retry_attempts if retries is None else retries
    delay_unit = settings.read_retry_base_delay_seconds if base_delay is None else base_delay
    result = _MISSING
    last_exc: Exception | None = None
    for attempt in range(max_retries + 1):
        if attempt > 0:
            delay = delay_unit * attempt
            logger.debug("read_with_backoff: retry %d in %.2fs", attempt, delay)
            await sleep(delay)
        try:
            result = await load()
        except Exception as e:
            last_exc = e
            logger.warning("read_with_backoff: load failed (attempt %d): %s", attempt + 1, e)
            continue
        if is_ready(result):
            return result
    if result is not _MISSING:
        logger.info("read_with_backoff: proceeding with incomplete data after %d retries", max_retries)
        return result
    if last_exc is not None:
        raise last_exc
    raise ValueError(f"read_with_backoff: retries must be >= 0, got {max_retries}")
