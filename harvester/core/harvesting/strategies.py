"""Ordered fallback chains for heuristic extraction."""

from collections.abc import Awaitable, Callable, Iterable
from typing import Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def first_result(
    attempts: Iterable[Callable[[], Optional[T]]], field: str = "value"
) -> Optional[T]:
    """Return the first truthy result of an ordered list of attempts.

    Each attempt may fail independently; a raised exception or an empty
    result just moves on to the next one.
    """
    for attempt in attempts:
        try:
            result = attempt()
        except Exception as e:
            logger.debug("extraction_attempt_failed", field=field, error=str(e))
            continue
        if result:
            return result
    return None


async def first_result_async(
    attempts: Iterable[Callable[[], Awaitable[Optional[T]]]], field: str = "value"
) -> Optional[T]:
    """Async variant of first_result for browser reads."""
    for attempt in attempts:
        try:
            result = await attempt()
        except Exception as e:
            logger.debug("extraction_attempt_failed", field=field, error=str(e))
            continue
        if result:
            return result
    return None
