import logging
from typing import Awaitable, Callable, Iterable, TypeVar

from tools.errors import AllAttemptsFailed

logger = logging.getLogger(__name__)

A = TypeVar("A")
R = TypeVar("R")


async def try_until_success(
    alternatives: Iterable[A],
    attempt: Callable[[A], Awaitable[R]],
) -> tuple[A, R]:
    """Call attempt(alt) for each alternative in order until one succeeds.

    Returns (alternative, result) for the first success. Raises AllAttemptsFailed
    carrying the last error when every alternative fails.
    """
    tried: list[A] = []
    last_error: BaseException | None = None
    for alt in alternatives:
        tried.append(alt)
        try:
            return alt, await attempt(alt)
        except Exception as e:
            logger.warning(f"Attempt with {alt!r} failed: {e}")
            last_error = e
    raise AllAttemptsFailed(tried, last_error)


def unique(items: Iterable[A]) -> list[A]:
    """Order-preserving dedup."""
    seen = set()
    out = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out
