"""
Polling — the one bounded wait loop used for every readiness check.

Daemon health checks, the HDFS safe-mode wait, MySQL readiness and the
HDFS directory retries all reduce to "call a cheap predicate until it
passes or the attempt budget runs out".  ``sleep`` is injectable so
tests run instantly.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def wait_until(
    predicate: Callable[[], bool],
    *,
    interval: float = 1.0,
    max_attempts: int = 60,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "",
) -> bool:
    """Evaluate ``predicate`` up to ``max_attempts`` times.

    Sleeps ``interval`` seconds between attempts (not after the last).
    A predicate that raises counts as a failed attempt.

    Returns:
        True as soon as the predicate passes, False on exhaustion.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            if predicate():
                if label:
                    logger.debug("%s ready after %d attempt(s)", label, attempt)
                return True
        except Exception as e:
            logger.debug("%s probe error on attempt %d: %s", label or "predicate", attempt, e)
        if attempt < max_attempts:
            sleep(interval)

    if label:
        logger.info("%s not ready after %d attempt(s)", label, max_attempts)
    return False


def retry(
    func: Callable[[], T],
    *,
    attempts: int = 3,
    backoff: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func`` until it returns without raising, at most ``attempts`` times.

    The last exception propagates when every attempt fails.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retry_on as e:
            if attempt == attempts:
                raise
            logger.debug("Attempt %d/%d failed: %s — retrying in %.1fs", attempt, attempts, e, backoff)
            sleep(backoff)
    raise AssertionError("unreachable")
