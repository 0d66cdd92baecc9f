"""
rigwatch.services.throttle — Webhook rate-limit governor
=========================================================

Reads Discord's ``x-ratelimit-remaining`` / ``x-ratelimit-reset-after``
headers after every webhook call and holds back the *next* call until the
bucket has reset.  This is advisory pacing; the mandatory back-off for a
429 body is fed in through :meth:`RateLimitGovernor.defer`.

Exactly one governor is shared by all webhook calls of a run, and calls
are made one at a time; the remaining-calls header only means something
when nobody else is spending the same bucket.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping

logger = logging.getLogger(__name__)

REMAINING_HEADER = "x-ratelimit-remaining"
RESET_AFTER_HEADER = "x-ratelimit-reset-after"


def compute_delay(headers: Mapping[str, str]) -> float:
    """Seconds to wait before the next call, given a response's headers.

    Only an exhausted bucket (remaining == 0) yields a delay.  A missing
    or unparseable header means "no information" → 0.
    """
    remaining_raw = headers.get(REMAINING_HEADER)
    reset_raw = headers.get(RESET_AFTER_HEADER)
    if remaining_raw is None or reset_raw is None:
        return 0.0
    try:
        remaining = int(remaining_raw)
        reset_after = float(reset_raw)
    except ValueError:
        logger.warning(
            "Ignoring malformed rate-limit headers: remaining=%r reset_after=%r",
            remaining_raw, reset_raw,
        )
        return 0.0
    if remaining == 0:
        return max(reset_after, 0.0)
    logger.debug("Requests remaining: %d", remaining)
    return 0.0


class RateLimitGovernor:
    """Accumulates the pause owed before the next webhook call.

    - :meth:`observe` after every response (headers).
    - :meth:`defer` for an explicit ``retry_after``.
    - :meth:`wait` before every call; sleeps the larger owed pause once.
    """

    def __init__(
        self, sleep: Callable[[float], Awaitable[object]] = asyncio.sleep
    ) -> None:
        self._sleep = sleep
        self._pending = 0.0

    @property
    def pending(self) -> float:
        return self._pending

    def observe(self, headers: Mapping[str, str]) -> float:
        """Record the pause demanded by *headers*; returns it."""
        delay = compute_delay(headers)
        if delay > 0:
            self.defer(delay)
        return delay

    def defer(self, seconds: float) -> None:
        """Hold the next call back at least *seconds*."""
        self._pending = max(self._pending, seconds)

    async def wait(self) -> float:
        """Sleep off any owed pause.  Returns the seconds slept."""
        delay, self._pending = self._pending, 0.0
        if delay <= 0:
            return 0.0
        logger.info("Rate limit reached — sleeping for %.2fs", delay)
        await self._sleep(delay)
        return delay
