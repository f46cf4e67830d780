"""Small utilities shared across modules."""

from __future__ import annotations

import time
from datetime import date, datetime, timedelta

from loguru import logger


def format_day(d: date | datetime) -> str:
    """Render a deadline at day granularity (YYYY-MM-DD)."""

    return d.strftime("%Y-%m-%d")


def seconds_until(check_at: str, now: datetime) -> float:
    """Return seconds from `now` until the next wall-clock `HH:MM` in now's timezone.

    A time equal to `now` is scheduled for the following day, so a loop that
    wakes exactly on time does not run twice.
    """

    hh, mm = (int(x) for x in check_at.split(":", 1))
    target = now.replace(hour=hh, minute=mm, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


def logged_sleep(
    total_seconds: float,
    *,
    message: str = "Waiting",
    tick_seconds: float = 60.0,
) -> None:
    """Sleep in ticks, logging the remaining time at debug level."""

    try:
        total = float(total_seconds)
    except (TypeError, ValueError):
        total = 0.0
    if total <= 0:
        return

    logger.debug("{}: {} s", message, int(total))

    end = time.monotonic() + total
    while True:
        remaining = end - time.monotonic()
        if remaining <= 0:
            break
        time.sleep(tick_seconds if remaining > tick_seconds else remaining)
        if remaining > tick_seconds:
            logger.trace("{}: {} s left", message, int(max(0.0, end - time.monotonic())))

    logger.debug("{}: done", message)
