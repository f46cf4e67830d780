from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

# Half a year; a partial date further than this from the reference moves a year.
HALF_YEAR = timedelta(days=182.5)
# Discord snowflakes count milliseconds from 2015-01-01T00:00:00Z.
DISCORD_EPOCH_MS = 1420070400000

ORDINAL_SUFFIX_RE = re.compile(r"(?<=\d)(?:st|nd|rd|th)\b", re.IGNORECASE)


def _with_year(partial: datetime, year: int) -> datetime:
    try:
        return partial.replace(year=year)
    except ValueError:
        # February 29 outside a leap year rolls over to March 1.
        return partial.replace(year=year, month=3, day=1)


def relative_year(month: int, day: int, ref: datetime) -> datetime:
    """Return midnight UTC of `month`/`day` in the year that puts it closest to `ref`.

    The reference year is used unless the date lies more than half a year
    away from `ref`: a date before the reference month that is that far
    behind moves to the next year, a date after the reference month that is
    that far ahead moves to the previous year. Exactly half a year does not
    move.
    """

    if ref.tzinfo is None:
        ref = ref.replace(tzinfo=UTC)
    partial = datetime(2000, month, day, tzinfo=UTC)
    t = _with_year(partial, ref.year)
    if t.month < ref.month and ref - t > HALF_YEAR:
        t = _with_year(partial, ref.year + 1)
    elif t.month > ref.month and t - ref > HALF_YEAR:
        t = _with_year(partial, ref.year - 1)
    return t


def strip_ordinal(token: str) -> str:
    """'29th' -> '29', '1st,' -> '1,'."""

    return ORDINAL_SUFFIX_RE.sub("", token)


def parse_month_day(text: str, formats: tuple[str, ...] = ("%B %d",)) -> tuple[int, int]:
    """Parse a year-less date such as 'December 29' into (month, day).

    Raises ValueError when none of `formats` match.
    """

    s = " ".join((text or "").split())
    for fmt in formats:
        try:
            # A leap year so that February 29 parses.
            parsed = datetime.strptime(f"{s} 2000", f"{fmt} %Y")
        except ValueError:
            continue
        return parsed.month, parsed.day
    raise ValueError(f"could not parse {text!r} as any of {', '.join(formats)}")


def snowflake_time(snowflake: str) -> datetime:
    """Return the creation instant encoded in a Discord snowflake ID."""

    try:
        value = int(snowflake)
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid snowflake {snowflake!r}") from e
    if value < 0:
        raise ValueError(f"invalid snowflake {snowflake!r}")
    ms = (value >> 22) + DISCORD_EPOCH_MS
    return datetime.fromtimestamp(ms / 1000, tz=UTC)
