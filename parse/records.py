"""Parsers that turn one free-text record into a `Project`.

Two sources feed the checks:

- chat records: one message of the projects channel, e.g.

      My Project
      Deadline: December 29th (Extension)
      <#851213338481655999>

- website records: one listing link, title `Due Jan. 5 - My Project` and
  href `/projects/my-project`.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from loguru import logger

from utils.errors import FormatError, ParseError

from .dates import parse_month_day, relative_year, snowflake_time, strip_ordinal
from .models import Channel, Failed, Message, Parsed, Project, RecordResult, Skip

DEADLINE_LABEL = "Deadline: "
SKIP_PLACEHOLDER = "--"
CHANNEL_MARKER = "<#"
PROJECT_HREF_PREFIX = "/projects/"
TITLE_SEPARATOR = " - "
WEBSITE_DATE_FORMATS = ("Due %b. %d", "Due %B %d")


def parse_chat_record(msg: Message, channels: Iterable[Channel]) -> RecordResult:
    """Parse one message of the projects channel.

    The deadline year is resolved against the message creation instant, so a
    deadline is read relative to when it was written. A record without a
    linked channel comes back as `Parsed` with an empty `id`; the collection
    builder drops those. Text with neither a deadline nor a channel is skipped.
    """

    lines = (msg.content or "").split("\n")
    name = lines[0].strip()
    known = {c.id: c for c in channels}

    deadline: datetime | None = None
    channel: Channel | None = None
    for line in lines:
        if line.startswith(DEADLINE_LABEL):
            parts = line.split()
            if len(parts) >= 2 and parts[1] == SKIP_PLACEHOLDER:
                return Skip(f"{name or msg.id}: no deadline given")
            if len(parts) < 3:
                return Failed(
                    ParseError(
                        f"could not parse time for {name} (message {msg.id}): not enough words",
                        name=name,
                        message_id=msg.id,
                    )
                )
            try:
                month, day = parse_month_day(f"{parts[1]} {strip_ordinal(parts[2])}")
            except ValueError as e:
                return Failed(
                    ParseError(
                        f"could not parse time for {name} (message {msg.id}): {e}",
                        name=name,
                        message_id=msg.id,
                    )
                )
            try:
                created = snowflake_time(msg.id)
            except ValueError as e:
                return Failed(
                    ParseError(
                        f"could not get message snowflake timestamp for {name} ({msg.id}): {e}",
                        name=name,
                        message_id=msg.id,
                    )
                )
            deadline = relative_year(month, day, created)
        elif line.startswith(CHANNEL_MARKER):
            cid = line.strip("<#> ")
            if cid in known:
                channel = known[cid]

    if deadline is None:
        if channel is None:
            # Intro or header text in the projects channel, not a project.
            return Skip(f"{name or msg.id}: no deadline and no channel")
        return Failed(
            ParseError(
                f"could not parse time for {name} (message {msg.id}): no deadline line",
                name=name,
                message_id=msg.id,
            )
        )
    return Parsed(
        Project(
            id=channel.name if channel else "",
            name=name,
            deadline=deadline,
            channel=channel,
        )
    )


def parse_website_title(title: str) -> tuple[int, int, str]:
    """Split `Due <Month> <Day> - <Name>` into (month, day, name).

    Raises FormatError when the title has another shape.
    """

    parts = (title or "").strip().split(TITLE_SEPARATOR, 1)
    if len(parts) != 2:
        raise FormatError(f"not a project title: {title!r}")
    due, name = parts
    try:
        month, day = parse_month_day(due, WEBSITE_DATE_FORMATS)
    except ValueError as e:
        raise FormatError(f"could not parse due date in {title!r}") from e
    return month, day, name.strip()


def parse_website_record(title: str, href: str, ref: datetime) -> RecordResult:
    """Parse one listing link; `ref` is the instant the listing is assumed current at.

    Links with another title shape are skipped: the listing also carries
    unrelated links under the same href prefix.
    """

    try:
        month, day, name = parse_website_title(title)
    except FormatError as e:
        logger.debug("Skipping website link {}: {}", href, e)
        return Skip(str(e))
    slug = href[len(PROJECT_HREF_PREFIX):] if href.startswith(PROJECT_HREF_PREFIX) else href
    return Parsed(
        Project(
            id=slug.strip("/"),
            name=name,
            deadline=relative_year(month, day, ref),
        )
    )
