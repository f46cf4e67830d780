"""Project collections from Discord and the website, and the check between them."""

from __future__ import annotations

from bisect import bisect_left
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from dateutil.relativedelta import relativedelta
from loguru import logger

from parse.links import extract_message_urls, extract_page_links
from parse.models import Channel, Failed, Parsed, Project, RecordResult, Skip
from parse.page import PageFetcher
from parse.records import PROJECT_HREF_PREFIX, parse_chat_record, parse_website_record
from utils import format_day
from utils.config import PROJECTS_CHANNEL_NAME, STALE_DEADLINE_GRACE, WEBSITE_UPDATE_LAG
from utils.errors import ChannelNotFoundError, ParseError

# Invite links are left out of pins for non-public projects on purpose.
INVITE_PREFIX = "https://discord.gg/"
WEBSITE_LISTING_LINKS = f'a[href^="{PROJECT_HREF_PREFIX}"]'


def _collect(results: Iterable[RecordResult], on_error: Callable[[ParseError], None] | None) -> list[Project]:
    projects: list[Project] = []
    for res in results:
        if isinstance(res, Failed):
            logger.warning("could not parse project: {}", res.error)
            if on_error is not None:
                on_error(res.error)
            continue
        if isinstance(res, Skip):
            logger.debug("Skipped record: {}", res.reason)
            continue
        if isinstance(res, Parsed):
            if not res.project.id:
                logger.debug("Dropping project without a channel: {}", res.project.name)
                continue
            projects.append(res.project)
    projects.sort(key=lambda p: p.deadline)
    return projects


def find_channel(channels: Iterable[Channel], name: str) -> Channel:
    for c in channels:
        if c.name == name:
            return c
    raise ChannelNotFoundError(f"could not find #{name}")


def build_chat_projects(
    client,
    guild_id: str,
    *,
    channel_name: str = PROJECTS_CHANNEL_NAME,
    limit: int = 20,
    on_error: Callable[[ParseError], None] | None = None,
) -> list[Project]:
    """Read the projects channel and return its projects sorted by deadline.

    `client` provides `list_channels(guild_id)` and
    `list_recent_messages(channel_id, limit)`. Messages that fail to parse are
    logged and passed to `on_error`; the rest of the channel is still read.
    """

    channels = list(client.list_channels(guild_id))
    projects_channel = find_channel(channels, channel_name)
    messages = client.list_recent_messages(projects_channel.id, limit)
    projects = _collect((parse_chat_record(m, channels) for m in messages), on_error)
    logger.info("#{}: {} projects", channel_name, len(projects))
    return projects


def build_website_projects(
    fetcher: PageFetcher,
    website_url: str,
    *,
    now: datetime | None = None,
    lag: relativedelta = WEBSITE_UPDATE_LAG,
) -> list[Project]:
    """Scrape the project listing of the website, sorted by deadline.

    Listing dates carry no year; they are resolved against `now - lag`, on the
    assumption that the page is updated at least that often.
    """

    ref = (now or datetime.now(UTC)) - lag
    doc = fetcher.fetch(website_url)
    results = (
        parse_website_record(a.get_text(), a.get("href", PROJECT_HREF_PREFIX), ref)
        for a in doc.select(WEBSITE_LISTING_LINKS)
    )
    projects = _collect(results, None)
    logger.info("Website: {} projects", len(projects))
    return projects


def fetch_website_project_links(fetcher: PageFetcher, projects: Iterable[Project], website_url: str) -> None:
    """Populate `urls` of each website project from its project page."""

    base = website_url.rstrip("/")
    for p in projects:
        p.urls.extend(extract_page_links(fetcher.fetch(f"{base}{PROJECT_HREF_PREFIX}{p.id}")))
        p.urls.sort()


def fetch_chat_project_links(client, project: Project) -> None:
    """Populate `urls` of a chat project from the pinned messages of its channel."""

    if project.channel is None:
        return
    for msg in client.list_pinned_messages(project.channel.id):
        project.urls.extend(extract_message_urls(msg.content))
    project.urls.sort()


def is_stale(deadline: datetime, now: datetime, grace: timedelta = STALE_DEADLINE_GRACE) -> bool:
    """True once `deadline` lies more than `grace` behind `now`."""

    return now - grace > deadline


def _contains(sorted_urls: list[str], url: str) -> bool:
    i = bisect_left(sorted_urls, url)
    return i < len(sorted_urls) and sorted_urls[i] == url


def reconcile_projects(
    primary: Iterable[Project],
    reference: Iterable[Project],
    *,
    now: datetime | None = None,
    fetch_links: Callable[[Project], None] | None = None,
    grace: timedelta = STALE_DEADLINE_GRACE,
    channel_name: str = PROJECTS_CHANNEL_NAME,
) -> str:
    """Compare chat projects (`primary`) with website projects (`reference`).

    Returns one `- ...` line per discrepancy, or an empty string. Lines come
    in two groups (website-side, then chat-side), each ordered by project id.
    `fetch_links` fills in the pinned URLs of a chat project; it is only
    called for projects whose website page has links.
    """

    now = now or datetime.now(UTC)
    primary_map = {p.id: p for p in primary}
    reference_map = {p.id: p for p in reference}

    lines: list[str] = []
    for pid in sorted(reference_map):
        website = reference_map[pid]
        project = primary_map.get(pid)
        if project is None:
            if is_stale(website.deadline, now, grace):
                lines.append(f"- {pid}: deadline {format_day(website.deadline)} has passed")
            else:
                lines.append(f"- {pid}: on website but not in #{channel_name}")
            continue

        if website.deadline != project.deadline:
            lines.append(
                f"- {pid}: wrong deadline (website: {format_day(website.deadline)}, "
                f"#{channel_name}: {format_day(project.deadline)})"
            )
        if is_stale(project.deadline, now, grace):
            lines.append(f"- {pid}: deadline {format_day(project.deadline)} has passed")
        if website.urls:
            if fetch_links is not None:
                fetch_links(project)
            pinned = sorted(project.urls)
            for u in website.urls:
                if _contains(pinned, u) or u.startswith(INVITE_PREFIX):
                    continue
                lines.append(f"- {pid}: URL does not appear in channel pins {u}")

    for pid in sorted(primary_map):
        if pid in reference_map:
            continue
        # Finished projects drop off the website first; not worth a report.
        if is_stale(primary_map[pid].deadline, now, grace):
            continue
        lines.append(f"- {pid}: missing on website")

    return "".join(line + "\n" for line in lines)


def check_current_projects(
    client,
    fetcher: PageFetcher,
    *,
    guild_id: str,
    website_url: str,
    channel_name: str = PROJECTS_CHANNEL_NAME,
    limit: int = 20,
    on_parse_error: Callable[[ParseError], None] | None = None,
    now: datetime | None = None,
    grace: timedelta = STALE_DEADLINE_GRACE,
    lag: relativedelta = WEBSITE_UPDATE_LAG,
) -> str:
    """Fetch both collections and return the reconciliation report."""

    now = now or datetime.now(UTC)
    projects = build_chat_projects(
        client, guild_id, channel_name=channel_name, limit=limit, on_error=on_parse_error
    )
    website = build_website_projects(fetcher, website_url, now=now, lag=lag)
    fetch_website_project_links(fetcher, website, website_url)
    report = reconcile_projects(
        projects,
        website,
        now=now,
        fetch_links=lambda p: fetch_chat_project_links(client, p),
        grace=grace,
        channel_name=channel_name,
    )
    logger.info("Project check: {} discrepancies", report.count("\n"))
    return report


def format_project_list(projects: Iterable[Project]) -> str:
    return "".join(f"- {p.id} due {format_day(p.deadline)}\n" for p in projects)
