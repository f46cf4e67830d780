from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup

# Stops at whitespace and at `*` so that **bold** links are not swallowed.
MESSAGE_URL_RE = re.compile(r"https?://[^\s*]+")
REDIRECT_PREFIX = "https://www.google.com/url?q="
# Body text of a project page on the website.
PAGE_BODY_LINKS = "div[role=main] section:nth-child(2) a"
YOUTUBE_ID_RE = re.compile(
    r"(?i)(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)([^\"&?/\s]{11})"
)


def extract_message_urls(content: str) -> list[str]:
    """Return URLs found in a chat message, minus one trailing period each."""

    urls: list[str] = []
    for match in MESSAGE_URL_RE.findall(content or ""):
        if match.endswith("."):
            match = match[:-1]
        urls.append(match)
    return urls


def unwrap_redirect(href: str) -> str:
    """Recover the destination of a redirect-wrapper link; other links pass through."""

    if not href.startswith(REDIRECT_PREFIX):
        return href
    target = parse_qs(urlparse(href).query).get("q")
    return target[0] if target else href


def extract_page_links(doc: BeautifulSoup, selector: str = PAGE_BODY_LINKS) -> list[str]:
    """Collect hrefs in the body section of a project page."""

    return [unwrap_redirect(a["href"]) for a in doc.select(selector) if a.get("href")]


def extract_video_ids(doc: BeautifulSoup) -> list[str]:
    """Return YouTube video IDs linked from a page, in page order."""

    ids: list[str] = []
    for a in doc.select("a[href]"):
        m = YOUTUBE_ID_RE.search(a["href"])
        if m:
            ids.append(m.group(1))
    return ids
