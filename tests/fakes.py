"""In-memory stand-ins for the Discord, website and YouTube collaborators."""

from __future__ import annotations

from datetime import datetime

from bs4 import BeautifulSoup

from parse.dates import DISCORD_EPOCH_MS
from parse.models import Channel, Message, PlaylistItem
from utils.errors import HTTPStatusError


def snowflake(dt: datetime, seq: int = 0) -> str:
    ms = int(dt.timestamp() * 1000)
    return str(((ms - DISCORD_EPOCH_MS) << 22) + seq)


class FakeDiscord:
    def __init__(self, channels=None, messages=None, pins=None, user_id="999") -> None:
        self.channels: list[Channel] = list(channels or [])
        self.messages: dict[str, list[Message]] = dict(messages or {})
        self.pins: dict[str, list[Message]] = dict(pins or {})
        self.user_id = user_id
        self.sent: list[tuple[str, str]] = []
        self.pin_calls: list[str] = []

    def list_channels(self, guild_id):
        return list(self.channels)

    def list_recent_messages(self, channel_id, limit=20, *, after=None):
        msgs = self.messages.get(channel_id, [])
        if after is not None:
            msgs = [m for m in msgs if int(m.id) > int(after)]
        newest_first = sorted(msgs, key=lambda m: int(m.id), reverse=True)
        return newest_first[:limit]

    def list_pinned_messages(self, channel_id):
        self.pin_calls.append(channel_id)
        return list(self.pins.get(channel_id, []))

    def send_message(self, channel_id, content):
        self.sent.append((channel_id, content))
        return {"id": "1"}

    def current_user_id(self):
        return self.user_id


class FakeFetcher:
    def __init__(self, pages: dict[str, str] | None = None) -> None:
        self.pages = dict(pages or {})
        self.fetched: list[str] = []

    def fetch(self, url: str) -> BeautifulSoup:
        self.fetched.append(url)
        if url not in self.pages:
            raise HTTPStatusError(404, url)
        return BeautifulSoup(self.pages[url], "html.parser")


class FakeYouTube:
    def __init__(self, items: list[PlaylistItem]) -> None:
        self.items = items

    def list_playlist_items(self, playlist_id):
        yield from self.items


def project_page(*hrefs: str) -> str:
    links = "".join(f'<a href="{h}">link</a>' for h in hrefs)
    return (
        '<html><body><div role="main">'
        '<section><a href="/header">header</a></section>'
        f"<section><p>{links}</p></section>"
        "</div></body></html>"
    )


def listing_page(*entries: tuple[str, str]) -> str:
    links = "".join(f'<li><a href="{href}">{title}</a></li>' for href, title in entries)
    return f"<html><body><ul>{links}</ul></body></html>"
