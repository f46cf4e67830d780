"""Typed entities shared by parsers, collaborators and checks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeAlias

from utils.errors import ParseError


@dataclass(frozen=True)
class Channel:
    id: str
    name: str


@dataclass(frozen=True)
class Message:
    id: str  # snowflake; encodes the creation instant
    content: str
    author_id: str = ""
    channel_id: str = ""


@dataclass(frozen=True)
class PlaylistItem:
    video_id: str
    title: str


@dataclass
class Project:
    """One tracked project.

    `id` is the Discord channel name on the chat side and the URL slug on the
    website side; the two are expected to match.
    """

    id: str
    name: str
    deadline: datetime
    channel: Channel | None = None
    urls: list[str] = field(default_factory=list)


# -------------------- Record parse results --------------------


@dataclass(frozen=True)
class Skip:
    """The record was recognised and deliberately left out."""

    reason: str = ""


@dataclass(frozen=True)
class Parsed:
    project: Project


@dataclass(frozen=True)
class Failed:
    error: ParseError


RecordResult: TypeAlias = Skip | Parsed | Failed
