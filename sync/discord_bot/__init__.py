"""Discord utilities: REST client, notifier, command handling and polling."""

from __future__ import annotations

from .core import DiscordAPI, DiscordNotifier, chunk_message
from .runtime import ALL_GOOD, COMMANDS, DiscordBot, start_bot_background

__all__ = [
    "ALL_GOOD",
    "COMMANDS",
    "DiscordAPI",
    "DiscordBot",
    "DiscordNotifier",
    "chunk_message",
    "start_bot_background",
]
