"""Discord core primitives: REST client, notifier and persisted poller state."""

from __future__ import annotations

import json
import os
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from parse.models import Channel, Message
from utils.errors import HTTPStatusError, TransportError

# Discord rejects messages longer than this.
MESSAGE_LIMIT = 2000

# -------------------- API --------------------


class DiscordAPI:
    """Thin HTTP wrapper for the Discord REST API using stdlib only."""

    def __init__(
        self,
        token: str,
        *,
        api_base: str = "https://discord.com/api/v10",
        timeout: int = 20,
    ) -> None:
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    def call(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.api_base}{path}"
        if params:
            url += "?" + urllib.parse.urlencode({k: v for k, v in params.items() if v is not None})
        data = json.dumps(body).encode("utf-8") if body is not None else None
        headers = {
            "Authorization": f"Bot {self.token}",
            "Content-Type": "application/json",
            "User-Agent": "DiscordBot (https://www.untitledvirtualensemble.org, 1.0)",
        }
        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                payload = resp.read()
                return json.loads(payload) if payload else None
        except urllib.error.HTTPError as e:
            txt = e.read().decode("utf-8", errors="ignore")
            logger.error("Discord HTTP {} {} on {} {}: {}", e.code, e.reason, method, path, txt)
            raise HTTPStatusError(e.code, url) from e
        except urllib.error.URLError as e:
            raise TransportError(f"Discord API unreachable: {e.reason}") from e

    # Convenience wrappers
    def list_channels(self, guild_id: str) -> list[Channel]:
        res = self.call("GET", f"/guilds/{guild_id}/channels")
        return [Channel(id=str(c["id"]), name=c.get("name") or "") for c in res or []]

    def list_recent_messages(
        self, channel_id: str, limit: int = 20, *, after: str | None = None
    ) -> list[Message]:
        res = self.call(
            "GET",
            f"/channels/{channel_id}/messages",
            params={"limit": limit, "after": after},
        )
        return [_to_message(m, channel_id) for m in res or []]

    def list_pinned_messages(self, channel_id: str) -> list[Message]:
        res = self.call("GET", f"/channels/{channel_id}/pins")
        return [_to_message(m, channel_id) for m in res or []]

    def send_message(self, channel_id: str, content: str) -> dict:
        return self.call("POST", f"/channels/{channel_id}/messages", body={"content": content})

    def current_user_id(self) -> str:
        return str((self.call("GET", "/users/@me") or {}).get("id", ""))


def _to_message(raw: dict[str, Any], channel_id: str) -> Message:
    return Message(
        id=str(raw["id"]),
        content=raw.get("content") or "",
        author_id=str((raw.get("author") or {}).get("id", "")),
        channel_id=str(raw.get("channel_id") or channel_id),
    )


def chunk_message(text: str, limit: int = MESSAGE_LIMIT) -> list[str]:
    """Split `text` into pieces of at most `limit` characters, on line breaks where possible."""

    chunks: list[str] = []
    current = ""
    for line in text.splitlines(keepends=True):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        if len(current) + len(line) > limit:
            chunks.append(current)
            current = ""
        current += line
    if current:
        chunks.append(current)
    return [c for c in chunks if c.strip()]


# -------------------- Notifier + persistence --------------------


def read_json(path: str, default):
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return default
    except (OSError, ValueError) as e:
        logger.warning("Could not read JSON '{}': {}", path, e)
        return default


def write_json(path: str, obj) -> None:
    d = os.path.dirname(path)
    if d and not os.path.isdir(d):
        os.makedirs(d, exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)
    os.replace(tmp, path)


@dataclass
class BotState:
    last_message_ids: dict[str, str] = field(default_factory=dict)  # channel_id -> message id


class DiscordNotifier:
    """Posts reports to channels; persists the command poller position in a JSON file."""

    def __init__(
        self,
        api: DiscordAPI,
        *,
        persist_dir: str = "var/bot",
        error_channel_id: str | None = None,
        dry_run: bool = False,
    ) -> None:
        self.api = api
        self.persist_dir = persist_dir
        self.error_channel_id = error_channel_id
        self.dry_run = dry_run
        self.state_path = os.path.join(persist_dir, "state.json")
        raw = read_json(self.state_path, {"last_message_ids": {}})
        self.state = BotState(
            last_message_ids={str(k): str(v) for k, v in (raw.get("last_message_ids") or {}).items()},
        )

    def save_state(self) -> None:
        write_json(self.state_path, {"last_message_ids": self.state.last_message_ids})

    def mark_seen(self, channel_id: str, message_id: str) -> None:
        self.state.last_message_ids[str(channel_id)] = str(message_id)
        self.save_state()

    # Messaging
    def send_to(self, channel_id: str, text: str) -> int:
        """Post `text` in as many messages as needed; return how many were sent."""

        sent = 0
        for chunk in chunk_message(text):
            if self.dry_run:
                logger.info("Dry-run: message for channel {}:\n{}", channel_id, chunk)
                continue
            try:
                self.api.send_message(channel_id, chunk)
                sent += 1
            except TransportError:
                logger.exception("Could not send message to channel {}", channel_id)
        return sent

    def send_error(self, text: str) -> None:
        if not self.error_channel_id:
            logger.debug("No error channel configured; not posting error")
            return
        self.send_to(self.error_channel_id, text)
