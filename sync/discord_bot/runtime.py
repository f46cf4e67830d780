"""Discord bot runtime: command handling, command polling and the scheduled check."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime

from loguru import logger

from parse.page import PageFetcher
from sync.projects import (
    build_chat_projects,
    build_website_projects,
    check_current_projects,
    format_project_list,
)
from sync.releases import check_releases
from sync.youtube import YouTubeAPI
from utils import logged_sleep
from utils.config import AppConfig, ConfigError
from utils.errors import ParseError, TransportError

from .core import DiscordAPI, DiscordNotifier

COMMANDS = (
    "get-current-projects",
    "get-website-projects",
    "check-projects",
    "check-releases",
)
ALL_GOOD = "All good!"


class DiscordBot:
    def __init__(
        self,
        cfg: AppConfig,
        *,
        api: DiscordAPI | None = None,
        fetcher: PageFetcher | None = None,
        youtube: YouTubeAPI | None = None,
        notifier: DiscordNotifier | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.cfg = cfg
        self.api = api
        self.fetcher = fetcher or PageFetcher(timeout=cfg.http_timeout)
        self.youtube = youtube
        self.notifier = notifier
        if self.notifier is None and api is not None:
            self.notifier = DiscordNotifier(
                api,
                persist_dir=cfg.bot_persist_dir,
                error_channel_id=cfg.tech_team_channel_id,
                dry_run=cfg.dry_run,
            )
        self.clock = clock or (lambda: datetime.now(UTC))
        self._user_id: str | None = None

    @classmethod
    def from_config(cls, cfg: AppConfig) -> DiscordBot:
        api = DiscordAPI(cfg.discord_token, timeout=cfg.http_timeout) if cfg.discord_token else None
        youtube = YouTubeAPI(cfg.google_api_key, timeout=cfg.http_timeout) if cfg.google_api_key else None
        return cls(cfg, api=api, youtube=youtube)

    # -------------------- checks --------------------

    def _require_discord(self) -> DiscordAPI:
        if self.api is None:
            raise ConfigError("no Discord token supplied")
        self.cfg.require("guild_id")
        return self.api

    def _report_parse_error(self, err: ParseError) -> None:
        if self.notifier is not None and self.cfg.bot_spam_channel_id:
            self.notifier.send_to(self.cfg.bot_spam_channel_id, f"could not parse project: {err}")

    def check_projects(self) -> str:
        api = self._require_discord()
        return check_current_projects(
            api,
            self.fetcher,
            guild_id=self.cfg.guild_id,
            website_url=self.cfg.website_url,
            channel_name=self.cfg.projects_channel_name,
            limit=self.cfg.projects_message_limit,
            on_parse_error=self._report_parse_error,
            now=self.clock(),
            grace=self.cfg.stale_deadline_grace,
            lag=self.cfg.website_update_lag,
        )

    def check_releases(self) -> str:
        if self.youtube is None:
            raise ConfigError("no YouTube credentials supplied")
        self.cfg.require("playlist_id")
        return check_releases(
            self.fetcher,
            self.youtube,
            releases_url=self.cfg.website_releases_url,
            playlist_id=self.cfg.playlist_id,
        )

    def handle_command(self, cmd: str) -> str:
        """Run one command (with or without the leading `!`) and return its reply."""

        name = cmd.strip().removeprefix("!")
        if name == "get-current-projects":
            api = self._require_discord()
            projects = build_chat_projects(
                api,
                self.cfg.guild_id,
                channel_name=self.cfg.projects_channel_name,
                limit=self.cfg.projects_message_limit,
                on_error=self._report_parse_error,
            )
            return format_project_list(projects)
        if name == "get-website-projects":
            projects = build_website_projects(
                self.fetcher, self.cfg.website_url, now=self.clock(), lag=self.cfg.website_update_lag
            )
            return format_project_list(projects)
        if name == "check-projects":
            return self.check_projects() or ALL_GOOD
        if name == "check-releases":
            return self.check_releases() or ALL_GOOD
        raise ValueError(f"unknown command {cmd}")

    def handle_text_message(self, channel_id: str, text: str) -> str | None:
        """Reply to a `!command` message in the channel it came from."""

        t = (text or "").strip()
        if not t.startswith("!") or t[1:] not in COMMANDS:
            return None
        logger.info("Command {} in channel {}", t, channel_id)
        try:
            reply = self.handle_command(t)
        except Exception as e:
            logger.exception("Command {} failed", t)
            reply = f"error: {e}"
        if self.notifier is not None:
            self.notifier.send_to(channel_id, reply or "(empty)")
        return reply

    def scheduled_check(self) -> str | None:
        """Run both checks and post the combined report to the tech team.

        Returns the posted text, or None when nothing was posted.
        """

        channel = self.cfg.tech_team_channel_id
        try:
            projects_res = self.check_projects()
        except Exception as e:
            logger.exception("Scheduled project check failed")
            msg = f"!check-projects error: {e}"
            self._post(channel, msg)
            return msg
        try:
            releases_res = self.check_releases()
        except Exception as e:
            logger.exception("Scheduled release check failed")
            msg = f"!check-releases error: {e}"
            self._post(channel, msg)
            return msg

        res = projects_res + releases_res
        if not res:
            logger.info("Scheduled check: all good")
            return None
        msg = f"<@&{self.cfg.tech_team_role_id}>\n{res}" if self.cfg.tech_team_role_id else res
        self._post(channel, msg)
        logger.success("Scheduled check report posted ({} lines)", res.count("\n"))
        return msg

    def _post(self, channel_id: str | None, text: str) -> None:
        if self.notifier is None or not channel_id:
            logger.warning("No channel to post to; report follows:\n{}", text)
            return
        self.notifier.send_to(channel_id, text)

    # -------------------- command polling --------------------

    def poll_once(self) -> int:
        """Handle new messages in every command channel; return how many were handled."""

        api = self._require_discord()
        if self._user_id is None:
            self._user_id = api.current_user_id()
        handled = 0
        for channel_id in self.cfg.command_channel_ids:
            last = self.notifier.state.last_message_ids.get(channel_id)
            if last is None:
                # Start from the newest message; history is not replayed.
                latest = api.list_recent_messages(channel_id, 1)
                if latest:
                    self.notifier.mark_seen(channel_id, latest[0].id)
                continue
            messages = api.list_recent_messages(channel_id, 50, after=last)
            for msg in sorted(messages, key=lambda m: int(m.id)):
                self.notifier.mark_seen(channel_id, msg.id)
                if msg.author_id == self._user_id:
                    continue
                if self.handle_text_message(channel_id, msg.content) is not None:
                    handled += 1
        return handled

    def poll_forever(self, *, interval: int = 5, sleep_on_error: int = 3) -> None:
        logger.info("Discord command polling started on {} channels", len(self.cfg.command_channel_ids))
        fail_streak = 0
        while True:
            try:
                self.poll_once()
                fail_streak = 0
                logged_sleep(interval, message="Command poll", tick_seconds=interval)
            except KeyboardInterrupt:  # pragma: no cover
                logger.info("Command polling stopped by Ctrl+C")
                break
            except (TransportError, ValueError) as e:
                fail_streak += 1
                backoff = min(60, sleep_on_error * (2 ** min(fail_streak, 3)))
                logger.warning(
                    "Command polling failed: {}. Retrying in {} s",
                    str(e).splitlines()[0],
                    backoff,
                )
                logged_sleep(backoff, message="Pause after polling error")
            except Exception as e:
                fail_streak += 1
                backoff = min(60, sleep_on_error * (2 ** min(fail_streak, 3)))
                logger.exception("Unexpected polling error: {}. Retrying in {} s", e, backoff)
                logged_sleep(backoff, message="Pause after polling error")


def start_bot_background(bot: DiscordBot, *, interval: int = 5) -> threading.Thread | None:
    """Start command polling in a daemon thread; return the thread or None."""

    if bot.api is None:
        logger.debug("DISCORD_TOKEN not set; command polling skipped")
        return None
    if not bot.cfg.command_channel_ids:
        logger.debug("No command channels configured; command polling skipped")
        return None
    t = threading.Thread(target=bot.poll_forever, kwargs={"interval": interval}, daemon=True)
    t.start()
    logger.info("Discord command polling running in the background")
    return t
