"""Command-line entrypoint and bot orchestration.

Reads configuration from `.env.config` and environment variables, then either
runs one command and prints its reply, or starts the bot: command polling in
the background plus the daily website check in the foreground.
"""

from __future__ import annotations

import argparse
import sys
from datetime import UTC, datetime

from loguru import logger

from sync.discord_bot import COMMANDS, DiscordBot, start_bot_background
from utils import logged_sleep, seconds_until
from utils.config import AppConfig, ConfigError, load_env_config, setup_logging


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check #current-projects and the YouTube playlist against the website."
    )
    parser.add_argument("command", choices=["bot", *COMMANDS], help="bot: start the Discord bot")
    parser.add_argument("--env", default=".env.config", help="Path to the .env-style config file")
    return parser.parse_args(argv)


def _next_wait(cfg: AppConfig) -> float:
    if cfg.watch_interval_seconds:
        return float(cfg.watch_interval_seconds)
    return seconds_until(cfg.check_at or "12:00", datetime.now(UTC))


def run_bot(cfg: AppConfig) -> None:
    cfg.require("discord_token", "guild_id", "tech_team_channel_id")
    if not cfg.google_api_key:
        raise ConfigError("need a YouTube client: GOOGLE_API_KEY is not set")

    bot = DiscordBot.from_config(cfg)
    poll_thread = start_bot_background(bot)
    logger.info("Bot is now running. Press Ctrl+C to exit.")
    try:
        while True:
            logged_sleep(_next_wait(cfg), message="Waiting for the next website check")
            try:
                bot.scheduled_check()
            except Exception as e:
                logger.exception("Scheduled check failed")
                if bot.notifier is not None:
                    bot.notifier.send_error(f"scheduled check failed: {e}")
    except KeyboardInterrupt:
        logger.info("Stopping bot by Ctrl+C")
    if poll_thread and poll_thread.is_alive():
        logger.debug("Command polling thread exits with the process")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        cfg = load_env_config(args.env)
    except ConfigError as ce:
        logger.error("Configuration error: {}", ce)
        return 2

    setup_logging(level=cfg.log_level, log_file=cfg.log_file, color=cfg.log_color)

    try:
        if args.command == "bot":
            run_bot(cfg)
            return 0
        bot = DiscordBot.from_config(cfg)
        print(bot.handle_command(args.command))
    except ConfigError as ce:
        logger.error("Configuration error: {}", ce)
        return 2
    except Exception as e:
        logger.exception("{} failed", args.command)
        print(f"error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
