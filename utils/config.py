from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from datetime import timedelta

from dateutil.relativedelta import relativedelta
from dotenv import load_dotenv
from loguru import logger


class ConfigError(Exception):
    pass


WEBSITE_URL = "https://www.untitledvirtualensemble.org"
RELEASES_PATH = "/released-performances"
PROJECTS_CHANNEL_NAME = "current-projects"
# Deadlines further in the past than this are stale.
STALE_DEADLINE_GRACE = timedelta(days=2)
# The website is assumed to be updated at least this often.
WEBSITE_UPDATE_LAG = relativedelta(months=1)


def env_get(key: str, *aliases: str, default: str | None = None) -> str | None:
    """Return the first non-empty value from env among `key` and `aliases`."""

    for k in (key, *aliases):
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v
    return default


def env_get_bool(key: str, *aliases: str, default: bool | None = None) -> bool | None:
    """Parse a boolean value from env for `key`/`aliases` if present."""

    v = env_get(key, *aliases)
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_get_int(key: str, *aliases: str, default: int | None = None) -> int | None:
    """Parse an integer from env; unparsable values fall back to `default`."""

    v = env_get(key, *aliases)
    if v is None:
        return default
    try:
        return int(str(v).strip())
    except ValueError:
        logger.warning("Ignoring non-integer value for {}: {!r}", key, v)
        return default


@dataclass
class AppConfig:
    discord_token: str | None = None
    guild_id: str | None = None
    tech_team_channel_id: str | None = None
    tech_team_role_id: str | None = None
    bot_spam_channel_id: str | None = None
    command_channel_ids: list[str] = field(default_factory=list)
    projects_channel_name: str = PROJECTS_CHANNEL_NAME
    projects_message_limit: int = 20
    website_url: str = WEBSITE_URL
    website_releases_url: str = WEBSITE_URL + RELEASES_PATH
    google_api_key: str | None = None
    playlist_id: str | None = None
    stale_deadline_grace: timedelta = STALE_DEADLINE_GRACE
    website_update_lag: relativedelta = field(default_factory=lambda: WEBSITE_UPDATE_LAG)
    http_timeout: int = 20
    # Scheduled check: daily at `check_at` (UTC), or every `watch_interval_seconds`
    check_at: str | None = "12:00"
    watch_interval_seconds: int | None = None
    bot_persist_dir: str = "var/bot"
    dry_run: bool = False
    log_level: str = "INFO"
    log_file: str | None = None
    log_color: bool | None = None

    def require(self, *names: str) -> None:
        """Raise ConfigError unless every named attribute is set."""

        missing = [n for n in names if not getattr(self, n, None)]
        if missing:
            msg = "missing configuration: " + ", ".join(n.upper() for n in missing)
            logger.error(msg)
            raise ConfigError(msg)


def _parse_check_at(raw: str | None) -> str | None:
    if raw is None:
        return None
    s = raw.strip()
    try:
        hh, mm = s.split(":", 1)
        if not (0 <= int(hh) < 24 and 0 <= int(mm) < 60):
            raise ValueError(s)
    except ValueError:
        logger.warning("Ignoring invalid CHECK_AT value: {!r}", raw)
        return "12:00"
    return f"{int(hh):02d}:{int(mm):02d}"


def load_env_config(env_path: str = ".env.config") -> AppConfig:
    """Load configuration from a .env-style file and the environment."""

    def _try_load(paths: list[str]) -> bool:
        for p in paths:
            if p and os.path.isfile(p) and load_dotenv(p):
                logger.debug("Loaded configuration file: {}", p)
                return True
        return False

    candidates: list[str] = []
    env_file_env = os.getenv("ENV_FILE")
    if env_file_env:
        candidates.append(env_file_env)
    if env_path:
        if os.path.isabs(env_path):
            candidates.append(env_path)
        else:
            candidates.append(os.path.join(os.getcwd(), env_path))
    if not _try_load(candidates):
        logger.debug("No configuration file found; using environment only")

    website_url = (env_get("WEBSITE_URL", default=WEBSITE_URL) or WEBSITE_URL).rstrip("/")
    releases_url = env_get("WEBSITE_RELEASES_URL", default=website_url + RELEASES_PATH)

    tech_team_channel_id = env_get("TECH_TEAM_CHANNEL_ID")
    command_raw = env_get("COMMAND_CHANNEL_IDS", "COMMAND_CHANNEL_ID")
    command_channel_ids = [c.strip() for c in command_raw.split(",") if c.strip()] if command_raw else []
    if not command_channel_ids and tech_team_channel_id:
        command_channel_ids = [tech_team_channel_id]

    stale_days = env_get_int("STALE_DEADLINE_DAYS", default=2)
    lag_months = env_get_int("WEBSITE_UPDATE_LAG_MONTHS", default=1)

    # Watch interval: allow either seconds or minutes envs
    interval_sec = env_get_int("WATCH_INTERVAL_SECONDS")
    interval_min = env_get_int("WATCH_INTERVAL_MINUTES")
    watch_interval_seconds = (
        interval_sec
        if (interval_sec is not None and interval_sec > 0)
        else (interval_min * 60 if (interval_min is not None and interval_min > 0) else None)
    )
    check_at = None if watch_interval_seconds else _parse_check_at(env_get("CHECK_AT", default="12:00"))

    log_level = env_get("LOG_LEVEL", default="INFO")

    return AppConfig(
        discord_token=env_get("DISCORD_TOKEN", "DISCORD_BOT_TOKEN"),
        guild_id=env_get("GUILD_ID"),
        tech_team_channel_id=tech_team_channel_id,
        tech_team_role_id=env_get("TECH_TEAM_ROLE_ID"),
        bot_spam_channel_id=env_get("BOT_SPAM_CHANNEL_ID"),
        command_channel_ids=command_channel_ids,
        projects_channel_name=env_get("PROJECTS_CHANNEL_NAME", default=PROJECTS_CHANNEL_NAME)
        or PROJECTS_CHANNEL_NAME,
        projects_message_limit=env_get_int("PROJECTS_MESSAGE_LIMIT", default=20) or 20,
        website_url=website_url,
        website_releases_url=releases_url or website_url + RELEASES_PATH,
        google_api_key=env_get("GOOGLE_API_KEY", "YOUTUBE_API_KEY"),
        playlist_id=env_get("PLAYLIST_ID"),
        stale_deadline_grace=timedelta(days=stale_days if stale_days is not None else 2),
        website_update_lag=relativedelta(months=lag_months if lag_months is not None else 1),
        http_timeout=env_get_int("HTTP_TIMEOUT", default=20) or 20,
        check_at=check_at,
        watch_interval_seconds=watch_interval_seconds,
        bot_persist_dir=env_get("BOT_PERSIST_DIR", default="var/bot") or "var/bot",
        dry_run=bool(env_get_bool("DRY_RUN", default=False)),
        log_level=(log_level or "INFO").upper(),
        log_file=env_get("LOG_FILE"),
        log_color=env_get_bool("LOG_COLOR", default=None),
    )


def setup_logging(
    level: str = "INFO", log_file: str | None = None, color: bool | None = None
) -> None:
    """Configure loguru sinks for console and optional file."""

    logger.remove()
    fmt_color = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    )
    fmt_plain = (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"
    )
    logger.add(
        sys.stderr,
        level=level,
        colorize=(True if color is None else bool(color)),
        backtrace=True,
        diagnose=False,
        format=fmt_color if (color is None or color) else fmt_plain,
    )
    if log_file:
        # Defaults: rotate at 10 MB, keep 7 days, compress as zip.
        rotation = env_get("LOG_ROTATION", default="10 MB") or "10 MB"
        retention = env_get("LOG_RETENTION", default="7 days") or "7 days"
        compression = env_get("LOG_COMPRESSION", default="zip") or "zip"
        d = os.path.dirname(log_file)
        if d:
            try:
                os.makedirs(d, exist_ok=True)
            except OSError as e:
                logger.warning("Could not create log directory for '{}': {}", log_file, e)
        logger.add(
            log_file,
            level=level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            enqueue=True,
            backtrace=True,
            diagnose=False,
            format=fmt_plain,
        )
