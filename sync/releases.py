"""Released performances on the website vs. the YouTube playlist."""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from parse.links import extract_video_ids
from parse.models import PlaylistItem
from parse.page import PageFetcher

PRIVATE_VIDEO_TITLE = "Private video"


def list_website_releases(fetcher: PageFetcher, releases_url: str) -> list[str]:
    """Return the video IDs linked from the releases page, in page order."""

    ids = extract_video_ids(fetcher.fetch(releases_url))
    logger.info("Releases page: {} videos", len(ids))
    return ids


def reconcile_releases(website_ids: Iterable[str], playlist: Iterable[PlaylistItem]) -> str:
    """Report videos missing on either side; empty string when both agree.

    Private playlist entries are not expected on the website and are only
    checked in the other direction.
    """

    videos = list(playlist)
    on_website = dict.fromkeys(website_ids)
    in_playlist = {v.video_id for v in videos}

    lines: list[str] = []
    for v in videos:
        if v.title == PRIVATE_VIDEO_TITLE:
            continue
        if v.video_id not in on_website:
            lines.append(f"- {v.title}: missing on website (https://youtu.be/{v.video_id})")
    for vid in on_website:
        if vid not in in_playlist:
            lines.append(f"- https://youtu.be/{vid} missing in playlist")
    return "".join(line + "\n" for line in lines)


def check_releases(fetcher: PageFetcher, youtube, *, releases_url: str, playlist_id: str) -> str:
    """Fetch both sides and return the release report.

    `youtube` provides `list_playlist_items(playlist_id)`.
    """

    website_ids = list_website_releases(fetcher, releases_url)
    videos = list(youtube.list_playlist_items(playlist_id))
    logger.info("Playlist {}: {} videos", playlist_id, len(videos))
    report = reconcile_releases(website_ids, videos)
    logger.info("Release check: {} discrepancies", report.count("\n"))
    return report
