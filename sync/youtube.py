"""YouTube Data API v3 client (playlist items only)."""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Iterator
from typing import Any

from loguru import logger

from parse.models import PlaylistItem
from utils.errors import HTTPStatusError, TransportError


class YouTubeAPI:
    """Thin HTTP wrapper for the YouTube Data API using stdlib only."""

    def __init__(
        self,
        api_key: str,
        *,
        api_base: str = "https://www.googleapis.com/youtube/v3",
        timeout: int = 20,
    ) -> None:
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    def call(self, resource: str, params: dict[str, Any]) -> dict:
        query = urllib.parse.urlencode({**params, "key": self.api_key})
        url = f"{self.api_base}/{resource}?{query}"
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            logger.error("YouTube HTTP {} {} ({})", e.code, e.reason, resource)
            raise HTTPStatusError(e.code, f"{self.api_base}/{resource}") from e
        except urllib.error.URLError as e:
            raise TransportError(f"YouTube API unreachable: {e.reason}") from e

    def list_playlist_items(self, playlist_id: str, *, page_size: int = 50) -> Iterator[PlaylistItem]:
        """Yield every item of a playlist, fetching pages as they are consumed."""

        params: dict[str, Any] = {
            "part": "snippet,contentDetails",
            "playlistId": playlist_id,
            "maxResults": page_size,
        }
        page = 0
        while True:
            res = self.call("playlistItems", params)
            page += 1
            for item in res.get("items", []):
                yield PlaylistItem(
                    video_id=(item.get("contentDetails") or {}).get("videoId", ""),
                    title=(item.get("snippet") or {}).get("title", ""),
                )
            token = res.get("nextPageToken")
            if not token:
                logger.debug("Playlist {}: {} pages", playlist_id, page)
                return
            params["pageToken"] = token
