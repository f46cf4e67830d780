from __future__ import annotations

import requests
from bs4 import BeautifulSoup
from loguru import logger

from utils.errors import HTTPStatusError, TransportError

USER_AGENT = "project-check-bot (+https://www.untitledvirtualensemble.org)"


class PageFetcher:
    """Fetch a web page and return it as a queryable document."""

    def __init__(self, *, timeout: int = 20, session: requests.Session | None = None) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def fetch(self, url: str) -> BeautifulSoup:
        logger.debug("GET {}", url)
        try:
            res = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"could not fetch {url}: {e}") from e
        if res.status_code != 200:
            raise HTTPStatusError(res.status_code, url)
        return BeautifulSoup(res.content, "html.parser")
