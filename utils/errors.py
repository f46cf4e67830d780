"""Error taxonomy shared by parsers, collaborators and checks."""

from __future__ import annotations


class ParseError(ValueError):
    """A single chat record could not be parsed; the record is skipped."""

    def __init__(self, message: str, *, name: str = "", message_id: str = "") -> None:
        super().__init__(message)
        self.name = name
        self.message_id = message_id


class FormatError(ValueError):
    """A listing entry does not have the expected `Due <date> - <name>` shape."""


class TransportError(RuntimeError):
    """A page or API could not be fetched."""


class HTTPStatusError(TransportError):
    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(f"unexpected status code {status_code} (getting {url})")
        self.status_code = status_code
        self.url = url


class ChannelNotFoundError(LookupError):
    """A channel the check depends on does not exist in the guild."""
