"""site_mapper.exceptions: ошибки, которые краулер пробрасывает наружу."""

from __future__ import annotations

from typing import Optional

__all__ = ["SiteMapperError", "InvalidRootUrl", "FetchError", "CrawlerBusy"]


class SiteMapperError(Exception):
    """Base class for all site_mapper errors."""


class InvalidRootUrl(SiteMapperError, ValueError):
    """The crawl target is not a well-formed absolute http(s) URL."""

    def __init__(self, url: object) -> None:
        self.url = url
        super().__init__(f"Invalid root URL format: {url!r}")


class FetchError(SiteMapperError):
    """A single page could not be fetched (HTTP error, network error or timeout)."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None) -> None:
        self.url = url
        self.reason = reason
        self.status = status
        msg = f"{url}: {reason}" if status is None else f"{url}: HTTP {status} {reason}".rstrip()
        super().__init__(msg)


class CrawlerBusy(SiteMapperError, RuntimeError):
    """start_crawling() was called while another session is still active."""
