"""
Events the crawler reports to its observer.

The crawler calls the observer from its own event loop; handing the data
over to a UI thread is up to the observer.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Optional

from site_mapper.crawler.models import CrawlResult, SiteNode

if TYPE_CHECKING:
    from site_mapper.crawler.site_map import SiteMap

__all__ = ("CrawlProgress", "PageCrawled", "CrawlCompleted", "CrawlObserver")


@dataclass(frozen=True, slots=True)
class CrawlProgress:
    pages_processed: int
    total_known_urls: int
    current_url: Optional[str]

    @property
    def percentage(self) -> int:
        # total grows as pages are discovered, so this can go down
        if self.total_known_urls <= 0:
            return 0
        return int(self.pages_processed / self.total_known_urls * 100)


@dataclass(frozen=True, slots=True)
class PageCrawled:
    url: str
    result: CrawlResult
    node: Optional[SiteNode]


@dataclass(frozen=True, slots=True)
class CrawlCompleted:
    """Terminal event, emitted exactly once per session."""

    site_map: Optional["SiteMap"]
    pages_processed: int
    total_links: int
    total_assets: int
    duration: timedelta
    cancelled: bool


class CrawlObserver:
    """Receives crawl events. Override the hooks you need; the defaults do nothing."""

    def on_progress(self, event: CrawlProgress) -> None:
        pass

    def on_page_crawled(self, event: PageCrawled) -> None:
        pass

    def on_completed(self, event: CrawlCompleted) -> None:
        pass
