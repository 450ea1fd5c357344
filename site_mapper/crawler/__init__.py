"""site_mapper.crawler: обход сайта и построение карты."""

from __future__ import annotations

from site_mapper.crawler.crawler import CrawlState, WebCrawler
from site_mapper.crawler.events import CrawlCompleted, CrawlObserver, CrawlProgress, PageCrawled
from site_mapper.crawler.fetcher import Fetcher
from site_mapper.crawler.link_extractor import extract_resources, resolve_url
from site_mapper.crawler.models import CrawlResult, NodeKind, PageData, SiteNode
from site_mapper.crawler.site_map import SiteMap

__all__ = [
    "CrawlState",
    "WebCrawler",
    "CrawlCompleted",
    "CrawlObserver",
    "CrawlProgress",
    "PageCrawled",
    "Fetcher",
    "extract_resources",
    "resolve_url",
    "CrawlResult",
    "NodeKind",
    "PageData",
    "SiteNode",
    "SiteMap",
]
