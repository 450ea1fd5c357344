"""
site_mapper package initializer.
Defines package version and exposes the crawler API.
"""
__version__ = "0.1.0"

from site_mapper.config import CrawlerConfig, load_config
from site_mapper.crawler import (
    CrawlCompleted,
    CrawlObserver,
    CrawlProgress,
    CrawlState,
    PageCrawled,
    SiteMap,
    WebCrawler,
)
from site_mapper.exceptions import CrawlerBusy, FetchError, InvalidRootUrl, SiteMapperError
