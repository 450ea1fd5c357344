# File: tests/conftest.py
import asyncio
from collections.abc import AsyncIterator
from typing import Callable, Dict, List, Optional, Union

import pytest
from aiohttp import web

from site_mapper.config import CrawlerConfig
from site_mapper.crawler.events import CrawlCompleted, CrawlObserver, CrawlProgress, PageCrawled
from site_mapper.crawler.models import PageData
from site_mapper.exceptions import FetchError

PageEntry = Union[str, tuple, Exception]


class FakeFetcher:
    """
    In-memory stand-in for Fetcher.

    ``pages`` maps url -> html body, (content_type, body) or an exception to raise.
    Unknown urls raise FetchError(404). A url listed in ``gates`` blocks until
    its event is set. The instance is its own factory: WebCrawler calls it with
    the config and gets the same object back.
    """

    def __init__(
        self,
        pages: Dict[str, PageEntry],
        delay: float = 0.0,
        gates: Optional[Dict[str, asyncio.Event]] = None,
    ) -> None:
        self.pages = pages
        self.delay = delay
        self.gates = gates or {}
        self.requested: List[str] = []
        self.cancelled: List[str] = []
        self.active = 0
        self.max_active = 0

    def __call__(self, config: CrawlerConfig) -> "FakeFetcher":
        return self

    async def __aenter__(self) -> "FakeFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def fetch(self, url: str) -> PageData:
        self.requested.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            gate = self.gates.get(url)
            if gate is not None:
                await gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            entry = self.pages.get(url)
            if entry is None:
                raise FetchError(url, "Not Found", status=404)
            if isinstance(entry, Exception):
                raise entry
            ctype, body = entry if isinstance(entry, tuple) else ("text/html; charset=utf-8", entry)
            return PageData(url, ctype, body if "html" in ctype else "")
        except asyncio.CancelledError:
            self.cancelled.append(url)
            raise
        finally:
            self.active -= 1


class RecordingObserver(CrawlObserver):
    """Collects every event; ``on_page`` lets a test react to a crawled page."""

    def __init__(self, on_page: Optional[Callable[[PageCrawled], None]] = None) -> None:
        self.progress: List[CrawlProgress] = []
        self.pages: List[PageCrawled] = []
        self.completed: List[CrawlCompleted] = []
        self._on_page = on_page

    def on_progress(self, event: CrawlProgress) -> None:
        self.progress.append(event)

    def on_page_crawled(self, event: PageCrawled) -> None:
        self.pages.append(event)
        if self._on_page is not None:
            self._on_page(event)

    def on_completed(self, event: CrawlCompleted) -> None:
        self.completed.append(event)

    @property
    def crawled_urls(self) -> List[str]:
        return [e.url for e in self.pages]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* until it holds or fail the test after *timeout* seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition was not met in time")
        await asyncio.sleep(0.01)


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


@pytest.fixture()
def fast_config() -> CrawlerConfig:
    """Config without pacing so scheduler tests run quickly."""
    return CrawlerConfig(
        max_concurrent_requests=3,
        max_pages_to_process=100,
        request_delay_ms=0,
        request_timeout=2.0,
    )


@pytest.fixture()
def observer() -> RecordingObserver:
    return RecordingObserver()
