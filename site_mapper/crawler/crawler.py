from __future__ import annotations

import asyncio
import logging
import time
from datetime import timedelta
from enum import Enum
from typing import Callable, Optional, Set, Tuple

from site_mapper.config import CrawlerConfig
from site_mapper.crawler.events import CrawlCompleted, CrawlObserver, CrawlProgress, PageCrawled
from site_mapper.crawler.fetcher import Fetcher
from site_mapper.crawler.link_extractor import extract_resources
from site_mapper.crawler.models import CrawlResult, SiteNode
from site_mapper.crawler.site_map import SiteMap
from site_mapper.exceptions import CrawlerBusy, FetchError

__all__ = ("CrawlState", "WebCrawler")

FetcherFactory = Callable[[CrawlerConfig], Fetcher]


class CrawlState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class WebCrawler:
    """Асинхронный BFS-краулер одного хоста: пауза, остановка, события для UI.

    One dispatcher coroutine pops URLs from the site map and starts up to
    ``max_concurrent_requests`` fetch tasks; every site map mutation runs
    under a single lock. ``pause()``, ``resume()`` and ``stop()`` are plain
    methods, safe to call from observer hooks or other tasks on the loop.
    """

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        observer: Optional[CrawlObserver] = None,
        fetcher_factory: FetcherFactory = Fetcher,
    ) -> None:
        self.config = config or CrawlerConfig()
        self.observer = observer or CrawlObserver()
        self._fetcher_factory = fetcher_factory
        self.logger = logging.getLogger("SiteMapper")
        self.state = CrawlState.IDLE
        self.site_map: Optional[SiteMap] = None
        self._in_flight: Set[asyncio.Task[None]] = set()
        self._reset_primitives()
        self._reset_counters()

    # ------------------------------------------------------------------ control

    @property
    def is_active(self) -> bool:
        return self.state in (CrawlState.RUNNING, CrawlState.PAUSED)

    def pause(self) -> None:
        """Stop dispatching new fetches; in-flight ones still finish and merge."""
        if self.state is CrawlState.RUNNING:
            self._pause_gate.clear()
            self.state = CrawlState.PAUSED
            self.logger.info("Crawl paused")

    def resume(self) -> None:
        if self.state is CrawlState.PAUSED:
            self.state = CrawlState.RUNNING
            self._pause_gate.set()
            self.logger.info("Crawl resumed")

    def stop(self) -> None:
        """Cancel the session: no new dispatches, in-flight fetches are aborted."""
        if self.state in (CrawlState.COMPLETED, CrawlState.CANCELLED):
            return
        if self.state is CrawlState.IDLE:
            self.state = CrawlState.CANCELLED
            return
        self.logger.info("Stopping crawl, cancelling %d in-flight request(s)", len(self._in_flight))
        self._cancel.set()
        # a paused dispatcher must wake up to see the cancellation
        self._pause_gate.set()
        for task in list(self._in_flight):
            task.cancel()

    # ------------------------------------------------------------------ session

    async def start_crawling(self, root_url: str) -> CrawlCompleted:
        """
        Crawl the host of *root_url* and return the completion event.

        Raises InvalidRootUrl before anything is created if *root_url* is
        malformed, and CrawlerBusy if a session is already running. Every
        other failure is per page and is only logged.
        """
        if self.is_active:
            raise CrawlerBusy("A crawl session is already running")
        site_map = SiteMap(root_url)

        self.site_map = site_map
        self._reset_primitives()
        self._reset_counters()
        self.state = CrawlState.RUNNING
        self.logger.info(
            "Старт обхода: %s (concurrency=%d, budget=%d, delay=%dms)",
            site_map.root_url,
            self.config.max_concurrent_requests,
            self.config.max_pages_to_process,
            self.config.request_delay_ms,
        )
        start = time.monotonic()
        try:
            async with self._fetcher_factory(self.config) as fetcher:
                try:
                    await self._drive(fetcher)
                except asyncio.CancelledError:
                    self.stop()
                    raise
                finally:
                    await self._drain()
        finally:
            completed = self._finish(start)
        return completed

    async def _drive(self, fetcher: Fetcher) -> None:
        cfg = self.config
        while not self._cancel.is_set():
            await self._pause_gate.wait()
            if self._cancel.is_set():
                break
            if self._dispatched >= cfg.max_pages_to_process:
                self.logger.info("Page budget of %d reached", cfg.max_pages_to_process)
                break
            if len(self._in_flight) >= cfg.max_concurrent_requests:
                await self._wait_for_slot()
                continue

            async with self._lock:
                url = self._next_dispatchable_url()
            if url is None:
                # running tasks may still discover new pages
                if not self._in_flight:
                    break
                await self._wait_for_slot()
                continue

            self._dispatch(fetcher, url)
            await self._pace()

    def _next_dispatchable_url(self) -> Optional[str]:
        assert self.site_map is not None
        while True:
            url = self.site_map.get_next_url_to_process()
            if url is None:
                return None
            if self.site_map.should_process_url(url):
                # seen from now on, so it is never dispatched twice
                self.site_map.mark_processed(url)
                return url
            self.logger.debug("Skipping %s", url)

    def _dispatch(self, fetcher: Fetcher, url: str) -> None:
        task = asyncio.create_task(self._process_url(fetcher, url), name=f"crawl:{url}")
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        self._dispatched += 1
        self.logger.debug("Dispatched %s (%d in flight)", url, len(self._in_flight))

    async def _wait_for_slot(self) -> None:
        if self._in_flight:
            await asyncio.wait(set(self._in_flight), return_when=asyncio.FIRST_COMPLETED)

    async def _pace(self) -> None:
        delay = self.config.request_delay
        if delay <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _drain(self) -> None:
        if self._cancel.is_set():
            for task in list(self._in_flight):
                task.cancel()
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    def _finish(self, start: float) -> CrawlCompleted:
        cancelled = self._cancel.is_set()
        self.state = CrawlState.CANCELLED if cancelled else CrawlState.COMPLETED
        duration = timedelta(seconds=time.monotonic() - start)
        event = CrawlCompleted(
            site_map=self.site_map,
            pages_processed=self.pages_processed,
            total_links=self.total_links,
            total_assets=self.total_assets,
            duration=duration,
            cancelled=cancelled,
        )
        self.logger.info(
            "Завершено%s: %d страниц, %d ссылок, %d ресурсов за %.2f с",
            " (отменено)" if cancelled else "",
            self.pages_processed,
            self.total_links,
            self.total_assets,
            duration.total_seconds(),
        )
        self._emit("on_completed", event)
        return event

    # ------------------------------------------------------------------ per page

    async def _process_url(self, fetcher: Fetcher, url: str) -> None:
        try:
            page = await fetcher.fetch(url)
            result = extract_resources(page.content, url) if page.is_html else CrawlResult.empty(url)
        except FetchError as exc:
            self.logger.warning("Failed %s: %s", url, exc)
            await self._mark_processed(url)
            return
        except Exception:
            self.logger.exception("Error processing %s", url)
            await self._mark_processed(url)
            return

        async with self._lock:
            node, progress = self._merge(url, result)
        self._emit("on_page_crawled", PageCrawled(url, result, node))
        self._emit("on_progress", progress)

    async def _mark_processed(self, url: str) -> None:
        async with self._lock:
            assert self.site_map is not None
            self.site_map.mark_processed(url)

    def _merge(self, url: str, result: CrawlResult) -> Tuple[Optional[SiteNode], CrawlProgress]:
        site_map = self.site_map
        assert site_map is not None
        for link in result.internal_links:
            site_map.add_page(link, url)
        for link in result.external_links:
            site_map.add_external_link(link, url)
        for asset in result.script_sources | result.stylesheet_links:
            site_map.add_asset(asset, url)
        for form in result.form_actions:
            site_map.add_form(form, url)
        site_map.mark_processed(url)

        self.pages_processed += 1
        self.total_links += result.link_count
        self.total_assets += result.asset_count
        progress = CrawlProgress(self.pages_processed, site_map.total_known_urls, url)
        return site_map.node_for(url), progress

    def _emit(self, hook: str, event: object) -> None:
        try:
            getattr(self.observer, hook)(event)
        except Exception:
            self.logger.exception("Observer hook %s failed", hook)

    # ------------------------------------------------------------------ helpers

    def _reset_primitives(self) -> None:
        self._lock = asyncio.Lock()
        self._pause_gate = asyncio.Event()
        self._pause_gate.set()
        self._cancel = asyncio.Event()
        self._in_flight = set()

    def _reset_counters(self) -> None:
        self._dispatched = 0
        self.pages_processed = 0
        self.total_links = 0
        self.total_assets = 0
