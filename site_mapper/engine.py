"""site_mapper.engine: слой оркестрации для запуска обхода с наблюдателем, который пишет прогресс в лог."""

from __future__ import annotations

import asyncio
from typing import Optional

from site_mapper.config import CrawlerConfig, load_config
from site_mapper.crawler.crawler import WebCrawler
from site_mapper.crawler.events import CrawlCompleted, CrawlObserver, CrawlProgress, PageCrawled
from site_mapper.logger import logger

__all__ = ["Engine", "LoggingObserver", "run_crawl"]


class LoggingObserver(CrawlObserver):
    """Пишет события краулера в лог проекта."""

    def on_progress(self, event: CrawlProgress) -> None:
        logger.info(
            "[%3d%%] %d/%d pages, crawling %s",
            event.percentage,
            event.pages_processed,
            event.total_known_urls,
            event.current_url,
        )

    def on_page_crawled(self, event: PageCrawled) -> None:
        result = event.result
        logger.debug(
            "Crawled %s: %d links, %d assets, %d forms",
            event.url,
            result.link_count,
            result.asset_count,
            len(result.form_actions),
        )

    def on_completed(self, event: CrawlCompleted) -> None:
        if event.cancelled:
            logger.warning("Crawl cancelled after %d pages", event.pages_processed)


async def run_crawl(
    config: CrawlerConfig,
    root_url: str,
    observer: Optional[CrawlObserver] = None,
) -> CrawlCompleted:
    """Запускает одну сессию обхода и возвращает итоговое событие CrawlCompleted."""
    crawler = WebCrawler(config, observer or LoggingObserver())
    return await crawler.start_crawling(root_url)


class Engine:
    """Фасад для CLI и тестов: загрузка конфига и синхронный запуск обхода."""

    @staticmethod
    def load_config(path: Optional[str]) -> CrawlerConfig:
        return load_config(path)

    def __init__(self, config: CrawlerConfig, observer: Optional[CrawlObserver] = None) -> None:
        self.config = config
        self.observer = observer

    def start_scan(self, root_url: str, timeout: Optional[float] = None) -> CrawlCompleted:
        """Запускает обход в новом event loop; при таймауте сессия отменяется и ошибка пробрасывается."""
        logger.info("Starting crawl of %s", root_url)
        coro = run_crawl(self.config, root_url, self.observer)
        try:
            if timeout:
                return asyncio.run(asyncio.wait_for(coro, timeout=timeout))
            return asyncio.run(coro)
        except asyncio.TimeoutError:
            logger.error("Crawl did not finish within %s seconds", timeout)
            raise
        except Exception as exc:
            logger.error("Crawl failed: %s", exc)
            raise
