# site_mapper/crawler/fetcher.py
"""
Fetcher module: one GET per page with browser-like headers, redirect and timeout policy.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from aiohttp import ClientError, ClientSession, ClientTimeout, TooManyRedirects

from site_mapper.config import CrawlerConfig
from site_mapper.crawler.models import PageData
from site_mapper.exceptions import FetchError

logger = logging.getLogger("SiteMapper")


class Fetcher:
    """Shared HTTP client for all fetch tasks of a crawl session.

    Used as an async context manager; closes the session on exit unless
    the session was passed in by the caller.
    """

    def __init__(self, config: CrawlerConfig, session: Optional[ClientSession] = None) -> None:
        self.config = config
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self) -> Fetcher:
        if self.session is None:
            self.session = ClientSession(
                timeout=ClientTimeout(total=self.config.request_timeout),
                headers={"User-Agent": self.config.user_agent, "Accept": self.config.accept},
                raise_for_status=False,
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()

    async def fetch(self, url: str) -> PageData:
        """
        GET *url* and return its body if the response is HTML.

        Non-HTML responses come back with empty content. Raises FetchError
        on non-2xx status, network errors, too many redirects and timeouts.
        Task cancellation aborts the request and propagates.
        """
        if not self.session:
            raise RuntimeError("Session not initialized")

        logger.debug("Fetching %s", url)
        try:
            async with self.session.get(
                url,
                allow_redirects=True,
                max_redirects=self.config.max_redirects,
            ) as resp:
                if not 200 <= resp.status < 300:
                    raise FetchError(url, resp.reason or "", status=resp.status)
                ctype = resp.headers.get("Content-Type", "")
                if "html" not in ctype.lower():
                    logger.debug("Skipping non-HTML content %r at %s", ctype, url)
                    return PageData(url, ctype, "", resp.status)
                text = await resp.text(errors="replace")
                return PageData(url, ctype, text, resp.status)
        except TooManyRedirects as exc:
            raise FetchError(url, f"too many redirects ({self.config.max_redirects})") from exc
        except asyncio.TimeoutError as exc:
            raise FetchError(url, f"timed out after {self.config.request_timeout}s") from exc
        except ClientError as exc:
            raise FetchError(url, str(exc) or type(exc).__name__) from exc
