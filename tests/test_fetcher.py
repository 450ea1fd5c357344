# File: tests/test_fetcher.py
# Fetcher and end-to-end crawl against a local aiohttp server
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp import web

from conftest import RecordingObserver, serve_app
from site_mapper.config import DEFAULT_USER_AGENT, CrawlerConfig
from site_mapper.crawler.crawler import CrawlState, WebCrawler
from site_mapper.crawler.fetcher import Fetcher
from site_mapper.exceptions import FetchError

SLOW_SLEEP: float = 1.0


@pytest_asyncio.fixture
async def site(unused_tcp_port: int) -> AsyncIterator[tuple[str, dict]]:
    app = web.Application()
    seen: dict = {"headers": None, "hits": {}}

    def hit(request: web.Request) -> None:
        seen["hits"][request.path] = seen["hits"].get(request.path, 0) + 1

    async def handle_root(request):
        hit(request)
        seen["headers"] = dict(request.headers)
        return web.Response(
            text=(
                '<html><head><link rel="stylesheet" href="/style.css">'
                '<script src="/app.js"></script></head><body>'
                '<a href="/page1">Page1</a><a href="/broken">Broken</a>'
                '<a href="/old">Old</a><a href="https://external.test/">X</a>'
                '<form action="/search?q=1&amp;x=2"></form>'
                "</body></html>"
            ),
            content_type="text/html",
        )

    async def handle_page1(request):
        hit(request)
        return web.Response(text='<a href="/">home</a><a href="/data.json">data</a>', content_type="text/html")

    async def handle_json(request):
        hit(request)
        return web.json_response({"a": 1})

    async def handle_broken(request):
        hit(request)
        return web.Response(status=500, text="boom")

    async def handle_old(request):
        hit(request)
        raise web.HTTPFound("/new")

    async def handle_new(request):
        hit(request)
        return web.Response(text="<h1>moved</h1>", content_type="text/html")

    async def handle_loop(request):
        raise web.HTTPFound("/loop")

    async def handle_slow(request):
        await asyncio.sleep(SLOW_SLEEP)
        return web.Response(text="<h1>slow</h1>", content_type="text/html")

    app.router.add_get("/", handle_root)
    app.router.add_get("/page1", handle_page1)
    app.router.add_get("/data.json", handle_json)
    app.router.add_get("/broken", handle_broken)
    app.router.add_get("/old", handle_old)
    app.router.add_get("/new", handle_new)
    app.router.add_get("/loop", handle_loop)
    app.router.add_get("/slow", handle_slow)

    async for url in serve_app(app, unused_tcp_port):
        yield url, seen


@pytest.mark.asyncio()
async def test_fetch_html_sends_browser_headers(site, fast_config):
    base, seen = site
    async with Fetcher(fast_config) as fetcher:
        page = await fetcher.fetch(f"{base}/")

    assert page.is_html
    assert page.status == 200
    assert "/page1" in page.content
    assert seen["headers"]["User-Agent"] == DEFAULT_USER_AGENT
    assert seen["headers"]["Accept"].startswith("text/html")


@pytest.mark.asyncio()
async def test_fetch_non_html_returns_empty_content(site, fast_config):
    base, _ = site
    async with Fetcher(fast_config) as fetcher:
        page = await fetcher.fetch(f"{base}/data.json")

    assert not page.is_html
    assert page.content == ""
    assert "json" in page.content_type


@pytest.mark.asyncio()
@pytest.mark.parametrize("path,status", [("/broken", 500), ("/missing", 404)])
async def test_fetch_http_error_raises(site, fast_config, path, status):
    base, _ = site
    async with Fetcher(fast_config) as fetcher:
        with pytest.raises(FetchError) as info:
            await fetcher.fetch(f"{base}{path}")
    assert info.value.status == status
    assert info.value.url == f"{base}{path}"


@pytest.mark.asyncio()
async def test_fetch_follows_redirects(site, fast_config):
    base, _ = site
    async with Fetcher(fast_config) as fetcher:
        page = await fetcher.fetch(f"{base}/old")
    assert "moved" in page.content


@pytest.mark.asyncio()
async def test_fetch_redirect_loop_is_error(site):
    base, _ = site
    config = CrawlerConfig(max_redirects=3, request_timeout=2.0)
    async with Fetcher(config) as fetcher:
        with pytest.raises(FetchError):
            await fetcher.fetch(f"{base}/loop")


@pytest.mark.asyncio()
async def test_fetch_timeout_is_error(site):
    base, _ = site
    config = CrawlerConfig(request_timeout=0.2)
    async with Fetcher(config) as fetcher:
        with pytest.raises(FetchError, match="timed out"):
            await fetcher.fetch(f"{base}/slow")


@pytest.mark.asyncio()
async def test_fetch_cancellation_propagates(site, fast_config):
    base, _ = site
    async with Fetcher(fast_config) as fetcher:
        task = asyncio.create_task(fetcher.fetch(f"{base}/slow"))
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


@pytest.mark.asyncio()
async def test_fetch_without_session_fails(fast_config):
    with pytest.raises(RuntimeError):
        await Fetcher(fast_config).fetch("http://localhost/")


@pytest.mark.asyncio()
async def test_crawl_against_live_server(site):
    base, seen = site
    observer = RecordingObserver()
    config = CrawlerConfig(max_concurrent_requests=2, request_delay_ms=10, request_timeout=2.0)
    crawler = WebCrawler(config, observer)

    completed = await asyncio.wait_for(crawler.start_crawling(f"{base}/"), timeout=15)

    sm = completed.site_map
    root = sm.node_for(f"{base}/")
    assert crawler.state is CrawlState.COMPLETED
    assert root.assets == {f"{base}/style.css", f"{base}/app.js"}
    assert root.form_actions == {f"{base}/search?q=1&x=2"}
    assert f"{base}/broken" in sm.processed_urls
    assert f"{base}/data.json" in sm.processed_urls
    assert "https://external.test/" in sm.node_for("https://external.test").children
    # every page is requested exactly once
    assert all(count == 1 for path, count in seen["hits"].items() if path != "/new")
    assert seen["hits"]["/"] == 1
    # root, page1, old->new, data.json; /broken fails
    assert completed.pages_processed == 4
    assert completed.total_assets == 2
    assert completed.cancelled is False
