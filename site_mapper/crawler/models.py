"""
Data models for the site_mapper crawler.
"""
from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterator, Optional, Set, Tuple
from urllib.parse import SplitResult, urlsplit

__all__ = ("NodeKind", "SiteNode", "CrawlResult", "PageData", "parse_absolute")


def parse_absolute(url: Optional[str]) -> Optional[SplitResult]:
    """Split *url* if it is a well-formed absolute URL (scheme and host), else None."""
    if not url:
        return None
    try:
        parts = urlsplit(url)
        host = parts.hostname
        # port is parsed lazily and raises on garbage
        _ = parts.port
    except ValueError:
        return None
    if not parts.scheme or not host:
        return None
    return parts


def _host_name(parts: SplitResult) -> str:
    return parts.hostname or ""


def _page_name(parts: SplitResult) -> str:
    path = parts.path
    fragment = f"#{parts.fragment}" if parts.fragment else ""
    if not path or path == "/":
        return "/" + fragment
    query = f"?{parts.query}" if parts.query else ""
    return path + query + fragment


def _asset_name(parts: SplitResult) -> str:
    return posixpath.basename(parts.path)


class NodeKind(Enum):
    """Kind of a site map node; each kind knows how to name its nodes."""

    DOMAIN = "domain"
    PAGE = "page"
    EXTERNAL_DOMAIN = "external_domain"
    CATEGORY_FOLDER = "category_folder"
    ASSET = "asset"

    def display_name(self, url: Optional[str]) -> Optional[str]:
        parts = parse_absolute(url)
        if parts is None:
            return url if self is NodeKind.CATEGORY_FOLDER else "Invalid URL"
        return _DISPLAY[self](parts) if self in _DISPLAY else url


_DISPLAY: Dict[NodeKind, Callable[[SplitResult], str]] = {
    NodeKind.DOMAIN: _host_name,
    NodeKind.PAGE: _page_name,
    NodeKind.EXTERNAL_DOMAIN: _host_name,
    NodeKind.ASSET: _asset_name,
}


@dataclass(eq=False)
class SiteNode:
    """One entry of the site map tree.

    ``children`` owns the subtree; the flat url index lives in
    :class:`~site_mapper.crawler.site_map.SiteMap`.
    """

    url: Optional[str]
    kind: NodeKind
    display_name: Optional[str] = None
    children: Dict[str, SiteNode] = field(default_factory=dict)
    assets: Set[str] = field(default_factory=set)
    form_actions: Set[str] = field(default_factory=set)
    discovered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed: bool = False

    def __post_init__(self) -> None:
        if self.display_name is None:
            self.display_name = self.kind.display_name(self.url)

    def add_child(self, child: SiteNode) -> None:
        if child.url is not None:
            self.children.setdefault(child.url, child)

    def add_asset(self, asset_url: str) -> None:
        self.assets.add(asset_url)

    def add_form(self, form_action: str) -> None:
        self.form_actions.add(form_action)

    def walk(self, depth: int = 0) -> Iterator[Tuple[int, SiteNode]]:
        """Yield ``(depth, node)`` for this node and its subtree, depth-first."""
        yield depth, self
        for child in self.children.values():
            yield from child.walk(depth + 1)

    def __str__(self) -> str:
        return self.display_name or ""


@dataclass(frozen=True, slots=True)
class CrawlResult:
    """Everything discovered on a single fetched page."""

    url: str
    internal_links: FrozenSet[str] = frozenset()
    external_links: FrozenSet[str] = frozenset()
    script_sources: FrozenSet[str] = frozenset()
    stylesheet_links: FrozenSet[str] = frozenset()
    form_actions: FrozenSet[str] = frozenset()

    @classmethod
    def empty(cls, url: str) -> CrawlResult:
        return cls(url)

    @property
    def link_count(self) -> int:
        return len(self.internal_links) + len(self.external_links)

    @property
    def asset_count(self) -> int:
        return len(self.script_sources) + len(self.stylesheet_links)


@dataclass(slots=True)
class PageData:
    """Fetched response: URL, content type and text body (empty for non-HTML)."""

    url: str
    content_type: str
    content: str = ""
    status: int = 200

    @property
    def is_html(self) -> bool:
        return "html" in self.content_type.lower()
