"""
In-memory site map: a tree of SiteNodes plus a flat url index and the crawl queue.

SiteMap itself does no locking; the crawler serializes every call.
"""
from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, Optional, Set

from site_mapper.crawler.models import NodeKind, SiteNode, parse_absolute
from site_mapper.exceptions import InvalidRootUrl

__all__ = ("SiteMap", "EXTERNAL_LINKS_KEY", "validate_root_url")

EXTERNAL_LINKS_KEY = "external_links"

logger = logging.getLogger("SiteMapper")


def validate_root_url(url: object) -> str:
    """Return *url* if it is an absolute http(s) URL, else raise InvalidRootUrl."""
    if not isinstance(url, str):
        raise InvalidRootUrl(url)
    parts = parse_absolute(url.strip())
    if parts is None or parts.scheme not in ("http", "https"):
        raise InvalidRootUrl(url)
    return url.strip()


def _origin(url: str) -> Optional[str]:
    parts = parse_absolute(url)
    if parts is None:
        return None
    return f"{parts.scheme}://{parts.hostname}"


class SiteMap:
    """Site graph of one crawl session."""

    def __init__(self, root_url: str) -> None:
        self.root_url = validate_root_url(root_url)
        domain_url = _origin(self.root_url)
        assert domain_url is not None

        self.root_domain = SiteNode(domain_url, NodeKind.DOMAIN)
        self.external_links = SiteNode(EXTERNAL_LINKS_KEY, NodeKind.CATEGORY_FOLDER, "External Links")
        self.all_nodes: Dict[str, SiteNode] = {
            domain_url: self.root_domain,
            EXTERNAL_LINKS_KEY: self.external_links,
        }
        self.processed_urls: Set[str] = set()
        self.pending_queue: Deque[str] = deque()

        if self.root_url not in self.all_nodes:
            self._register(SiteNode(self.root_url, NodeKind.PAGE), self.root_domain)
        self.pending_queue.append(self.root_url)

    @property
    def root_host(self) -> str:
        parts = parse_absolute(self.root_domain.url)
        return (parts.hostname or "").lower() if parts else ""

    def _register(self, node: SiteNode, parent: SiteNode) -> SiteNode:
        assert node.url is not None
        self.all_nodes[node.url] = node
        parent.add_child(node)
        return node

    def node_for(self, url: Optional[str]) -> Optional[SiteNode]:
        return self.all_nodes.get(url) if url is not None else None

    def add_page(self, url: str, parent_url: Optional[str] = None) -> None:
        """Create an internal page under *parent_url* (or the domain) and queue it."""
        if url in self.all_nodes:
            return
        parent = self.node_for(parent_url) or self.root_domain
        self._register(SiteNode(url, NodeKind.PAGE), parent)
        if url not in self.processed_urls:
            self.pending_queue.append(url)

    def add_external_link(self, url: str, source_url: Optional[str] = None) -> None:
        """Record an off-site page under its external domain; never queued."""
        if url in self.all_nodes:
            return
        domain_url = _origin(url)
        if domain_url is None:
            logger.debug("Ignoring malformed external link %r from %s", url, source_url)
            return
        domain = self.all_nodes.get(domain_url)
        if domain is None:
            domain = self._register(SiteNode(domain_url, NodeKind.EXTERNAL_DOMAIN), self.external_links)
        if url != domain_url:
            self._register(SiteNode(url, NodeKind.PAGE), domain)

    def add_asset(self, asset_url: str, parent_url: Optional[str]) -> None:
        parent = self.node_for(parent_url)
        if parent is not None:
            parent.add_asset(asset_url)

    def add_form(self, form_url: str, parent_url: Optional[str]) -> None:
        parent = self.node_for(parent_url)
        if parent is not None:
            parent.add_form(form_url)

    def mark_processed(self, url: str) -> None:
        self.processed_urls.add(url)
        node = self.all_nodes.get(url)
        if node is not None:
            node.processed = True

    def should_process_url(self, url: Optional[str]) -> bool:
        """Same-host traversal gate: not yet processed, absolute, on the root host."""
        if url is None or url in self.processed_urls:
            return False
        parts = parse_absolute(url)
        if parts is None:
            return False
        return (parts.hostname or "").lower() == self.root_host

    @property
    def has_urls_to_process(self) -> bool:
        return bool(self.pending_queue)

    def get_next_url_to_process(self) -> Optional[str]:
        return self.pending_queue.popleft() if self.pending_queue else None

    @property
    def total_known_urls(self) -> int:
        return len(self.processed_urls) + len(self.pending_queue)

    def __len__(self) -> int:
        return len(self.all_nodes)
