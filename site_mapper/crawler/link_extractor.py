"""
URL resolution and resource extraction for site_mapper.
"""
from __future__ import annotations

import html
import logging
from typing import Iterable, Optional, Set
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_mapper.crawler.models import CrawlResult, parse_absolute

__all__ = ("resolve_url", "extract_resources", "same_host")

_SKIPPED_SCHEMES = ("javascript:", "data:", "mailto:", "tel:")

logger = logging.getLogger("SiteMapper")


def resolve_url(raw: Optional[str], base: str) -> Optional[str]:
    """
    Turn an href/src/action value into an absolute URL.

    Returns None for empty values, fragment-only references and
    javascript:, data:, mailto: and tel: links. Never raises.
    """
    if raw is None:
        return None
    value = html.unescape(raw).strip()
    if not value or value.startswith("#"):
        return None
    if value.lower().startswith(_SKIPPED_SCHEMES):
        return None
    if parse_absolute(value) is not None:
        return value
    try:
        resolved = urljoin(base, value)
    except ValueError:
        logger.debug("Failed to resolve URL %r against %s", value, base)
        return None
    return resolved or None


def same_host(url: str, base: str) -> bool:
    """Case-insensitive host equality; False if either side is not absolute."""
    left, right = parse_absolute(url), parse_absolute(base)
    if left is None or right is None:
        return False
    return (left.hostname or "").lower() == (right.hostname or "").lower()


def _attr_values(tags: Iterable[object], attr: str) -> Iterable[str]:
    for tag in tags:
        if not isinstance(tag, Tag):
            continue
        value = tag.get(attr)
        if isinstance(value, str):
            yield value


def _resolve_all(values: Iterable[str], base: str) -> Set[str]:
    resolved: Set[str] = set()
    for value in values:
        absolute = resolve_url(value, base)
        if absolute is not None:
            resolved.add(absolute)
    return resolved


def _is_stylesheet(tag: Tag) -> bool:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    if any(r.lower() == "stylesheet" for r in rel):
        return True
    link_type = tag.get("type")
    return isinstance(link_type, str) and link_type.strip().lower() == "text/css"


def extract_resources(content: str, base: str) -> CrawlResult:
    """
    Parse one HTML page and collect links, scripts, stylesheets and form actions.

    Anchors are split into internal and external by host; everything else
    is returned as flat sets.
    """
    soup = BeautifulSoup(content, "html.parser")

    internal: Set[str] = set()
    external: Set[str] = set()
    for link in _resolve_all(_attr_values(soup.find_all("a", href=True), "href"), base):
        (internal if same_host(link, base) else external).add(link)

    scripts = _resolve_all(_attr_values(soup.find_all("script", src=True), "src"), base)
    css_links = [t for t in soup.find_all("link", href=True) if isinstance(t, Tag) and _is_stylesheet(t)]
    stylesheets = _resolve_all(_attr_values(css_links, "href"), base)
    forms = _resolve_all(_attr_values(soup.find_all("form", action=True), "action"), base)

    logger.debug(
        "%s: %d internal, %d external links, %d scripts, %d stylesheets, %d forms",
        base, len(internal), len(external), len(scripts), len(stylesheets), len(forms),
    )
    return CrawlResult(
        url=base,
        internal_links=frozenset(internal),
        external_links=frozenset(external),
        script_sources=frozenset(scripts),
        stylesheet_links=frozenset(stylesheets),
        form_actions=frozenset(forms),
    )
