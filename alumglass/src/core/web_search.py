"""
AlumGlass - Web Search Providers
=================================
Keyword search over the DuckDuckGo HTML endpoint.

Two providers are registered:

``ddg``
    Plain DuckDuckGo search, up to 5 results.
``sep``
    DuckDuckGo restricted to ``site:plato.stanford.edu`` (Stanford
    Encyclopedia of Philosophy), up to 3 results.  Links outside the
    site are discarded.

A provider never raises: HTTP errors, non-2xx responses and unparsable
pages are logged and yield ``[]``.
"""

from __future__ import annotations

import html
import re
from urllib.parse import parse_qs, urlsplit

import httpx

from alumglass.src.core.models import WebResult
from alumglass.src.utils.logger import get_logger
from alumglass.src.utils.text_utils import strip_html

logger = get_logger(__name__)

DDG_HTML_URL = "https://html.duckduckgo.com/html/"

# DuckDuckGo serves an empty page to clients without browser headers
BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9,fa;q=0.8",
    "Referer": "https://duckduckgo.com/",
}

_RESULT_ANCHOR_RE = re.compile(r'<a\b([^>]*\bclass="result__a"[^>]*)>(.*?)</a>', re.S)
_SNIPPET_RE = re.compile(r'<a\b[^>]*\bclass="result__snippet"[^>]*>(.*?)</a>', re.S)
_HREF_RE = re.compile(r'\bhref="([^"]*)"')


def _unwrap_link(href: str) -> str:
    """Resolve DuckDuckGo ``/l/?uddg=<target>`` redirect links."""
    href = html.unescape(href).strip()
    if href.startswith("//"):
        href = "https:" + href

    parts = urlsplit(href)
    if parts.path.startswith("/l/"):
        target = parse_qs(parts.query).get("uddg")
        if target:
            return target[0]
    return href


def parse_results(page: str, max_results: int, domain: str | None = None) -> list[WebResult]:
    """
    Extract ``(title, link, snippet)`` triples from a DuckDuckGo HTML page.

    Each result's snippet is looked up between its title anchor and the
    next result's title anchor.
    """
    anchors = list(_RESULT_ANCHOR_RE.finditer(page))
    results: list[WebResult] = []

    for position, anchor in enumerate(anchors):
        if len(results) >= max_results:
            break

        href_match = _HREF_RE.search(anchor.group(1))
        title = strip_html(anchor.group(2))
        if not href_match or not title:
            continue

        try:
            link = _unwrap_link(href_match.group(1))
        except ValueError:
            logger.debug("[WEB] Skipping unparsable result link: %r", href_match.group(1))
            continue
        if not link or (domain and domain not in link):
            continue

        block_end = anchors[position + 1].start() if position + 1 < len(anchors) else len(page)
        snippet_match = _SNIPPET_RE.search(page, anchor.end(), block_end)
        description = strip_html(snippet_match.group(1)) if snippet_match else ""

        results.append(WebResult(title=title, link=link, description=description))

    return results


class DuckDuckGoHtmlProvider:
    """One named keyword-search provider backed by DuckDuckGo HTML."""

    def __init__(self, name: str, max_results: int = 5, site: str | None = None) -> None:
        self.name = name
        self.max_results = max_results
        self.site = site


    def build_query(self, query: str) -> str:
        return f"site:{self.site} {query}" if self.site else query


    async def search(self, client: httpx.AsyncClient, query: str) -> list[WebResult]:
        try:
            response = await client.get(DDG_HTML_URL, params={"q": self.build_query(query)}, headers=BROWSER_HEADERS, follow_redirects=True)
            response.raise_for_status()
            results = parse_results(response.text, self.max_results, domain=self.site)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("[WEB:%s] Search failed: %s", self.name, exc)
            return []

        logger.debug("[WEB:%s] %d result(s).", self.name, len(results))
        return results


    def __repr__(self) -> str:
        return f"DuckDuckGoHtmlProvider(name='{self.name}', max_results={self.max_results}, site={self.site!r})"


PROVIDERS: dict[str, DuckDuckGoHtmlProvider] = {
    "ddg": DuckDuckGoHtmlProvider("ddg", max_results=5),
    "sep": DuckDuckGoHtmlProvider("sep", max_results=3, site="plato.stanford.edu"),
}


def providers_for(names: list[str]) -> list[DuckDuckGoHtmlProvider]:
    """Look up providers in the declared order."""
    return [PROVIDERS[name] for name in names]
