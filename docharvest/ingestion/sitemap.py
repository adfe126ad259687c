"""Sitemap parsing and URL discovery."""

import asyncio
import logging
from typing import Optional
from urllib.parse import urlsplit
from xml.etree import ElementTree as ET

import httpx

from docharvest.core.config import settings
from docharvest.core.schemas import SitemapPathRule
from docharvest.ingestion.http import create_client, get_with_retry

logger = logging.getLogger(__name__)


class SitemapError(Exception):
    """Raised when a sitemap cannot be fetched, parsed, or lists no URLs."""


def _local_name(tag: str) -> str:
    """Strip the ``{namespace}`` part of an ElementTree tag."""
    return tag.rsplit("}", 1)[-1]


def _parse_xml(xml: str | bytes) -> ET.Element:
    try:
        return ET.fromstring(xml)
    except ET.ParseError as e:
        raise SitemapError(f"Malformed sitemap XML: {e}") from e


def _child_locs(root: ET.Element, entry_name: str) -> list[str]:
    """Trimmed ``<loc>`` texts of direct ``entry_name`` children of root."""
    urls = []
    for entry in root:
        if _local_name(entry.tag) != entry_name:
            continue
        for loc in entry:
            if _local_name(loc.tag) == "loc" and loc.text and loc.text.strip():
                urls.append(loc.text.strip())
    return urls


def is_sitemap_index(xml: str | bytes) -> bool:
    """Check whether the document is a <sitemapindex>."""
    return _local_name(_parse_xml(xml).tag) == "sitemapindex"


def parse_sitemap_urls(xml: str | bytes) -> list[str]:
    """Page URLs from a <urlset> document."""
    return _child_locs(_parse_xml(xml), "url")


def parse_sitemap_index_urls(xml: str | bytes) -> list[str]:
    """Child sitemap URLs from a <sitemapindex> document."""
    root = _parse_xml(xml)
    if _local_name(root.tag) != "sitemapindex":
        return []
    return _child_locs(root, "sitemap")


def _normalize_path(path: str) -> str:
    return path.strip("/")


def _url_path(url: str) -> Optional[str]:
    """Normalized path of an absolute URL, or None if the URL is malformed."""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return _normalize_path(parts.path)


def _matches(path: str, prefix: str, subs: set[str]) -> bool:
    if path == prefix:
        return True
    if prefix and not path.startswith(prefix + "/"):
        return False

    relative = path[len(prefix) + 1:] if prefix else path
    segments = [s for s in relative.split("/") if s]
    if len(segments) <= 1:
        # the prefix page or a first-level child
        return True
    return segments[0] in subs


def filter_urls(urls: list[str], rules: list[SitemapPathRule]) -> list[str]:
    """Keep URLs matched by any rule; an empty rule list keeps everything.

    A rule matches its prefix page, every first-level child of the prefix,
    and anything at any depth below an opted-in sub-section.
    """
    if not rules:
        return list(urls)

    compiled = [(_normalize_path(r.prefix), set(r.subs)) for r in rules]

    kept = []
    for url in urls:
        path = _url_path(url)
        if path is None:
            continue
        if any(_matches(path, prefix, subs) for prefix, subs in compiled):
            kept.append(url)
    return kept


async def fetch_sitemap(client: httpx.AsyncClient, url: str) -> bytes:
    """Fetch a sitemap document."""
    try:
        response = await get_with_retry(client, url, accept="application/xml")
    except httpx.HTTPError as e:
        raise SitemapError(f"Error fetching sitemap {url}: {e}") from e
    if response.status_code >= 400:
        raise SitemapError(f"HTTP {response.status_code} fetching sitemap: {url}")
    return response.content


async def _resolve_child(
    client: httpx.AsyncClient, url: str, semaphore: asyncio.Semaphore
) -> list[str]:
    async with semaphore:
        return parse_sitemap_urls(await fetch_sitemap(client, url))


async def resolve_sitemap_urls(
    sitemap_url: str,
    rules: Optional[list[SitemapPathRule]] = None,
    client: Optional[httpx.AsyncClient] = None,
    concurrency: Optional[int] = None,
) -> list[str]:
    """Resolve a sitemap (or sitemap index) to its filtered URL list.

    Child sitemaps of an index are fetched concurrently; a failing child is
    logged and contributes nothing. Raises SitemapError when the root fetch
    fails or no URLs are found at all.
    """
    if client is None:
        async with create_client() as own_client:
            return await resolve_sitemap_urls(sitemap_url, rules, own_client, concurrency)

    xml = await fetch_sitemap(client, sitemap_url)
    root = _parse_xml(xml)

    if _local_name(root.tag) == "sitemapindex":
        child_urls = _child_locs(root, "sitemap")
        logger.info(f"Sitemap index {sitemap_url} lists {len(child_urls)} child sitemaps")
        semaphore = asyncio.Semaphore(concurrency or settings.fetch_concurrency)
        results = await asyncio.gather(
            *(_resolve_child(client, url, semaphore) for url in child_urls),
            return_exceptions=True,
        )
        all_urls: list[str] = []
        for child_url, result in zip(child_urls, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(f"Failed to fetch child sitemap {child_url}: {result}")
                continue
            all_urls.extend(result)
    else:
        all_urls = _child_locs(root, "url")

    if not all_urls:
        raise SitemapError(f"No URLs found in sitemap: {sitemap_url}")

    filtered = filter_urls(all_urls, rules or [])
    logger.info(f"Sitemap {sitemap_url}: {len(all_urls)} URLs, {len(filtered)} after filtering")
    return filtered
