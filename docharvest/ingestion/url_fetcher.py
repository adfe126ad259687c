"""Fetch documentation pages by URL and write them as Markdown files."""

import asyncio
import logging
import posixpath
import re
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from docharvest.core.config import settings
from docharvest.core.constants import (
    DEFAULT_TITLE,
    HTML_SUFFIXES,
    MARKDOWN_CONTENT_TYPES,
    MARKDOWN_SUFFIXES,
)
from docharvest.core.utils import dedupe
from docharvest.ingestion.filenames import assign_filenames
from docharvest.ingestion.html_markdown import extract_title, html_to_markdown, parse_html
from docharvest.ingestion.http import create_client, get_with_retry
from docharvest.ingestion.models import ContentKind, PageRecord, UrlFetchReport

logger = logging.getLogger(__name__)

_H1 = re.compile(r"^#[ \t]+(.+)", re.MULTILINE)
_FILE_EXTENSION = re.compile(r"\.[A-Za-z][A-Za-z0-9]*$")


class UrlFetchError(Exception):
    """Raised when a page, or every page of a source, cannot be fetched."""


def to_markdown_url(url: str) -> Optional[str]:
    """Derive the ``.md`` sibling of a page URL.

    ``/a/page.html`` and ``/a/page/`` both become ``/a/page.md``; query and
    fragment are kept. Returns None when the URL is already Markdown or names
    some other file. Trailing-slash paths and numeric suffixes such as
    ``/3.12/`` or ``/v1.2`` are directories, not extensions.
    """
    parts = urlsplit(url)
    is_directory = parts.path.endswith("/")
    path = parts.path.rstrip("/")
    if not path:
        return None

    lower = path.lower()
    if lower.endswith(MARKDOWN_SUFFIXES):
        return None

    for ext in HTML_SUFFIXES:
        if lower.endswith(ext):
            path = path[: -len(ext)] + ".md"
            break
    else:
        if not is_directory and _FILE_EXTENSION.search(posixpath.basename(path)):
            return None
        path = path + ".md"

    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def extract_markdown_title(markdown: str) -> str:
    """Text of the first top-level heading, or "untitled"."""
    match = _H1.search(markdown)
    title = match.group(1).strip() if match else ""
    return title or DEFAULT_TITLE


def _is_markdown_response(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "").lower()
    return any(kind in content_type for kind in MARKDOWN_CONTENT_TYPES)


async def fetch_negotiated_markdown(client: httpx.AsyncClient, url: str) -> Optional[str]:
    """Ask for ``text/markdown``; only a declared Markdown response counts."""
    try:
        response = await get_with_retry(client, url, accept="text/markdown")
    except httpx.HTTPError as e:
        logger.debug(f"Markdown negotiation failed for {url}: {e}")
        return None
    if response.is_success and _is_markdown_response(response):
        return response.text or None
    return None


async def fetch_markdown_variant(client: httpx.AsyncClient, url: str) -> Optional[str]:
    """Probe the ``.md`` sibling URL, accepting any successful body.

    Static hosts often serve ``.md`` files as text/plain or
    application/octet-stream, so the content type is not checked.
    """
    md_url = to_markdown_url(url)
    if md_url is None:
        return None
    try:
        response = await get_with_retry(client, md_url, accept="text/markdown")
    except httpx.HTTPError as e:
        logger.debug(f"Markdown probe failed for {md_url}: {e}")
        return None
    if response.is_success:
        return response.text or None
    return None


async def fetch_html(client: httpx.AsyncClient, url: str) -> str:
    """Fetch a page as HTML."""
    try:
        response = await get_with_retry(client, url, accept="text/html")
    except httpx.HTTPError as e:
        raise UrlFetchError(f"Error fetching {url}: {e}") from e
    if not response.is_success:
        raise UrlFetchError(f"HTTP {response.status_code} fetching {url}")
    return response.text


def _with_title_heading(markdown: str, title: str) -> str:
    if title == DEFAULT_TITLE or markdown.lstrip().startswith("# "):
        return markdown
    return f"# {title}\n\n{markdown}"


async def fetch_page(
    client: httpx.AsyncClient, url: str, selector: Optional[str] = None
) -> PageRecord:
    """Fetch the best available representation of one page."""
    markdown = await fetch_negotiated_markdown(client, url)
    if markdown is None:
        markdown = await fetch_markdown_variant(client, url)
    if markdown is not None:
        return PageRecord(
            source_url=url,
            title=extract_markdown_title(markdown),
            content=markdown,
            content_kind=ContentKind.NATIVE_MARKDOWN,
        )

    logger.debug(f"No Markdown representation for {url}, converting HTML")
    soup = parse_html(await fetch_html(client, url))
    title = extract_title(soup)
    converted = html_to_markdown(soup, selector=selector, strip_layout=True)
    return PageRecord(
        source_url=url,
        title=title,
        content=_with_title_heading(converted, title),
        content_kind=ContentKind.CONVERTED_FROM_HTML,
    )


async def _fetch_limited(
    client: httpx.AsyncClient,
    url: str,
    selector: Optional[str],
    semaphore: asyncio.Semaphore,
) -> PageRecord:
    async with semaphore:
        return await fetch_page(client, url, selector)


async def fetch_url_source(
    urls: list[str],
    name: str,
    output_dir: str | Path,
    selector: Optional[str] = None,
    concurrency: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> UrlFetchReport:
    """Fetch every URL and write one Markdown file per page into output_dir.

    Individual failures are collected as warnings. Raises UrlFetchError when
    no URL produced content; in that case nothing is written.
    """
    if client is None:
        async with create_client() as own_client:
            return await fetch_url_source(
                urls, name, output_dir, selector, concurrency, own_client
            )

    unique_urls = dedupe(u.strip() for u in urls if u.strip())
    if not unique_urls:
        raise UrlFetchError(f"No URLs to fetch for {name}")

    semaphore = asyncio.Semaphore(concurrency or settings.fetch_concurrency)
    results = await asyncio.gather(
        *(_fetch_limited(client, url, selector, semaphore) for url in unique_urls),
        return_exceptions=True,
    )

    pages: list[PageRecord] = []
    warnings: list[str] = []
    for url, result in zip(unique_urls, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            warnings.append(f"Failed to fetch {url}: {result}")
            continue
        pages.append(result)

    for warning in warnings:
        logger.warning(warning)

    if not pages:
        detail = "; ".join(warnings[:3])
        if len(warnings) > 3:
            detail += f"; ... ({len(warnings) - 3} more)"
        raise UrlFetchError(f"All URL fetches failed for {name}: {detail}")

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    written = []
    names = assign_filenames([page.title for page in pages])
    for page, base_name in zip(pages, names):
        file_path = out / f"{base_name}.md"
        file_path.write_text(page.content, encoding="utf-8")
        written.append(file_path)

    native = sum(1 for p in pages if p.content_kind == ContentKind.NATIVE_MARKDOWN)
    logger.info(
        f"{name}: wrote {len(written)} pages ({native} native Markdown, "
        f"{len(written) - native} converted), {len(warnings)} failed"
    )
    return UrlFetchReport(written=written, warnings=warnings)
