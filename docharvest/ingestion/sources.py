"""Dispatch a configured source to its acquisition strategy."""

import logging
from pathlib import Path
from typing import Optional

import httpx

from docharvest.core.schemas import SourceConfig
from docharvest.ingestion.git_checkout import GitRunner, run_git, sparse_checkout
from docharvest.ingestion.http import create_client
from docharvest.ingestion.models import AcquisitionResult
from docharvest.ingestion.sitemap import SitemapError, resolve_sitemap_urls
from docharvest.ingestion.url_fetcher import UrlFetchError, fetch_url_source

logger = logging.getLogger(__name__)


async def resolve_source_urls(
    source: SourceConfig,
    client: httpx.AsyncClient,
    concurrency: Optional[int] = None,
) -> list[str]:
    """URL set of a url or sitemap source."""
    if source.urls:
        return list(source.urls)
    return await resolve_sitemap_urls(source.sitemap, source.paths, client, concurrency)


async def acquire_source(
    source: SourceConfig,
    work_dir: Path,
    output_dir: Path,
    concurrency: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
    git_runner: GitRunner = run_git,
) -> AcquisitionResult:
    """Acquire one source.

    Git sources are sparse-checked-out into ``work_dir`` and their paths
    returned for scanning. URL and sitemap sources are fetched and written as
    Markdown straight into ``output_dir``. Expected failures come back as
    ``ok=False`` results rather than exceptions.
    """
    if source.mode == "git":
        checkout = await sparse_checkout(
            source.repo, source.selectors, work_dir, ref=source.ref, runner=git_runner
        )
        return AcquisitionResult(
            ok=checkout.ok,
            kind="git",
            paths=checkout.paths,
            checkout_root=work_dir if checkout.ok else None,
            ref=checkout.ref,
            error=checkout.error,
        )

    if client is None:
        async with create_client() as own_client:
            return await acquire_source(
                source, work_dir, output_dir, concurrency, own_client, git_runner
            )

    try:
        urls = await resolve_source_urls(source, client, concurrency)
        if not urls:
            return AcquisitionResult(
                ok=False, kind=source.mode, error=f"No URLs matched the path rules for {source.name}"
            )
        report = await fetch_url_source(
            urls, source.name, output_dir, source.selector, concurrency, client
        )
    except (SitemapError, UrlFetchError) as e:
        return AcquisitionResult(ok=False, kind=source.mode, error=str(e))

    return AcquisitionResult(
        ok=True,
        kind=source.mode,
        paths=report.written,
        output_dir=output_dir,
        warnings=report.warnings,
    )
