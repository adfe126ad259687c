"""Shared HTTP client setup."""

import logging
from typing import Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from docharvest.core.config import settings

logger = logging.getLogger(__name__)


def create_client(
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an async client with the project user agent and a fixed timeout."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout or settings.request_timeout),
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
        transport=transport,
    )


@retry(
    stop=stop_after_attempt(max(1, settings.fetch_retries)),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=retry_if_exception_type(httpx.TransportError),
    reraise=True,
)
async def get_with_retry(
    client: httpx.AsyncClient, url: str, accept: Optional[str] = None
) -> httpx.Response:
    """GET a URL, retrying transport errors (timeouts, resets) but not HTTP statuses."""
    headers = {"Accept": accept} if accept else None
    return await client.get(url, headers=headers)
