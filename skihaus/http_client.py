from __future__ import annotations

import asyncio
from typing import Dict, Optional

import httpx

from .exceptions import NetworkError
from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_HEADERS: Dict[str, str] = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}
JSON_HEADERS: Dict[str, str] = {"Accept": "application/json"}


def build_client(*, timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout, headers=DEFAULT_HEADERS, follow_redirects=True)


class HttpFetcher:
    """Single-attempt GET with a hard deadline.

    Every failure mode (deadline, transport error, non-2xx) surfaces as
    :class:`NetworkError`; there is no retry here.
    """

    def __init__(self, client: httpx.AsyncClient, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.client = client
        self.timeout = timeout

    async def fetch(
        self, url: str, *, extra_headers: Optional[Dict[str, str]] = None, trace_id: str | None = None
    ) -> httpx.Response:
        logger.debug("http.fetch", trace_id=trace_id, url=url)
        try:
            response = await asyncio.wait_for(
                self.client.get(url, headers=extra_headers, timeout=self.timeout),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"Timed out after {self.timeout:g}s", url=url) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"{type(exc).__name__}: {exc}", url=url) from exc

        if not response.is_success:
            raise NetworkError(
                f"HTTP {response.status_code} from {url}", url=url, status_code=response.status_code
            )
        return response

    async def fetch_text(self, url: str, *, json: bool = False, trace_id: str | None = None) -> str:
        response = await self.fetch(url, extra_headers=JSON_HEADERS if json else None, trace_id=trace_id)
        return response.text
