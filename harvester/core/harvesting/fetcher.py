"""HTTP fetching for the static lane."""

from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
import structlog

from harvester.core.harvesting.proxy import ProxyProvider

logger = structlog.get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/133.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en;q=0.7, *;q=0.5",
}


@dataclass
class FetchResponse:
    """Final URL, status code and decoded body of a fetch."""

    url: str
    status: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Fetcher(Protocol):
    async def fetch(self, url: str) -> FetchResponse: ...


class HttpxFetcher:
    """Fetch pages with httpx, one client per proxy endpoint.

    Use as an async context manager so connections get closed.
    """

    def __init__(
        self,
        timeout: float = 20.0,
        proxy: Optional[ProxyProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.proxy = proxy or ProxyProvider()
        self.transport = transport
        self._clients: dict[Optional[str], httpx.AsyncClient] = {}

    async def __aenter__(self) -> "HttpxFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _client_for(self, proxy_url: Optional[str]) -> httpx.AsyncClient:
        client = self._clients.get(proxy_url)
        if client is None:
            client = httpx.AsyncClient(
                headers=DEFAULT_HEADERS,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                proxy=proxy_url,
                transport=self.transport,
            )
            self._clients[proxy_url] = client
        return client

    async def fetch(self, url: str) -> FetchResponse:
        """GET a URL. Transport errors propagate as httpx.HTTPError."""
        client = self._client_for(self.proxy.next_url())
        response = await client.get(url)
        logger.debug("page_fetched", url=url, status=response.status_code)
        return FetchResponse(url=str(response.url), status=response.status_code, text=response.text)

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()
