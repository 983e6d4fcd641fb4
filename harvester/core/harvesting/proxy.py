"""Proxy pool selection."""

import itertools
from typing import Iterator, List, Optional

import structlog

logger = structlog.get_logger(__name__)


class ProxyProvider:
    """Rotate through configured proxy URLs.

    URLs may carry {group} and {country} placeholders which are filled from
    the pool selection; the values are otherwise opaque to the harvester.
    An empty pool disables proxying.
    """

    def __init__(
        self,
        urls: Optional[List[str]] = None,
        group: Optional[str] = None,
        country: Optional[str] = None,
    ):
        self.urls = [
            url.format(group=group or "", country=country or "") for url in urls or []
        ]
        self._cycle: Optional[Iterator[str]] = (
            itertools.cycle(self.urls) if self.urls else None
        )
        if self.urls:
            logger.info("proxy_pool_configured", size=len(self.urls), group=group, country=country)

    @property
    def enabled(self) -> bool:
        return self._cycle is not None

    def next_url(self) -> Optional[str]:
        if self._cycle is None:
            return None
        return next(self._cycle)
