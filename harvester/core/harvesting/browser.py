"""Playwright browser session for the dynamic lane."""

from typing import Any, Optional

import structlog
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from harvester.core.harvesting.fetcher import USER_AGENT
from harvester.core.harvesting.proxy import ProxyProvider

logger = structlog.get_logger(__name__)

CHROME_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-dev-shm-usage",
]

VIEWPORT = {"width": 1366, "height": 900}

BLOCKED_RESOURCE_TYPES = frozenset({"image", "media", "font"})


async def block_heavy_resources(page: Any) -> None:
    """Abort image, media and font requests before navigation."""

    async def handle(route: Any) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    await page.route("**/*", handle)


class PlaywrightBrowser:
    """Chromium launched once per run; each new_page() opens a fresh tab.

    Usage:
        async with PlaywrightBrowser(headless=True) as browser:
            page = await browser.new_page()
    """

    def __init__(
        self,
        headless: bool = True,
        proxy: Optional[ProxyProvider] = None,
        navigation_timeout_ms: int = 30000,
    ):
        self.headless = headless
        self.proxy = proxy or ProxyProvider()
        self.navigation_timeout_ms = navigation_timeout_ms
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def __aenter__(self) -> "PlaywrightBrowser":
        self._playwright = await async_playwright().start()

        launch_kwargs: dict[str, Any] = {"headless": self.headless, "args": CHROME_ARGS}
        proxy_url = self.proxy.next_url()
        if proxy_url:
            launch_kwargs["proxy"] = {"server": proxy_url}

        self._browser = await self._playwright.chromium.launch(**launch_kwargs)
        self._context = await self._browser.new_context(
            user_agent=USER_AGENT,
            viewport=VIEWPORT,
        )
        self._context.set_default_navigation_timeout(self.navigation_timeout_ms)
        logger.info("browser_started", headless=self.headless, proxied=bool(proxy_url))
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._context is not None:
            await self._context.close()
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        logger.info("browser_stopped")

    async def new_page(self) -> Page:
        if self._context is None:
            raise RuntimeError("PlaywrightBrowser used outside of its async context")
        return await self._context.new_page()
