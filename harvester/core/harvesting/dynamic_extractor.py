"""Dynamic lane - render pages in a browser and extract per platform."""

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, List, Optional
from urllib.parse import urljoin, urlparse

import structlog

from harvester.core.harvesting.block_detector import inspect_page
from harvester.core.harvesting.browser import block_heavy_resources
from harvester.core.harvesting.content_extractor import ContentExtractor
from harvester.core.harvesting.models import (
    Address,
    ExtractedPost,
    ExtractionLimits,
    ExtractionOutcome,
    Platform,
)
from harvester.core.harvesting.strategies import first_result_async
from harvester.utils.exceptions import FetchFailureError

logger = structlog.get_logger(__name__)

PageFactory = Callable[[], Awaitable[Any]]
HostWait = Callable[[str], Awaitable[None]]

VIDEO_COMMENT_SELECTORS = [
    "ytd-comment-thread-renderer #content-text",
    "ytd-comment-renderer #content-text",
    "#comments #content-text",
]

CHANNEL_LINK_SELECTORS = [
    "ytd-video-owner-renderer a[href]",
    "#owner #channel-name a[href]",
    'span[itemprop="author"] link[itemprop="url"]',
]

CHANNEL_VIDEO_SELECTORS = [
    "a#video-title-link",
    "a#video-title",
    "ytd-rich-grid-media a#thumbnail",
]

PHOTO_TEXT_SELECTORS = [
    "ul li > div > div > div > span",
    "article ul li span",
    "main span[dir='auto']",
    "article h1",
]

CHANNEL_PATH = re.compile(r"^/(channel/|user/|c/|@)")

LINK_SELECTOR = "a[href]"

SCROLL_SCRIPT = "window.scrollBy(0, document.documentElement.clientHeight || 900)"


@dataclass
class RenderConfig:
    """Waits and timeouts used while driving a page."""

    navigation_timeout_ms: int = 30000
    scroll_count: int = 5
    scroll_wait_ms: int = 1500
    photo_settle_ms: int = 2000


class DynamicExtractor:
    """Render an address and extract title, posts, comments or text.

    Video pages get a detour: after collecting comments on the watch page,
    the extractor visits the owning channel's video listing to collect posts
    and then navigates back to the watch page. Comments always come from the
    first visit, before the detour, and so do discovered links. Both detour
    navigations wait on `host_wait` so they respect the per-host delay.
    """

    def __init__(
        self,
        page_factory: PageFactory,
        limits: Optional[ExtractionLimits] = None,
        config: Optional[RenderConfig] = None,
        content_extractor: Optional[ContentExtractor] = None,
        follow_links: bool = True,
        host_wait: Optional[HostWait] = None,
    ):
        self.page_factory = page_factory
        self.follow_links = follow_links
        self.host_wait = host_wait
        self.limits = limits or ExtractionLimits()
        self.config = config or RenderConfig()
        self.content_extractor = content_extractor or ContentExtractor()
        self._strategies = {
            Platform.VIDEO: self._extract_video,
            Platform.PHOTO: self._extract_photo,
            Platform.GENERIC: self._extract_generic,
            Platform.AGGREGATOR: self._extract_generic,
        }

    async def extract(self, address: Address) -> ExtractionOutcome:
        """Render one address in a fresh page.

        A blocked page returns an outcome carrying the verdict and whatever
        title could be read; the caller decides how to record it.

        Raises:
            FetchFailureError: If navigation fails before any content is seen
        """
        try:
            page = await self.page_factory()
        except Exception as e:
            raise FetchFailureError(address.canonical, f"could not open page: {e}") from e

        try:
            await block_heavy_resources(page)
            status = await self._navigate(page, address.canonical)

            verdict = await inspect_page(page, status)
            if verdict.blocked:
                logger.warning("page_blocked", url=address.canonical, reason=verdict.reason)
                return ExtractionOutcome(title=await self._read_title(page), verdict=verdict)

            return await self._strategies[address.platform](page, address)
        finally:
            try:
                await page.close()
            except Exception as e:
                logger.debug("page_close_failed", url=address.canonical, error=str(e))

    async def _navigate(self, page: Any, url: str) -> Optional[int]:
        try:
            response = await page.goto(
                url, wait_until="domcontentloaded", timeout=self.config.navigation_timeout_ms
            )
        except Exception as e:
            raise FetchFailureError(url, f"navigation failed: {e}") from e
        return response.status if response is not None else None

    # Video

    async def _extract_video(self, page: Any, address: Address) -> ExtractionOutcome:
        await self._scroll(page)

        title = await self._read_title(page)
        comments = await self._read_texts(page, VIDEO_COMMENT_SELECTORS, self.limits.max_comments)
        links = await self._discover_links(page, address.canonical)

        if CHANNEL_PATH.match(urlparse(address.canonical).path):
            # Already on a channel page, its tiles are the posts
            posts = await self._read_video_posts(page, address.canonical)
        else:
            posts = await self._visit_channel(page, address.canonical)

        return ExtractionOutcome(title=title, posts=posts, comments=comments, links=links)

    async def _scroll(self, page: Any) -> None:
        for i in range(self.config.scroll_count):
            try:
                await page.evaluate(SCROLL_SCRIPT)
                await page.wait_for_timeout(self.config.scroll_wait_ms)
            except Exception as e:
                logger.debug("scroll_failed", step=i, error=str(e))

    async def _resolve_channel(self, page: Any, base_url: str) -> Optional[str]:
        async def href_of(selector: str) -> Optional[str]:
            element = await page.query_selector(selector)
            if element is None:
                return None
            href = await element.get_attribute("href")
            return urljoin(base_url, href) if href else None

        def attempt(selector: str):
            return lambda: href_of(selector)

        return await first_result_async(
            [attempt(s) for s in CHANNEL_LINK_SELECTORS], field="channel"
        )

    async def _visit_channel(self, page: Any, origin_url: str) -> List[ExtractedPost]:
        """Collect posts from the channel listing, then return to origin_url."""
        if self.limits.max_posts <= 0:
            return []

        channel_url = await self._resolve_channel(page, origin_url)
        if not channel_url:
            logger.debug("channel_not_resolved", url=origin_url)
            return []

        listing_url = channel_url.rstrip("/")
        if not listing_url.endswith("/videos"):
            listing_url += "/videos"

        posts: List[ExtractedPost] = []
        try:
            await self._wait_for_host(listing_url)
            await page.goto(
                listing_url,
                wait_until="domcontentloaded",
                timeout=self.config.navigation_timeout_ms,
            )
            await page.wait_for_timeout(self.config.scroll_wait_ms)
            posts = await self._read_video_posts(page, listing_url)
        except Exception as e:
            logger.warning("channel_visit_failed", url=listing_url, error=str(e))
        finally:
            await self._return_to(page, origin_url)

        return posts

    async def _return_to(self, page: Any, url: str) -> None:
        try:
            await self._wait_for_host(url)
            await page.goto(
                url, wait_until="domcontentloaded", timeout=self.config.navigation_timeout_ms
            )
        except Exception as e:
            logger.warning("return_navigation_failed", url=url, error=str(e))

    async def _wait_for_host(self, url: str) -> None:
        if self.host_wait is not None:
            await self.host_wait(urlparse(url).netloc)

    async def _read_video_posts(self, page: Any, base_url: str) -> List[ExtractedPost]:
        async def collect(selector: str) -> List[ExtractedPost]:
            posts: List[ExtractedPost] = []
            for element in await page.query_selector_all(selector):
                if len(posts) >= self.limits.max_posts:
                    break
                try:
                    href = await element.get_attribute("href")
                    title = await element.get_attribute("title") or await element.inner_text()
                except Exception as e:
                    logger.debug("post_read_failed", error=str(e))
                    continue
                title = (title or "").strip() or None
                if href or title:
                    posts.append(
                        ExtractedPost(title=title, url=urljoin(base_url, href) if href else None)
                    )
            return posts

        def attempt(selector: str):
            return lambda: collect(selector)

        return (
            await first_result_async([attempt(s) for s in CHANNEL_VIDEO_SELECTORS], field="posts")
            or []
        )

    # Photo

    async def _extract_photo(self, page: Any, address: Address) -> ExtractionOutcome:
        await page.wait_for_timeout(self.config.photo_settle_ms)
        title = await self._read_title(page)
        comments = await self._read_texts(page, PHOTO_TEXT_SELECTORS, self.limits.max_comments)
        links = await self._discover_links(page, address.canonical)
        return ExtractionOutcome(title=title, comments=comments, links=links)

    # Generic

    async def _extract_generic(self, page: Any, address: Address) -> ExtractionOutcome:
        title = await self._read_title(page)
        text = None
        try:
            html = await page.content()
            text = self.content_extractor.extract_text(html, url=address.canonical)
        except Exception as e:
            logger.debug("rendered_content_read_failed", url=address.canonical, error=str(e))
        links = await self._discover_links(page, address.canonical)
        return ExtractionOutcome(title=title, text=text, links=links)

    # Element reads

    async def _read_title(self, page: Any) -> Optional[str]:
        try:
            return (await page.title()) or None
        except Exception as e:
            logger.debug("title_read_failed", error=str(e))
            return None

    async def _discover_links(self, page: Any, fallback_url: str) -> List[str]:
        """Absolute http(s) anchor targets on the current page, in document order.

        Each anchor is read on its own; one that fails is skipped.
        """
        if not self.follow_links:
            return []
        base_url = page.url if page.url and page.url.startswith("http") else fallback_url
        try:
            anchors = await page.query_selector_all(LINK_SELECTOR)
        except Exception as e:
            logger.debug("link_query_failed", url=base_url, error=str(e))
            return []

        links: List[str] = []
        seen = set()
        for anchor in anchors:
            try:
                href = await anchor.get_attribute("href")
            except Exception as e:
                logger.debug("link_read_failed", error=str(e))
                continue
            if not href:
                continue
            url = urljoin(base_url, href.strip()).split("#", 1)[0]
            if urlparse(url).scheme not in ("http", "https") or url in seen:
                continue
            seen.add(url)
            links.append(url)
        return links

    async def _read_texts(self, page: Any, selectors: List[str], limit: int) -> List[str]:
        """Read text of the first selector that yields anything, up to limit.

        Each element read is independent; a failed read is skipped.
        """
        if limit <= 0:
            return []

        async def collect(selector: str) -> List[str]:
            texts: List[str] = []
            for element in await page.query_selector_all(selector):
                if len(texts) >= limit:
                    break
                try:
                    text = (await element.inner_text()).strip()
                except Exception as e:
                    logger.debug("element_read_failed", selector=selector, error=str(e))
                    continue
                if text:
                    texts.append(text)
            return texts

        def attempt(selector: str):
            return lambda: collect(selector)

        return await first_result_async([attempt(s) for s in selectors], field="texts") or []
