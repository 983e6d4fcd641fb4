"""Static lane - fetch raw HTML and apply per-platform selector heuristics."""

from typing import List, Optional
from urllib.parse import urljoin, urlparse

import httpx
import structlog
from bs4 import BeautifulSoup, Comment, Tag

from harvester.core.harvesting.block_detector import PageSnapshot, detect_block
from harvester.core.harvesting.content_extractor import ContentExtractor
from harvester.core.harvesting.fetcher import Fetcher, FetchResponse
from harvester.core.harvesting.models import (
    Address,
    ExtractedPost,
    ExtractionLimits,
    ExtractionOutcome,
    Platform,
)
from harvester.core.harvesting.strategies import first_result
from harvester.utils.exceptions import FetchFailureError

logger = structlog.get_logger(__name__)

AGGREGATOR_POST_SELECTORS = [
    'a[data-click-id="body"]',
    'a[slot="full-post-link"]',
    "a.title",
    'a[href*="/comments/"]',
]

GENERIC_POST_SELECTORS = ["h1, h2, h3"]

AGGREGATOR_COMMENT_SELECTORS = [
    'div[data-testid="comment"]',
    'shreddit-comment div[slot="comment"]',
    ".commentarea .entry .md",
]

FALLBACK_COMMENT_SELECTORS = [
    ".comment-content",
    ".comment-body",
    '[itemprop="comment"]',
    ".comment",
    "#comments li",
]

BODY_SELECTORS = ["article", '[data-test-id="post-content"]']

INVISIBLE_TAGS = ("script", "style", "noscript", "template")


def _text(el: Tag) -> str:
    return " ".join(el.get_text(" ", strip=True).split())


def _visible_text(soup: BeautifulSoup) -> str:
    return " ".join(
        s.strip()
        for s in soup.find_all(string=True)
        if not isinstance(s, Comment)
        and s.parent is not None
        and s.parent.name not in INVISIBLE_TAGS
        and s.strip()
    )


class StaticExtractor:
    """Fetch a page over HTTP and pull title, posts, comments, text and links."""

    def __init__(
        self,
        fetcher: Fetcher,
        limits: Optional[ExtractionLimits] = None,
        content_extractor: Optional[ContentExtractor] = None,
        follow_links: bool = True,
    ):
        self.fetcher = fetcher
        self.limits = limits or ExtractionLimits()
        self.content_extractor = content_extractor or ContentExtractor()
        self.follow_links = follow_links

    async def extract(self, address: Address) -> ExtractionOutcome:
        """Fetch and parse one address.

        Raises:
            FetchFailureError: On transport error or non-success status
        """
        response = await self._fetch(address.canonical)
        return self.parse(address, response.text, base_url=response.url)

    async def _fetch(self, url: str) -> FetchResponse:
        try:
            response = await self.fetcher.fetch(url)
        except httpx.HTTPError as e:
            raise FetchFailureError(url, f"transport error: {e}") from e
        if not response.ok:
            raise FetchFailureError(url, f"HTTP {response.status}")
        return response

    def parse(
        self, address: Address, html: str, base_url: Optional[str] = None
    ) -> ExtractionOutcome:
        """Apply the selector heuristics for the address platform.

        A heuristic that matches nothing yields an empty list or None. A
        challenge or interstitial served with a success status comes back
        with a blocked verdict and no links.
        """
        base_url = base_url or address.canonical
        soup = BeautifulSoup(html or "", "html.parser")

        verdict = detect_block(None, PageSnapshot(url=base_url, text=_visible_text(soup)))
        if verdict.blocked:
            logger.info("static_block_detected", url=address.canonical, reason=verdict.reason)
            return ExtractionOutcome(title=self._extract_title(soup), verdict=verdict)

        return ExtractionOutcome(
            title=self._extract_title(soup),
            posts=self._extract_posts(soup, address.platform, base_url),
            comments=self._extract_comments(soup, address.platform),
            text=self._extract_text(soup, html, base_url),
            links=self.discover_links(soup, base_url) if self.follow_links else [],
        )

    def _extract_title(self, soup: BeautifulSoup) -> Optional[str]:
        def og_title() -> Optional[str]:
            meta = soup.find("meta", property="og:title")
            return meta.get("content") if meta else None

        return first_result(
            [
                lambda: soup.title and _text(soup.title),
                lambda: soup.h1 and _text(soup.h1),
                og_title,
            ],
            field="title",
        )

    def _extract_posts(
        self, soup: BeautifulSoup, platform: Platform, base_url: str
    ) -> List[ExtractedPost]:
        if self.limits.max_posts <= 0:
            return []
        if platform is Platform.AGGREGATOR:
            selectors, build = AGGREGATOR_POST_SELECTORS, self._link_post
        else:
            selectors, build = GENERIC_POST_SELECTORS, self._heading_post

        def attempt(selector: str):
            return lambda: self._collect_posts(soup.select(selector), build, base_url)

        return first_result([attempt(s) for s in selectors], field="posts") or []

    def _collect_posts(self, elements, build, base_url: str) -> List[ExtractedPost]:
        posts: List[ExtractedPost] = []
        seen = set()
        for el in elements:
            if len(posts) >= self.limits.max_posts:
                break
            try:
                post = build(el, base_url)
            except Exception as e:
                logger.debug("post_read_failed", error=str(e))
                continue
            if post is None:
                continue
            key = post.url or post.title
            if key in seen:
                continue
            seen.add(key)
            posts.append(post)
        return posts

    @staticmethod
    def _link_post(el: Tag, base_url: str) -> Optional[ExtractedPost]:
        href = el.get("href")
        title = _text(el)
        if not href or not title:
            return None
        return ExtractedPost(title=title, url=urljoin(base_url, href))

    @staticmethod
    def _heading_post(el: Tag, base_url: str) -> Optional[ExtractedPost]:
        title = _text(el)
        if not title:
            return None
        anchor = el.find("a", href=True)
        url = urljoin(base_url, anchor["href"]) if anchor else None
        return ExtractedPost(title=title, url=url)

    def _extract_comments(self, soup: BeautifulSoup, platform: Platform) -> List[str]:
        if self.limits.max_comments <= 0:
            return []
        selectors = list(FALLBACK_COMMENT_SELECTORS)
        if platform is Platform.AGGREGATOR:
            selectors = AGGREGATOR_COMMENT_SELECTORS + selectors

        def attempt(selector: str):
            def collect() -> List[str]:
                texts = []
                for el in soup.select(selector):
                    if len(texts) >= self.limits.max_comments:
                        break
                    text = _text(el)
                    if text:
                        texts.append(text)
                return texts

            return collect

        return first_result([attempt(s) for s in selectors], field="comments") or []

    def _extract_text(self, soup: BeautifulSoup, html: str, base_url: str) -> Optional[str]:
        def by_selector(selector: str):
            def read() -> Optional[str]:
                el = soup.select_one(selector)
                return _text(el) if el else None

            return read

        return first_result(
            [by_selector(s) for s in BODY_SELECTORS]
            + [lambda: self.content_extractor.extract_text(html, url=base_url)],
            field="text",
        )

    @staticmethod
    def discover_links(soup: BeautifulSoup, base_url: str) -> List[str]:
        """Absolute http(s) targets of all anchors, in document order."""
        links: List[str] = []
        seen = set()
        for anchor in soup.find_all("a", href=True):
            url = urljoin(base_url, anchor["href"]).split("#", 1)[0]
            if urlparse(url).scheme not in ("http", "https") or url in seen:
                continue
            seen.add(url)
            links.append(url)
        return links
