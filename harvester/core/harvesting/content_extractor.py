"""Main-text extraction - turn an HTML document into a single text blob."""

import re
from dataclasses import dataclass
from typing import Optional

import structlog
import trafilatura
from bs4 import BeautifulSoup
from readability import Document

logger = structlog.get_logger(__name__)

MAX_TEXT_LENGTH = 20000


@dataclass
class ExtractionConfig:
    """Configuration for text blob extraction."""

    min_word_count: int = 20
    max_text_length: int = MAX_TEXT_LENGTH


class ContentExtractor:
    """Extract the readable text of a page.

    Uses a priority cascade:
    1. Trafilatura (main content, best for articles)
    2. Readability (fallback for complex layouts)
    3. Tag stripping (always produces something for non-empty pages)
    """

    def __init__(self, config: Optional[ExtractionConfig] = None):
        self.config = config or ExtractionConfig()

    def extract_text(self, html: str, url: Optional[str] = None) -> Optional[str]:
        """Extract text using the cascade: Trafilatura → Readability → basic.

        Args:
            html: HTML content of the page
            url: Page URL (context for Trafilatura and logging)

        Returns:
            Text truncated to max_text_length, or None if the page has none
        """
        if not html:
            return None

        text = self._extract_with_trafilatura(html, url)
        if self._long_enough(text):
            return self._truncate(text)

        text = self._extract_with_readability(html)
        if self._long_enough(text):
            return self._truncate(text)

        text = self._extract_basic(html)
        if text:
            logger.debug("basic_text_extraction_used", url=url)
            return self._truncate(text)

        return None

    def _extract_with_trafilatura(self, html: str, url: Optional[str]) -> Optional[str]:
        try:
            return trafilatura.extract(
                html,
                url=url,
                include_comments=False,
                include_tables=True,
                no_fallback=False,
                favor_precision=True,
            )
        except Exception as e:
            logger.debug("trafilatura_extraction_failed", url=url, error=str(e))
            return None

    def _extract_with_readability(self, html: str) -> Optional[str]:
        try:
            doc = Document(html)
            # Readability returns HTML, so strip tags
            soup = BeautifulSoup(doc.summary(), "html.parser")
            return soup.get_text(separator="\n", strip=True)
        except Exception as e:
            logger.debug("readability_extraction_failed", error=str(e))
            return None

    def _extract_basic(self, html: str) -> Optional[str]:
        """Basic HTML tag stripping as last resort."""
        try:
            soup = BeautifulSoup(html, "html.parser")
            for tag in soup(["script", "style", "noscript", "nav", "footer", "header", "aside"]):
                tag.decompose()
            text = soup.get_text(separator="\n", strip=True)
            return re.sub(r"\n\s*\n+", "\n\n", text) or None
        except Exception as e:
            logger.debug("basic_extraction_failed", error=str(e))
            return None

    def _long_enough(self, text: Optional[str]) -> bool:
        return bool(text) and len(text.split()) >= self.config.min_word_count

    def _truncate(self, text: str) -> str:
        return text.strip()[: self.config.max_text_length]
