"""Anti-bot block detection for fetched and rendered pages."""

from dataclasses import dataclass
from typing import Any, Optional

import structlog

from harvester.core.harvesting.models import BlockVerdict

logger = structlog.get_logger(__name__)

BLOCKING_STATUSES = {403, 429}

CHALLENGE_URL_MARKERS = (
    "/sorry/",
    "consent.",
    "/challenge",
    "/checkpoint",
    "captcha",
    "/verify",
)

CHALLENGE_PHRASES = (
    "unusual traffic",
    "verify you are a human",
    "captcha",
    "sign in to continue",
    "are you a robot",
    "confirm you're not a bot",
)


@dataclass(frozen=True)
class PageSnapshot:
    """What the detector gets to see of a page."""

    url: str = ""
    text: str = ""


def detect_block(status: Optional[int], snapshot: Optional[PageSnapshot]) -> BlockVerdict:
    """Classify an attempt as blocked or not; first matching rule wins.

    Args:
        status: Response status code, if one was captured
        snapshot: Current URL and visible text of the page

    Returns:
        BlockVerdict with a reason when blocked
    """
    if status in BLOCKING_STATUSES:
        return BlockVerdict(blocked=True, reason=f"HTTP {status}")

    if snapshot is None:
        return BlockVerdict.clear()

    current_url = snapshot.url.lower()
    if any(marker in current_url for marker in CHALLENGE_URL_MARKERS):
        return BlockVerdict(blocked=True, reason=f"redirected to {snapshot.url}")

    text = snapshot.text.lower()
    for phrase in CHALLENGE_PHRASES:
        if phrase in text:
            return BlockVerdict(blocked=True, reason=f"challenge page detected: {phrase}")

    return BlockVerdict.clear()


async def take_snapshot(page: Any) -> Optional[PageSnapshot]:
    """Read the current URL and visible body text of a browser page.

    Returns None when the page cannot be read.
    """
    try:
        url = page.url
        text = await page.inner_text("body")
    except Exception as e:
        logger.debug("block_snapshot_failed", error=str(e))
        return None
    return PageSnapshot(url=url or "", text=text or "")


async def inspect_page(page: Any, status: Optional[int]) -> BlockVerdict:
    """Run block detection against a live page.

    A failed read while inspecting counts as not blocked, so a transient
    glitch never hides real content. The status rule still applies.
    """
    snapshot = await take_snapshot(page)
    try:
        return detect_block(status, snapshot)
    except Exception as e:
        logger.debug("block_detection_failed", error=str(e))
        return BlockVerdict.clear()
