"""Assemble uniform records and hand them to the sink."""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from harvester.core.harvesting.content_extractor import MAX_TEXT_LENGTH
from harvester.core.harvesting.models import (
    Address,
    BlockVerdict,
    ExtractedComment,
    ExtractedPost,
    Record,
)
from harvester.core.harvesting.sinks import RecordSink
from harvester.core.harvesting.text_signals import analyze_sentiment, keyword_stats

logger = structlog.get_logger(__name__)

MAX_COMMENT_LENGTH = 2000
SENTIMENT_TEXT_CEILING = 20000


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = " ".join(value.split())
    return value or None


def clean_posts(posts: Iterable[ExtractedPost], limit: int) -> List[ExtractedPost]:
    """Drop posts with neither title nor url, dedupe by url and apply the cap."""
    cleaned: List[ExtractedPost] = []
    seen_urls = set()
    for post in posts:
        if len(cleaned) >= limit:
            break
        title, url = _clean(post.title), _clean(post.url)
        if not title and not url:
            continue
        if url and url in seen_urls:
            continue
        if url:
            seen_urls.add(url)
        cleaned.append(ExtractedPost(title=title, url=url))
    return cleaned


def clean_comments(texts: Iterable[str], limit: int) -> List[ExtractedComment]:
    """Strip, drop empties, truncate to MAX_COMMENT_LENGTH and apply the cap."""
    cleaned: List[ExtractedComment] = []
    for text in texts:
        if len(cleaned) >= limit:
            break
        text = (text or "").strip()
        if text:
            cleaned.append(ExtractedComment(text=text[:MAX_COMMENT_LENGTH]))
    return cleaned


def build_record(
    address: Address,
    *,
    title: Optional[str] = None,
    posts: Iterable[ExtractedPost] = (),
    comments: Iterable[str] = (),
    text: Optional[str] = None,
    verdict: Optional[BlockVerdict] = None,
    keywords: Optional[Iterable[str]] = None,
    max_posts: int = 50,
    max_comments: int = 100,
    scraped_at: Optional[datetime] = None,
) -> Record:
    """Build the output record for one attempt.

    Posts and comments are always lists; counts are derived from them.
    Sentiment covers title, post titles, text blob and comments, joined and
    cut at SENTIMENT_TEXT_CEILING characters before scoring.
    """
    verdict = verdict or BlockVerdict.clear()
    title = _clean(title)
    text = (text or "").strip()[:MAX_TEXT_LENGTH] or None
    post_list = clean_posts(posts, max_posts)
    comment_list = clean_comments(comments, max_comments)

    parts = [title or ""]
    parts.extend(p.title for p in post_list if p.title)
    if text:
        parts.append(text)
    parts.extend(c.text for c in comment_list)
    sentiment_text = "\n".join(p for p in parts if p)[:SENTIMENT_TEXT_CEILING]

    units = [c.text for c in comment_list]
    if text:
        units.append(text)

    return Record(
        platform=address.platform,
        url=address.canonical,
        title=title,
        text=text,
        posts=post_list,
        comments=comment_list,
        keyword_stats=keyword_stats(units, keywords),
        blocked=verdict.blocked,
        block_reason=verdict.reason,
        sentiment=analyze_sentiment(sentiment_text),
        scraped_at=scraped_at or datetime.now(timezone.utc),
    )


class RecordEmitter:
    """Hands finished records to the sink and counts them."""

    def __init__(self, sink: RecordSink):
        self.sink = sink
        self.emitted = 0

    async def emit(self, record: Record) -> None:
        await self.sink.append(record)
        self.emitted += 1
        logger.info(
            "record_emitted",
            url=record.url,
            platform=record.platform.value,
            posts=record.posts_count,
            comments=record.comments_count,
            blocked=record.blocked,
        )
