"""Lexicon sentiment scoring and per-keyword aggregation.

Everything here is pure and deterministic: the same text always yields the
same score, and nothing touches the network or the filesystem.
"""

import re
from collections.abc import Iterable
from typing import Dict, List, Optional

from harvester.config import MAX_KEYWORDS
from harvester.core.harvesting.models import KeywordStat, SentimentScore

POSITIVE_WORDS = frozenset(
    ["good", "great", "excellent", "love", "like", "awesome", "happy", "positive", "best"]
)
NEGATIVE_WORDS = frozenset(
    ["bad", "terrible", "hate", "awful", "angry", "sad", "negative", "worse", "worst"]
)

WORD_SPLIT = re.compile(r"\W+")


def analyze_sentiment(text: Optional[str]) -> SentimentScore:
    """Score text against the fixed lexicon.

    Args:
        text: Arbitrary text (None and empty strings score zero)

    Returns:
        SentimentScore with the integer score and score per word
    """
    if not text:
        return SentimentScore(score=0, comparative=0.0)

    words = [w for w in WORD_SPLIT.split(text.lower()) if w]
    score = 0
    for word in words:
        if word in POSITIVE_WORDS:
            score += 1
        elif word in NEGATIVE_WORDS:
            score -= 1

    return SentimentScore(score=score, comparative=score / max(1, len(words)))


def prepare_keywords(keywords: Optional[Iterable[str]]) -> List[str]:
    """Lowercase, drop blanks and duplicates, cap at MAX_KEYWORDS."""
    prepared: List[str] = []
    for keyword in keywords or []:
        keyword = keyword.strip().lower()
        if keyword and keyword not in prepared:
            prepared.append(keyword)
    return prepared[:MAX_KEYWORDS]


def keyword_stats(
    units: Iterable[str], keywords: Optional[Iterable[str]]
) -> Optional[Dict[str, KeywordStat]]:
    """Aggregate mentions and average sentiment per tracked keyword.

    A unit (one comment or text blob) counts once per keyword it contains,
    matched as a case-insensitive substring.

    Returns:
        Mapping keyword -> KeywordStat, or None when no keywords are tracked
    """
    tracked = prepare_keywords(keywords)
    if not tracked:
        return None

    mentions = {k: 0 for k in tracked}
    score_sums = {k: 0.0 for k in tracked}
    comparative_sums = {k: 0.0 for k in tracked}

    for unit in units:
        if not unit:
            continue
        lowered = unit.lower()
        matched = [k for k in tracked if k in lowered]
        if not matched:
            continue
        sentiment = analyze_sentiment(unit)
        for keyword in matched:
            mentions[keyword] += 1
            score_sums[keyword] += sentiment.score
            comparative_sums[keyword] += sentiment.comparative

    return {
        k: KeywordStat(
            mentions=mentions[k],
            avg_score=score_sums[k] / mentions[k] if mentions[k] else 0.0,
            avg_comparative=comparative_sums[k] / mentions[k] if mentions[k] else 0.0,
        )
        for k in tracked
    }
