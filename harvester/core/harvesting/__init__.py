"""Multi-platform harvesting for Harvester.

This module provides the complete harvesting pipeline:
- Address canonicalization, classification and deduplication
- Static lane: HTTP fetch with per-platform selector heuristics
- Dynamic lane: browser rendering with scroll loading and channel detours
- Anti-bot block detection
- Lexicon sentiment and per-keyword aggregation
- Uniform output records handed to an append-only sink
"""

from harvester.core.harvesting.address_normalizer import (
    AddressNormalizer,
    AddressRegistry,
    canonicalize,
    classify,
    normalize_one,
)
from harvester.core.harvesting.block_detector import PageSnapshot, detect_block
from harvester.core.harvesting.dispatcher import DispatchConfig, Dispatcher, RetryConfig
from harvester.core.harvesting.harvest_orchestrator import HarvestConfig, HarvestOrchestrator
from harvester.core.harvesting.models import (
    Address,
    BlockVerdict,
    CrawlTask,
    ExtractedComment,
    ExtractedPost,
    FailureReport,
    HarvestResult,
    KeywordStat,
    Lane,
    Platform,
    Record,
    SentimentScore,
    TaskState,
)
from harvester.core.harvesting.sinks import JsonLinesSink, MemorySink
from harvester.core.harvesting.text_signals import analyze_sentiment, keyword_stats

__all__ = [
    "Address",
    "AddressNormalizer",
    "AddressRegistry",
    "BlockVerdict",
    "CrawlTask",
    "DispatchConfig",
    "Dispatcher",
    "ExtractedComment",
    "ExtractedPost",
    "FailureReport",
    "HarvestConfig",
    "HarvestOrchestrator",
    "HarvestResult",
    "JsonLinesSink",
    "KeywordStat",
    "Lane",
    "MemorySink",
    "PageSnapshot",
    "Platform",
    "Record",
    "RetryConfig",
    "SentimentScore",
    "TaskState",
    "analyze_sentiment",
    "canonicalize",
    "classify",
    "detect_block",
    "keyword_stats",
    "normalize_one",
]
