"""Data model shared by the harvesting lanes."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel


class Platform(str, Enum):
    """Source platform tag assigned at classification time."""

    AGGREGATOR = "aggregator"
    VIDEO = "video"
    PHOTO = "photo"
    GENERIC = "generic"


class Lane(str, Enum):
    """Extraction lane: plain HTTP parsing or full browser rendering."""

    STATIC = "static"
    DYNAMIC = "dynamic"


class TaskState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class Address:
    """A classified, canonical address. Equality is by canonical form."""

    raw: str
    canonical: str
    platform: Platform

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self.canonical == other.canonical

    def __hash__(self) -> int:
        return hash(self.canonical)

    @property
    def host(self) -> str:
        return urlparse(self.canonical).netloc


@dataclass
class CrawlTask:
    """One address routed to a lane, tracked across attempts."""

    address: Address
    lane: Lane
    attempts: int = 0
    state: TaskState = TaskState.PENDING
    last_error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state is not TaskState.PENDING


@dataclass(frozen=True)
class BlockVerdict:
    """Outcome of block detection; a reason is present exactly when blocked."""

    blocked: bool
    reason: Optional[str] = None

    def __post_init__(self):
        if self.blocked and not self.reason:
            raise ValueError("A blocked verdict needs a reason")
        if not self.blocked and self.reason is not None:
            raise ValueError("A clear verdict cannot carry a reason")

    @classmethod
    def clear(cls) -> "BlockVerdict":
        return cls(blocked=False)


class _RecordModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ExtractedPost(_RecordModel):
    title: Optional[str] = None
    url: Optional[str] = None


class ExtractedComment(_RecordModel):
    text: str


class SentimentScore(_RecordModel):
    score: int = 0
    comparative: float = 0.0


class KeywordStat(_RecordModel):
    mentions: int = 0
    avg_score: float = 0.0
    avg_comparative: float = 0.0


class Record(_RecordModel):
    """Uniform output record, one per processed attempt.

    Counts are computed from the arrays and serialized as postsCount and
    commentsCount; they cannot be set independently.
    """

    platform: Platform
    url: str
    title: Optional[str] = None
    text: Optional[str] = None
    posts: list[ExtractedPost] = Field(default_factory=list)
    comments: list[ExtractedComment] = Field(default_factory=list)
    keyword_stats: Optional[dict[str, KeywordStat]] = None
    blocked: bool = False
    block_reason: Optional[str] = None
    sentiment: SentimentScore = Field(default_factory=SentimentScore)
    scraped_at: datetime

    @model_validator(mode="after")
    def check_block_reason(self) -> "Record":
        if self.blocked != (self.block_reason is not None):
            raise ValueError("block_reason must be set exactly when blocked")
        return self

    @computed_field(alias="postsCount")  # type: ignore[prop-decorator]
    @property
    def posts_count(self) -> int:
        return len(self.posts)

    @computed_field(alias="commentsCount")  # type: ignore[prop-decorator]
    @property
    def comments_count(self) -> int:
        return len(self.comments)

    def to_json_dict(self) -> dict:
        """Serialize with camelCase keys and ISO timestamps."""
        return self.model_dump(mode="json", by_alias=True)


@dataclass
class FailureReport:
    """A task that ended without a successful record."""

    url: str
    platform: Platform
    lane: Lane
    attempts: int
    state: TaskState
    reason: str


@dataclass
class ExtractionLimits:
    max_posts: int = 50
    max_comments: int = 100


@dataclass
class ExtractionOutcome:
    """What one lane attempt pulled out of a page, before normalization."""

    title: Optional[str] = None
    posts: list[ExtractedPost] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)
    text: Optional[str] = None
    links: list[str] = field(default_factory=list)
    verdict: BlockVerdict = field(default_factory=BlockVerdict.clear)


@dataclass
class HarvestResult:
    """Run summary: task outcomes and failure reports."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    blocked: int = 0
    skipped: int = 0
    records_emitted: int = 0
    failures: list[FailureReport] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Percentage of processed tasks that ended successfully."""
        return (self.succeeded / self.processed * 100) if self.processed else 0.0
