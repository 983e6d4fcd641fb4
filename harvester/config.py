"""Configuration management for Harvester using Pydantic Settings."""

from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

MAX_KEYWORDS = 25
KNOWN_PLATFORMS = ("aggregator", "video", "photo", "generic")


def _split_csv(value: str | list[str] | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Settings(BaseSettings):
    """Harvest settings loaded from HARVESTER_* environment variables."""

    # Input
    seed_urls: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Seed addresses (comma-separated in the environment)",
    )
    platforms: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(KNOWN_PLATFORMS),
        description="Platform allow-list (aggregator, video, photo, generic)",
    )
    keywords: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description=f"Tracked keywords for per-keyword sentiment (max {MAX_KEYWORDS})",
    )

    # Budget and extraction limits
    max_requests: int = Field(
        default=100,
        ge=1,
        description="Hard cap on addresses processed across both lanes",
    )
    max_posts: int = Field(default=50, ge=0, description="Max posts per record")
    max_comments: int = Field(default=100, ge=0, description="Max comments per record")
    follow_links: bool = Field(
        default=True,
        description="Enqueue outbound links discovered on statically fetched pages",
    )
    render_hosts: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Hosts whose generic pages need a rendering browser",
    )

    # Concurrency and politeness
    static_concurrency: int = Field(default=4, ge=1, description="Static lane workers")
    dynamic_concurrency: int = Field(default=1, ge=1, description="Dynamic lane workers")
    per_host_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Minimum spacing between requests to the same host",
    )
    max_attempts: int = Field(default=2, ge=1, description="Attempts per address")
    retry_base_delay_ms: int = Field(default=1000, ge=0, description="First retry delay")
    retry_backoff_multiplier: float = Field(default=2.0, ge=1.0)

    # Fetching and rendering
    request_timeout_s: float = Field(default=20.0, gt=0)
    navigation_timeout_ms: int = Field(default=30000, gt=0)
    headless: bool = Field(default=True, description="Run the browser headless")
    scroll_count: int = Field(default=5, ge=0, description="Scrolls on video pages")
    scroll_wait_ms: int = Field(default=1500, ge=0, description="Wait after each scroll")
    photo_settle_ms: int = Field(default=2000, ge=0, description="Wait on photo pages")

    # Proxy pool
    proxy_urls: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Proxy URLs; may contain {group} and {country} placeholders",
    )
    proxy_group: str | None = Field(default=None, description="Proxy group label")
    proxy_country: str | None = Field(default=None, description="Proxy region label")

    # Output
    output_path: Path = Field(
        default=Path("records.jsonl"),
        description="JSON-lines file receiving one record per processed address",
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    environment: str = Field(
        default="development",
        description="Environment (development or production)",
    )

    model_config = SettingsConfigDict(
        env_prefix="HARVESTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("seed_urls", "render_hosts", "proxy_urls", mode="before")
    @classmethod
    def parse_csv_lists(cls, v: str | list[str] | None) -> list[str]:
        """Parse list settings from comma-separated string or list."""
        return _split_csv(v)

    @field_validator("render_hosts", mode="after")
    @classmethod
    def lowercase_hosts(cls, v: list[str]) -> list[str]:
        return [host.lower() for host in v]

    @field_validator("keywords", mode="before")
    @classmethod
    def parse_keywords(cls, v: str | list[str] | None) -> list[str]:
        """Parse keywords and cap the list at MAX_KEYWORDS entries."""
        keywords = [k.strip() for k in _split_csv(v) if k and k.strip()]
        return keywords[:MAX_KEYWORDS]

    @field_validator("platforms", mode="before")
    @classmethod
    def parse_platforms(cls, v: str | list[str] | None) -> list[str]:
        """Validate platform allow-list entries."""
        platforms = [p.lower() for p in _split_csv(v)]
        unknown = [p for p in platforms if p not in KNOWN_PLATFORMS]
        if unknown:
            raise ValueError(
                f"Invalid platforms: {', '.join(unknown)}. "
                f"Allowed values: {', '.join(KNOWN_PLATFORMS)}"
            )
        return platforms or list(KNOWN_PLATFORMS)

