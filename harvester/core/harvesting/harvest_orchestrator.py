"""Harvest orchestrator - coordinates normalization, dispatch and both lanes."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, List, Optional
from uuid import uuid4

import structlog

from harvester.config import Settings
from harvester.core.harvesting.address_normalizer import AddressNormalizer
from harvester.core.harvesting.browser import PlaywrightBrowser
from harvester.core.harvesting.content_extractor import ContentExtractor, ExtractionConfig
from harvester.core.harvesting.dispatcher import DispatchConfig, Dispatcher, RetryConfig
from harvester.core.harvesting.dynamic_extractor import DynamicExtractor, RenderConfig
from harvester.core.harvesting.fetcher import Fetcher, HttpxFetcher
from harvester.core.harvesting.models import ExtractionLimits, HarvestResult, Lane, Platform
from harvester.core.harvesting.output_normalizer import RecordEmitter
from harvester.core.harvesting.proxy import ProxyProvider
from harvester.core.harvesting.reporting import FailureReporter, NullFailureReporter
from harvester.core.harvesting.sinks import JsonLinesSink, RecordSink
from harvester.core.harvesting.static_extractor import StaticExtractor
from harvester.utils.logging import bind_run_context, clear_run_context

logger = structlog.get_logger(__name__)

BrowserFactory = Callable[[], AsyncContextManager[Any]]


@dataclass
class HarvestConfig:
    """Complete harvesting configuration."""

    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    limits: ExtractionLimits = field(default_factory=ExtractionLimits)
    render: RenderConfig = field(default_factory=RenderConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    platforms: Optional[List[Platform]] = None
    keywords: List[str] = field(default_factory=list)
    follow_links: bool = True
    headless: bool = True
    request_timeout_s: float = 20.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "HarvestConfig":
        """Build the harvest configuration from application settings."""
        return cls(
            dispatch=DispatchConfig(
                max_requests=settings.max_requests,
                static_concurrency=settings.static_concurrency,
                dynamic_concurrency=settings.dynamic_concurrency,
                per_host_delay_ms=settings.per_host_delay_ms,
                render_hosts=list(settings.render_hosts),
                retry=RetryConfig(
                    max_attempts=settings.max_attempts,
                    base_delay_ms=settings.retry_base_delay_ms,
                    backoff_multiplier=settings.retry_backoff_multiplier,
                ),
            ),
            limits=ExtractionLimits(
                max_posts=settings.max_posts,
                max_comments=settings.max_comments,
            ),
            render=RenderConfig(
                navigation_timeout_ms=settings.navigation_timeout_ms,
                scroll_count=settings.scroll_count,
                scroll_wait_ms=settings.scroll_wait_ms,
                photo_settle_ms=settings.photo_settle_ms,
            ),
            platforms=[Platform(p) for p in settings.platforms],
            keywords=list(settings.keywords),
            follow_links=settings.follow_links,
            headless=settings.headless,
            request_timeout_s=settings.request_timeout_s,
        )


class HarvestOrchestrator:
    """Coordinate a harvest run.

    Orchestrates:
    - Seed normalization and classification (fatal when nothing survives)
    - Static lane over HTTP, with link discovery
    - Dynamic lane in a browser, launched only when it has work
    - Record emission and failure reporting

    Collaborators default to httpx, Playwright and a JSON-lines file sink;
    pass fetcher/browser_factory/sink to substitute them.
    """

    def __init__(
        self,
        sink: RecordSink,
        config: Optional[HarvestConfig] = None,
        fetcher: Optional[Fetcher] = None,
        browser_factory: Optional[BrowserFactory] = None,
        reporter: Optional[FailureReporter] = None,
        proxy: Optional[ProxyProvider] = None,
    ):
        self.sink = sink
        self.config = config or HarvestConfig()
        self.fetcher = fetcher
        self.proxy = proxy or ProxyProvider()
        self.browser_factory = browser_factory or self._default_browser
        self.reporter = reporter or NullFailureReporter()
        self.content_extractor = ContentExtractor(self.config.extraction)

    @classmethod
    def from_settings(
        cls, settings: Settings, reporter: Optional[FailureReporter] = None
    ) -> "HarvestOrchestrator":
        """Orchestrator wired with the default collaborators."""
        return cls(
            sink=JsonLinesSink(settings.output_path),
            config=HarvestConfig.from_settings(settings),
            reporter=reporter,
            proxy=ProxyProvider(
                urls=settings.proxy_urls,
                group=settings.proxy_group,
                country=settings.proxy_country,
            ),
        )

    def _default_browser(self) -> PlaywrightBrowser:
        return PlaywrightBrowser(
            headless=self.config.headless,
            proxy=self.proxy,
            navigation_timeout_ms=self.config.render.navigation_timeout_ms,
        )

    async def harvest(self, seeds: Iterable[Any]) -> HarvestResult:
        """Main harvesting pipeline.

        Args:
            seeds: Seed items, each a URL string or a {"url": ...} mapping

        Returns:
            HarvestResult with task counts and failure reports

        Raises:
            InvalidInputError: If no valid address survives normalization
        """
        run_id = uuid4().hex[:12]
        bind_run_context(run_id=run_id)
        try:
            return await self._do_harvest(seeds)
        finally:
            clear_run_context()

    async def _do_harvest(self, seeds: Iterable[Any]) -> HarvestResult:
        # Step 1: Normalize seeds before any network access
        normalizer = AddressNormalizer(allowed_platforms=self.config.platforms)
        addresses = normalizer.normalize(seeds)

        # Step 2: Route into lanes
        dispatcher = Dispatcher(
            normalizer=normalizer,
            emitter=RecordEmitter(self.sink),
            config=self.config.dispatch,
            limits=self.config.limits,
            keywords=self.config.keywords,
            reporter=self.reporter,
        )
        dispatcher.submit(addresses)
        logger.info(
            "harvest_started",
            seeds=len(addresses),
            static=dispatcher.pending(Lane.STATIC),
            dynamic=dispatcher.pending(Lane.DYNAMIC),
            budget=self.config.dispatch.max_requests,
        )

        # Step 3: Static lane, then dynamic lane; either may discover addresses
        # for the other, so alternate until both are empty
        while dispatcher.pending(Lane.STATIC) or dispatcher.pending(Lane.DYNAMIC):
            await self._run_static(dispatcher)
            await self._run_dynamic(dispatcher)

        result = dispatcher.result
        logger.info(
            "harvest_complete",
            processed=result.processed,
            succeeded=result.succeeded,
            failed=result.failed,
            blocked=result.blocked,
            skipped=result.skipped,
            records=result.records_emitted,
        )
        return result

    async def _run_static(self, dispatcher: Dispatcher) -> None:
        if not dispatcher.pending(Lane.STATIC):
            return

        if self.fetcher is not None:
            await dispatcher.run_lane(Lane.STATIC, self._static_extractor(self.fetcher).extract)
            return

        async with HttpxFetcher(timeout=self.config.request_timeout_s, proxy=self.proxy) as fetcher:
            await dispatcher.run_lane(Lane.STATIC, self._static_extractor(fetcher).extract)

    def _static_extractor(self, fetcher: Fetcher) -> StaticExtractor:
        return StaticExtractor(
            fetcher,
            limits=self.config.limits,
            content_extractor=self.content_extractor,
            follow_links=self.config.follow_links,
        )

    async def _run_dynamic(self, dispatcher: Dispatcher) -> None:
        if not dispatcher.pending(Lane.DYNAMIC):
            return
        if dispatcher.budget.exhausted:
            dispatcher.skip_pending(Lane.DYNAMIC)
            return

        async with self.browser_factory() as browser:
            extractor = DynamicExtractor(
                browser.new_page,
                limits=self.config.limits,
                config=self.config.render,
                content_extractor=self.content_extractor,
                follow_links=self.config.follow_links,
                host_wait=dispatcher.throttle(Lane.DYNAMIC).wait,
            )
            await dispatcher.run_lane(Lane.DYNAMIC, extractor.extract)

