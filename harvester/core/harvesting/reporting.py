"""Failure reporting channel for tasks that end without a record."""

from typing import List, Protocol

import structlog

from harvester.core.harvesting.models import FailureReport

logger = structlog.get_logger(__name__)


class FailureReporter(Protocol):
    async def report(self, failure: FailureReport) -> None: ...


class NullFailureReporter:
    """Discard failure reports."""

    async def report(self, failure: FailureReport) -> None:
        return None


class LoggingFailureReporter:
    """Write failure reports to the structured log."""

    async def report(self, failure: FailureReport) -> None:
        logger.error(
            "task_failed",
            url=failure.url,
            platform=failure.platform.value,
            lane=failure.lane.value,
            attempts=failure.attempts,
            state=failure.state.value,
            reason=failure.reason,
        )


class MemoryFailureReporter:
    """Collect failure reports in a list."""

    def __init__(self) -> None:
        self.failures: List[FailureReport] = []

    async def report(self, failure: FailureReport) -> None:
        self.failures.append(failure)
