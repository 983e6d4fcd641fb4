"""Custom exceptions for Harvester."""


class HarvesterError(Exception):
    """Base exception for all Harvester errors."""

    pass


class InvalidInputError(HarvesterError):
    """Exception raised when no valid addresses survive normalization."""

    pass


class FetchFailureError(HarvesterError):
    """Exception raised when a page cannot be fetched or navigated to."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class BlockDetectedError(HarvesterError):
    """Exception raised after a blocked attempt has emitted its partial record."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url} blocked: {reason}")
        self.url = url
        self.reason = reason
