"""In-memory stand-ins for the fetcher, browser and page collaborators."""

from dataclasses import dataclass, field
from typing import Any, Optional

from harvester.core.harvesting.fetcher import FetchResponse


class FakeFetcher:
    """Serve canned responses; a list of responses is consumed call by call."""

    def __init__(self, responses: dict[str, Any]):
        self.responses = responses
        self.calls: list[str] = []

    async def fetch(self, url: str) -> FetchResponse:
        self.calls.append(url)
        response = self.responses.get(url)
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if response is None:
            return FetchResponse(url=url, status=404, text="")
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return FetchResponse(url=url, status=200, text=response)
        return response


@dataclass
class FakeElement:
    text: Any = ""
    attrs: dict[str, str] = field(default_factory=dict)

    async def inner_text(self) -> str:
        if isinstance(self.text, Exception):
            raise self.text
        return self.text

    async def get_attribute(self, name: str) -> Optional[str]:
        return self.attrs.get(name)


@dataclass
class PageSpec:
    """What a fake page shows after navigating to one URL."""

    status: int = 200
    title: str = ""
    body_text: str = ""
    html: str = "<html><body></body></html>"
    final_url: Optional[str] = None
    elements: dict[str, list[FakeElement]] = field(default_factory=dict)


@dataclass
class FakeResponse:
    status: int


class FakePage:
    """Just enough of a Playwright page for the dynamic lane.

    `site` maps URL -> PageSpec, or a list of PageSpecs consumed per visit
    (the last one repeats). URLs mapped to an exception fail navigation.
    """

    def __init__(self, site: dict[str, Any], visits: list[str]):
        self.site = site
        self.visits = visits
        self.spec: Optional[PageSpec] = None
        self.url = "about:blank"
        self.routes: list[tuple[str, Any]] = []
        self.scrolls = 0
        self.waits: list[int] = []
        self.closed = False

    async def route(self, pattern: str, handler: Any) -> None:
        self.routes.append((pattern, handler))

    async def goto(self, url: str, wait_until: str = "load", timeout: int = 0) -> FakeResponse:
        self.visits.append(url)
        spec = self.site.get(url)
        if isinstance(spec, list):
            spec = spec.pop(0) if len(spec) > 1 else spec[0]
        if isinstance(spec, Exception):
            raise spec
        if spec is None:
            spec = PageSpec(status=404)
        self.spec = spec
        self.url = spec.final_url or url
        return FakeResponse(status=spec.status)

    async def inner_text(self, selector: str) -> str:
        return self.spec.body_text if self.spec else ""

    async def title(self) -> str:
        return self.spec.title if self.spec else ""

    async def content(self) -> str:
        return self.spec.html if self.spec else ""

    async def evaluate(self, script: str) -> None:
        self.scrolls += 1

    async def wait_for_timeout(self, ms: int) -> None:
        self.waits.append(ms)

    async def query_selector(self, selector: str) -> Optional[FakeElement]:
        found = await self.query_selector_all(selector)
        return found[0] if found else None

    async def query_selector_all(self, selector: str) -> list[FakeElement]:
        if self.spec is None:
            return []
        return list(self.spec.elements.get(selector, []))

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    """Async context manager handing out FakePages over one fake site."""

    def __init__(self, site: dict[str, Any]):
        self.site = site
        self.visits: list[str] = []
        self.pages: list[FakePage] = []
        self.entered = 0

    async def __aenter__(self) -> "FakeBrowser":
        self.entered += 1
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def new_page(self) -> FakePage:
        page = FakePage(self.site, self.visits)
        self.pages.append(page)
        return page
