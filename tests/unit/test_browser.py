"""Unit tests for request interception on rendered pages."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from fakes import FakeBrowser
from harvester.core.harvesting.browser import block_heavy_resources


def make_route(resource_type: str) -> SimpleNamespace:
    return SimpleNamespace(
        request=SimpleNamespace(resource_type=resource_type),
        abort=AsyncMock(),
        continue_=AsyncMock(),
    )


async def install_handler():
    page = await FakeBrowser({}).new_page()
    await block_heavy_resources(page)
    assert len(page.routes) == 1
    pattern, handler = page.routes[0]
    assert pattern == "**/*"
    return handler


@pytest.mark.asyncio
@pytest.mark.parametrize("resource_type", ["image", "media", "font"])
async def test_heavy_resources_are_aborted(resource_type):
    """Test that image, media and font requests never reach the network."""
    handler = await install_handler()
    route = make_route(resource_type)

    await handler(route)

    route.abort.assert_awaited_once()
    route.continue_.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("resource_type", ["document", "script", "xhr", "stylesheet"])
async def test_other_requests_continue(resource_type):
    """Test that documents, scripts and data requests pass through."""
    handler = await install_handler()
    route = make_route(resource_type)

    await handler(route)

    route.continue_.assert_awaited_once()
    route.abort.assert_not_awaited()
