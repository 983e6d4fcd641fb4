"""Pytest configuration and fixtures."""

import os

import httpx
import pytest

from harvester.config import Settings


@pytest.fixture(autouse=True)
def clean_harvester_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep HARVESTER_* variables and .env files from leaking into Settings()."""
    for key in list(os.environ):
        if key.upper().startswith("HARVESTER_"):
            monkeypatch.delenv(key)
    monkeypatch.setitem(Settings.model_config, "env_file", None)


@pytest.fixture
def transport_error() -> httpx.HTTPError:
    """A connection-level failure as raised by httpx."""
    return httpx.ConnectError("connection refused")
