"""
Pytest configuration and fixtures for the test suite.

This module contains shared fixtures used across all tests.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio

from core.config import get_settings
from services.constructor.client import ConstructorHttpClient


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    """Reload settings for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture()
async def search_client() -> AsyncIterator[ConstructorHttpClient]:
    """HTTP client bound to the test search host, retrying without delay."""
    client = ConstructorHttpClient(
        "https://search.test", "key_test", "tok_secret", retry_times=2, retry_sleep_ms=0
    )
    yield client
    await client.close()


@pytest_asyncio.fixture()
async def agent_client() -> AsyncIterator[ConstructorHttpClient]:
    """HTTP client bound to the test agent host, without retries."""
    client = ConstructorHttpClient(
        "https://agent.test", "key_test", retry_times=0, retry_sleep_ms=0
    )
    yield client
    await client.close()
