"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio

from factories import NOW
from pfg.config import get_settings
from pfg.repositories import RepositoryScope
from pfg.storage.memory import InMemoryStore


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached per process; start every test from a clean cache."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest_asyncio.fixture
async def repos(store: InMemoryStore) -> AsyncGenerator[RepositoryScope, None]:
    async with store.scope() as scope:
        yield scope
