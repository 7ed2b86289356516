"""Shared fixtures for kubegress tests."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from tests.factories import Cluster


@pytest.fixture
async def cluster() -> AsyncIterator[Cluster]:
    """A running engine over an in-memory cache with a recording reconciler."""
    harness = Cluster()
    await harness.engine.start()
    try:
        yield harness
    finally:
        await harness.engine.stop()
