import asyncio
from typing import Dict, List, Optional

import pytest
from fakeredis import FakeAsyncRedis, FakeServer

from ranking_service.app.errors import StoreUnavailableError
from ranking_service.app.store import RankingStore
from ranking_service.ranking.aggregator import register_item
from ranking_service.ranking.models import Item


class ForbiddenStore:
    """Fails the test on any store access."""

    def __getattr__(self, name):
        raise AssertionError(f"unexpected store call: {name}")


class FlakyStore:
    """
    Wraps a real store, records every call and raises StoreUnavailableError
    for the configured methods. fail_on maps method name -> nth call to fail
    (1-based), or None to fail every call.
    """

    def __init__(self, inner: RankingStore, fail_on: Optional[Dict[str, Optional[int]]] = None):
        self.inner = inner
        self.fail_on = dict(fail_on or {})
        self.calls: List[str] = []

    def __getattr__(self, name):
        target = getattr(self.inner, name)

        async def call(*args, **kwargs):
            self.calls.append(name)
            if name in self.fail_on:
                nth = self.fail_on[name]
                if nth is None or self.calls.count(name) == nth:
                    raise StoreUnavailableError(f"{name}: connection refused")
            return await target(*args, **kwargs)

        return call


class GatedStore:
    """
    Wraps a real store; the first call to `hold` parks on an Event until the
    test releases it, so the calling task is suspended inside a store call.
    """

    def __init__(self, inner: RankingStore, hold: str):
        self.inner = inner
        self.hold = hold
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.calls: List[str] = []

    def __getattr__(self, name):
        target = getattr(self.inner, name)

        async def call(*args, **kwargs):
            self.calls.append(name)
            if name == self.hold:
                self.entered.set()
                await self.release.wait()
            return await target(*args, **kwargs)

        return call


class BrokenStore:
    """Every call raises something the core does not know about."""

    def __getattr__(self, name):
        async def call(*args, **kwargs):
            raise RuntimeError(f"{name}: secret internal detail")

        return call


@pytest.fixture
async def redis_client():
    client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def store(redis_client):
    return RankingStore(redis_client)


@pytest.fixture
def seed(store):
    async def _seed(*items: Item):
        for item in items:
            await register_item(store, item)

    return _seed


@pytest.fixture
def forbidden_store():
    return ForbiddenStore()


@pytest.fixture
def flaky_store(store):
    def _make(**fail_on: Optional[int]) -> FlakyStore:
        return FlakyStore(store, fail_on)

    return _make


@pytest.fixture
def broken_store():
    return BrokenStore()


@pytest.fixture
def gated_store(store):
    def _make(hold: str) -> GatedStore:
        return GatedStore(store, hold)

    return _make
