from __future__ import annotations

import asyncio
import random

import pytest

from chatorder.ordering.brain import OrderingEngine
from chatorder.ordering.catalog import CatalogCache, CatalogItem
from chatorder.ordering.errors import PersistenceError
from chatorder.ordering.persistence import PersistedOrder
from chatorder.ordering.replies import ReplyBook
from chatorder.ordering.sessions import SessionStore

CHEESEBURGER = CatalogItem(id=1, name="Cheeseburger", category="main", price=50)
ICED_TEA = CatalogItem(id=2, name="Iced Tea", category="beverage", price=20)


class FakeCatalogStore:
    def __init__(self, items, fail: bool = False):
        self.items = list(items)
        self.fail = fail
        self.calls = 0

    def list_available_items(self):
        self.calls += 1
        if self.fail:
            raise RuntimeError("menu store unreachable")
        return list(self.items)


class FakePersistence:
    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.requests = []
        self.created = {}

    async def create_order(self, request):
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise PersistenceError("Could not save the order")
        if request.checkout_key in self.created:
            return self.created[request.checkout_key]
        n = len(self.created) + 1
        order = PersistedOrder(
            order_id=n,
            order_number=f"ORD-20260101-{1000 + n}",
            queue_number=f"Q-{2000 + n}",
            total_amount=request.total_amount,
            status="pending",
        )
        self.created[request.checkout_key] = order
        return order


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events = []

    async def notify(self, event):
        self.events.append(event)
        if self.fail:
            raise ConnectionError("smtp down")


@pytest.fixture
def catalog_items():
    return [CHEESEBURGER, ICED_TEA]


@pytest.fixture
def catalog_store(catalog_items):
    return FakeCatalogStore(catalog_items)


@pytest.fixture
def persistence():
    return FakePersistence()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def build_engine(store, catalog_store, persistence, notifier):
    def _build(**overrides):
        kwargs = dict(
            store=store,
            catalog=CatalogCache(overrides.pop("catalog_store", catalog_store), refresh_seconds=overrides.pop("refresh_seconds", 30)),
            persistence=overrides.pop("persistence", persistence),
            notifier=overrides.pop("notifier", notifier),
            replies=ReplyBook(rng=random.Random(0), canteen_name="Test Canteen"),
        )
        kwargs.update(overrides)
        return OrderingEngine(**kwargs)

    return _build


@pytest.fixture
def engine(build_engine):
    return build_engine()


@pytest.fixture
def make_fake_persistence():
    return FakePersistence


@pytest.fixture
def make_fake_catalog_store():
    return FakeCatalogStore


@pytest.fixture
def make_notifier():
    return RecordingNotifier
