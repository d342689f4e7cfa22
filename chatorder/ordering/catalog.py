# chatorder/ordering/catalog.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from ..models import MenuItem
from .matcher import ItemMatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogItem:
    id: int
    name: str
    category: str
    price: float
    description: str = ""
    is_available: bool = True


class CatalogStore(Protocol):
    def list_available_items(self) -> List[CatalogItem]:
        ...


class SqlCatalogStore:
    """Reads available menu items straight from the menu_items table."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def list_available_items(self) -> List[CatalogItem]:
        db: Session = self._session_factory()
        try:
            rows = db.scalars(
                select(MenuItem).where(MenuItem.is_available.is_(True)).order_by(MenuItem.id)
            ).all()
            return [
                CatalogItem(
                    id=row.id,
                    name=row.name,
                    category=row.category,
                    price=round(float(row.price or 0), 2),
                    description=row.description or "",
                    is_available=bool(row.is_available),
                )
                for row in rows
            ]
        finally:
            db.close()


class CatalogSnapshot:
    """Immutable list of items plus the matcher index built from them."""

    def __init__(self, items: Sequence[CatalogItem]) -> None:
        self.items: Tuple[CatalogItem, ...] = tuple(i for i in items if i.is_available)
        self.matcher = ItemMatcher(self.items)

    def names(self) -> List[str]:
        return [i.name for i in self.items]

    def __len__(self) -> int:
        return len(self.items)


class CatalogCache:
    """
    Bounded-staleness cache around a CatalogStore.

    The store is re-read at most once every `refresh_seconds`; between refreshes
    every request shares the same snapshot (and matcher index).
    """

    def __init__(
        self,
        store: CatalogStore,
        refresh_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._refresh_seconds = max(0.0, float(refresh_seconds))
        self._clock = clock
        self._snapshot: Optional[CatalogSnapshot] = None
        self._loaded_at = 0.0
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        if self._snapshot is None:
            return False
        return (self._clock() - self._loaded_at) < self._refresh_seconds

    async def snapshot(self) -> CatalogSnapshot:
        if self._is_fresh():
            return self._snapshot  # type: ignore[return-value]

        async with self._lock:
            # another request may have refreshed while we waited
            if self._is_fresh():
                return self._snapshot  # type: ignore[return-value]

            items = await run_in_threadpool(self._store.list_available_items)
            self._snapshot = CatalogSnapshot(items)
            self._loaded_at = self._clock()
            logger.debug("Catalog refreshed: %d items", len(self._snapshot))
            return self._snapshot

    def invalidate(self) -> None:
        self._snapshot = None
