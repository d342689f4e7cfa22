# chatorder/ordering/persistence.py
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from ..models import Order, OrderLine
from .cart import CartLine
from .errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderRequest:
    user_id: int
    lines: Tuple[CartLine, ...]
    total_amount: float
    checkout_key: Optional[str] = None


@dataclass(frozen=True)
class PersistedOrder:
    order_id: int
    order_number: str
    queue_number: str
    total_amount: float
    status: str

    def to_dict(self) -> dict:
        return {
            "id": self.order_id,
            "order_number": self.order_number,
            "queue_number": self.queue_number,
            "total_amount": self.total_amount,
            "status": self.status,
        }


class OrderPersistence(Protocol):
    async def create_order(self, request: OrderRequest) -> PersistedOrder:
        ...


@dataclass(frozen=True)
class OrderPlaced:
    order_id: int
    order_number: str
    total_amount: float
    user_id: int
    summary: str = ""


class NotificationSink(Protocol):
    async def notify(self, event: OrderPlaced) -> None:
        ...


class LoggingNotifier:
    async def notify(self, event: OrderPlaced) -> None:
        logger.info("New order %s (#%s) total=%.2f", event.order_number, event.order_id, event.total_amount)


def generate_order_number(rng: random.Random, now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    return f"ORD-{now:%Y%m%d}-{rng.randint(1000, 9999)}"


def generate_queue_number(rng: random.Random) -> str:
    return f"Q-{rng.randint(1000, 9999)}"


def _same_checkout(order: Order, request: OrderRequest) -> bool:
    return order.user_id == request.user_id and abs(float(order.total_amount) - float(request.total_amount)) < 0.005


def _to_persisted(order: Order) -> PersistedOrder:
    return PersistedOrder(
        order_id=order.id,
        order_number=order.order_number,
        queue_number=order.queue_number,
        total_amount=round(float(order.total_amount), 2),
        status=order.status,
    )


class SqlOrderPersistence:
    """
    Writes chat checkouts to the orders / order_lines tables.

    `checkout_key` is unique: submitting the same key twice returns the order
    created the first time instead of inserting another one, as long as the
    user and total agree. A key held by a different cart is refused.
    """

    def __init__(self, session_factory: sessionmaker, rng: Optional[random.Random] = None) -> None:
        self._session_factory = session_factory
        self._rng = rng or random.Random()

    async def create_order(self, request: OrderRequest) -> PersistedOrder:
        return await run_in_threadpool(self._create_order_sync, request)

    def _find_by_key(self, db: Session, request: OrderRequest) -> Optional[Order]:
        if not request.checkout_key:
            return None
        existing = db.scalars(select(Order).where(Order.checkout_key == request.checkout_key)).first()
        if existing is not None and not _same_checkout(existing, request):
            logger.warning(
                "Checkout key %s is held by order %s for another cart", request.checkout_key, existing.order_number
            )
            raise PersistenceError("This checkout was already used for a different order")
        return existing

    def _unused_order_number(self, db: Session) -> str:
        for _ in range(5):
            number = generate_order_number(self._rng)
            if db.scalars(select(Order.id).where(Order.order_number == number)).first() is None:
                return number
        # date + 8 random digits if the 4-digit space is crowded today
        return f"{generate_order_number(self._rng)}{self._rng.randint(1000, 9999)}"

    def _create_order_sync(self, request: OrderRequest) -> PersistedOrder:
        if not request.lines:
            raise PersistenceError("Refusing to create an order with no lines")

        db: Session = self._session_factory()
        try:
            existing = self._find_by_key(db, request)
            if existing is not None:
                logger.info("Checkout %s already persisted as %s", request.checkout_key, existing.order_number)
                return _to_persisted(existing)

            now = datetime.utcnow()
            order = Order(
                order_number=self._unused_order_number(db),
                queue_number=generate_queue_number(self._rng),
                user_id=request.user_id,
                status="pending",
                total_amount=request.total_amount,
                payment_method="cash",
                payment_status="pending",
                checkout_key=request.checkout_key,
                created_at=now,
                updated_at=now,
            )
            order.lines = [
                OrderLine(
                    menu_item_id=line.catalog_item_id,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for line in request.lines
            ]
            db.add(order)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                existing = self._find_by_key(db, request)
                if existing is not None:
                    return _to_persisted(existing)
                raise PersistenceError("Could not save the order") from e

            db.refresh(order)
            logger.info(
                "Order created: id=%s number=%s total=%.2f lines=%d",
                order.id,
                order.order_number,
                float(order.total_amount),
                len(request.lines),
            )
            return _to_persisted(order)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Error creating order for user %s", request.user_id)
            raise PersistenceError("Could not save the order") from e
        finally:
            db.close()


def order_lines_payload(lines: List[CartLine]) -> Tuple[CartLine, ...]:
    return tuple(CartLine(line.catalog_item_id, line.name, line.quantity, line.unit_price) for line in lines)
