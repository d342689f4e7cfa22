# chatorder/ordering/brain.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .cart import build_summary, dump_cart, merge_line
from .catalog import CatalogCache, CatalogSnapshot
from .errors import (
    AuthenticationRequired,
    ChatError,
    ConcurrencyConflict,
    EmptyOrder,
    InputError,
    PersistenceError,
)
from .intents import (
    INTENT_KINDS,
    Cancel,
    CartSummary,
    Checkout,
    Greeting,
    ItemNotFound,
    MenuRequest,
    Order,
    PriceInquiry,
    Thanks,
    Unknown,
    classify,
)
from .matcher import PARTIAL
from .persistence import (
    NotificationSink,
    OrderPersistence,
    OrderPlaced,
    OrderRequest,
    PersistedOrder,
    order_lines_payload,
)
from .replies import ReplyBook
from .sessions import ChatSession, SessionState, SessionStore

logger = logging.getLogger(__name__)


@dataclass
class ChatReply:
    reply: str
    session_id: str
    state: str
    version: int
    cart: List[Dict[str, Any]]
    total: float
    intent: Optional[str] = None
    order: Optional[PersistedOrder] = None
    error: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "error" if self.error else "success",
            "message": self.reply,
            "session_id": self.session_id,
            "state": self.state,
            "version": self.version,
            "intent": self.intent,
            "current_order": {"items": self.cart, "total": self.total},
            "order": self.order.to_dict() if self.order else None,
            "error": self.error,
            "suggestions": list(self.suggestions),
        }


@dataclass
class _Context:
    snapshot: CatalogSnapshot
    user_id: Optional[int]
    expected_version: Optional[int]


@dataclass
class _Turn:
    reply: str
    order: Optional[PersistedOrder] = None
    summary: str = ""
    suggestions: List[str] = field(default_factory=list)


Handler = Callable[[ChatSession, Any, _Context], Awaitable[_Turn]]


def _plural(name: str, qty: int) -> str:
    if qty > 1 and not name.lower().endswith("s"):
        return f"{name}s"
    return name


class OrderingEngine:
    """
    Applies classified chat messages to per-session carts.

    Every message for a session runs under that session's lock, including the
    call that persists a checkout, so the same cart can never be submitted twice.
    """

    def __init__(
        self,
        store: SessionStore,
        catalog: CatalogCache,
        persistence: OrderPersistence,
        notifier: Optional[NotificationSink] = None,
        replies: Optional[ReplyBook] = None,
        checkout_timeout: float = 10.0,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._persistence = persistence
        self._notifier = notifier
        self._replies = replies or ReplyBook()
        self._checkout_timeout = checkout_timeout

        self._handlers: Dict[str, Handler] = {
            Greeting.kind: self._on_greeting,
            Thanks.kind: self._on_thanks,
            MenuRequest.kind: self._on_menu,
            CartSummary.kind: self._on_cart,
            PriceInquiry.kind: self._on_price,
            Order.kind: self._on_order,
            Checkout.kind: self._on_checkout,
            Cancel.kind: self._on_cancel,
            ItemNotFound.kind: self._on_item_not_found,
            Unknown.kind: self._on_unknown,
        }
        missing = INTENT_KINDS - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for intents: {sorted(missing)}")

    @property
    def currency(self) -> str:
        return self._replies.currency_symbol

    def session(self, session_id: str) -> ChatSession:
        return self._store.get(session_id)

    # ----------------------------
    # Entry points
    # ----------------------------
    async def handle_message(
        self,
        session_id: str,
        message: str,
        user_id: Optional[int] = None,
        expected_version: Optional[int] = None,
    ) -> ChatReply:
        text = (message or "").strip()
        if not text:
            return self._error_reply(session_id, InputError("Message is required"))

        try:
            snapshot = await self._catalog.snapshot()
        except Exception:
            logger.exception("Catalog fetch failed for session %s", session_id)
            return self._reply_for(
                self._store.get(session_id),
                _Turn("Sorry, I can't load the menu right now. Please try again in a moment."),
                intent=Unknown.kind,
            )

        ctx = _Context(snapshot=snapshot, user_id=user_id, expected_version=expected_version)
        intent_kind = Unknown.kind

        async def _apply(session: ChatSession):
            nonlocal intent_kind
            intent = classify(text, session.state, snapshot.matcher, snapshot.names())
            intent_kind = intent.kind
            logger.debug("Session %s: %r -> %s", session_id, text, intent)
            session.last_message = text
            turn = await self._handlers[intent.kind](session, intent, ctx)
            return turn, session

        try:
            turn, session = await self._store.with_lock(session_id, _apply)
        except PersistenceError:
            logger.warning("Checkout failed for session %s; cart kept for retry", session_id)
            raise
        except ChatError as e:
            return self._error_reply(session_id, e, intent=intent_kind)

        if turn.order is not None:
            await self._notify(turn.order, user_id, turn.summary)

        return self._reply_for(session, turn, intent=intent_kind)

    async def cancel(self, session_id: str) -> ChatReply:
        session = await self._store.reset(session_id)
        return self._reply_for(session, _Turn("Your order has been cancelled. How can I help you?"), intent=Cancel.kind)

    # ----------------------------
    # Intent handlers
    # ----------------------------
    async def _on_greeting(self, session: ChatSession, intent: Greeting, ctx: _Context) -> _Turn:
        return _Turn(self._replies.pick("greeting"))

    async def _on_thanks(self, session: ChatSession, intent: Thanks, ctx: _Context) -> _Turn:
        return _Turn(self._replies.pick("thanks"))

    async def _on_menu(self, session: ChatSession, intent: MenuRequest, ctx: _Context) -> _Turn:
        items = ctx.snapshot.items
        if not items:
            return _Turn("Our menu is empty right now. Please check back soon.")
        lines = [f"- {it.name}: {self.currency}{it.price:.2f} ({it.category})" for it in items]
        return _Turn(self._replies.pick("menu") + "\n" + "\n".join(lines))

    async def _on_cart(self, session: ChatSession, intent: CartSummary, ctx: _Context) -> _Turn:
        summary, _ = build_summary(session.cart, currency_symbol=self.currency)
        return _Turn(summary)

    async def _on_price(self, session: ChatSession, intent: PriceInquiry, ctx: _Context) -> _Turn:
        if intent.match is None:
            return _Turn(f"I couldn't find pricing for {intent.item_text}.")
        item = intent.match.item
        return _Turn(self._replies.pick("price", name=item.name, price=item.price))

    async def _on_order(self, session: ChatSession, intent: Order, ctx: _Context) -> _Turn:
        item = intent.match.item
        merge_line(session.cart, item.id, item.name, intent.quantity, item.price)
        session.state = SessionState.CONFIRMING

        reply = self._replies.pick(
            "order",
            qty=intent.quantity,
            name=_plural(item.name, intent.quantity),
            line_total=round(intent.quantity * item.price, 2),
        )
        if intent.match.match_type == PARTIAL:
            reply = f'I think you meant "{item.name}". ' + reply
        return _Turn(reply)

    async def _on_checkout(self, session: ChatSession, intent: Checkout, ctx: _Context) -> _Turn:
        if not session.cart:
            raise EmptyOrder("Your order is empty. Please add items before checking out.")
        if ctx.user_id is None:
            raise AuthenticationRequired("Please log in to place your order.")
        if ctx.expected_version is not None and ctx.expected_version != session.version:
            raise ConcurrencyConflict("Your order changed since you last saw it. Please review it and check out again.")

        request = OrderRequest(
            user_id=ctx.user_id,
            lines=order_lines_payload(session.cart),
            total_amount=session.total,
            checkout_key=f"{session.checkout_nonce}:{session.session_id}:{session.version}",
        )
        try:
            order = await asyncio.wait_for(self._persistence.create_order(request), timeout=self._checkout_timeout)
        except asyncio.TimeoutError as e:
            raise PersistenceError("Saving your order took too long. Please try again.") from e
        except PersistenceError:
            raise
        except Exception as e:
            logger.exception("Order persistence failed for session %s", session.session_id)
            raise PersistenceError("Sorry, there was an error processing your order. Please try again.") from e

        summary, _ = build_summary(session.cart, currency_symbol=self.currency)
        reply = (
            "✅ Order Confirmed!\n\n"
            f"Order #{order.order_number} (queue {order.queue_number})\n"
            f"{summary}\n\n"
            "Please proceed to the counter for payment."
        )
        session.clear()
        return _Turn(reply, order=order, summary=summary)

    async def _on_cancel(self, session: ChatSession, intent: Cancel, ctx: _Context) -> _Turn:
        session.clear()
        return _Turn("Your order has been cancelled. How can I help you?")

    async def _on_item_not_found(self, session: ChatSession, intent: ItemNotFound, ctx: _Context) -> _Turn:
        reply = f'I couldn\'t find "{intent.original_text}" on our menu. '
        if intent.suggestions:
            reply += f"Did you mean: {', '.join(intent.suggestions)}?"
        else:
            reply += "Please check our menu and try again."
        return _Turn(reply, suggestions=list(intent.suggestions))

    async def _on_unknown(self, session: ChatSession, intent: Unknown, ctx: _Context) -> _Turn:
        reply = self._replies.pick("unknown") + "\n" + "\n".join(intent.suggestions)
        return _Turn(reply, suggestions=list(intent.suggestions))

    # ----------------------------
    # Helpers
    # ----------------------------
    async def _notify(self, order: PersistedOrder, user_id: Optional[int], summary: str) -> None:
        if self._notifier is None:
            return
        event = OrderPlaced(
            order_id=order.order_id,
            order_number=order.order_number,
            total_amount=order.total_amount,
            user_id=user_id or 0,
            summary=summary,
        )
        try:
            await self._notifier.notify(event)
        except Exception:
            logger.exception("Failed to send notification for order %s", order.order_number)

    def _reply_for(self, session: ChatSession, turn: _Turn, intent: Optional[str] = None) -> ChatReply:
        return ChatReply(
            reply=turn.reply,
            session_id=session.session_id,
            state=session.state.value,
            version=session.version,
            cart=dump_cart(session.cart),
            total=session.total,
            intent=intent,
            order=turn.order,
            suggestions=turn.suggestions,
        )

    def _error_reply(self, session_id: str, error: ChatError, intent: Optional[str] = None) -> ChatReply:
        reply = self._reply_for(self._store.get(session_id), _Turn(error.message), intent=intent)
        reply.error = error.code
        return reply
