# chatorder/ordering/intents.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Optional, Sequence, Tuple, Union

from . import nlp
from .errors import Unresolved
from .matcher import ItemMatch, ItemMatcher
from .sessions import SessionState

logger = logging.getLogger(__name__)

UNKNOWN_SUGGESTIONS: Tuple[str, ...] = (
    'Try saying: "I want to order a burger"',
    'Or: "What\'s on the menu?"',
    'Or: "How much is the pizza?"',
)


# ----------------------------
# Intent variants
# ----------------------------
@dataclass(frozen=True)
class Greeting:
    kind: ClassVar[str] = "greeting"


@dataclass(frozen=True)
class Thanks:
    kind: ClassVar[str] = "thanks"


@dataclass(frozen=True)
class MenuRequest:
    kind: ClassVar[str] = "menu"


@dataclass(frozen=True)
class CartSummary:
    kind: ClassVar[str] = "cart"


@dataclass(frozen=True)
class PriceInquiry:
    item_text: str
    match: Optional[ItemMatch] = None
    kind: ClassVar[str] = "price"


@dataclass(frozen=True)
class Order:
    item_text: str
    quantity: int
    match: ItemMatch
    kind: ClassVar[str] = "order"


@dataclass(frozen=True)
class Checkout:
    kind: ClassVar[str] = "checkout"


@dataclass(frozen=True)
class Cancel:
    kind: ClassVar[str] = "cancel"


@dataclass(frozen=True)
class ItemNotFound:
    original_text: str
    suggestions: Tuple[str, ...] = ()
    kind: ClassVar[str] = "item_not_found"


@dataclass(frozen=True)
class Unknown:
    suggestions: Tuple[str, ...] = UNKNOWN_SUGGESTIONS
    kind: ClassVar[str] = "unknown"


IntentResult = Union[
    Greeting,
    Thanks,
    MenuRequest,
    CartSummary,
    PriceInquiry,
    Order,
    Checkout,
    Cancel,
    ItemNotFound,
    Unknown,
]

INTENT_TYPES = (
    Greeting,
    Thanks,
    MenuRequest,
    CartSummary,
    PriceInquiry,
    Order,
    Checkout,
    Cancel,
    ItemNotFound,
    Unknown,
)

INTENT_KINDS = frozenset(t.kind for t in INTENT_TYPES)


# ----------------------------
# Rules
# ----------------------------
@dataclass(frozen=True)
class Utterance:
    raw: str
    norm: str
    matcher: ItemMatcher
    catalog_names: Sequence[str] = field(default_factory=tuple)


Rule = Callable[[Utterance], Optional[IntentResult]]


def checkout_rule(u: Utterance) -> Optional[IntentResult]:
    return Checkout() if nlp.is_phrase(u.norm, nlp.CHECKOUT_PHRASES) else None


def cancel_rule(u: Utterance) -> Optional[IntentResult]:
    return Cancel() if nlp.is_phrase(u.norm, nlp.CANCEL_PHRASES) else None


def cart_rule(u: Utterance) -> Optional[IntentResult]:
    return CartSummary() if nlp.is_phrase(u.norm, nlp.CART_PHRASES) else None


def greeting_rule(u: Utterance) -> Optional[IntentResult]:
    return Greeting() if nlp.is_greeting(u.norm) else None


def order_rule(u: Utterance) -> Optional[IntentResult]:
    span = nlp.order_span(u.norm)
    if not span:
        return None

    try:
        best = u.matcher.resolve(span)
    except Unresolved:
        return ItemNotFound(original_text=span, suggestions=tuple(nlp.suggest_names(span, list(u.catalog_names))))
    return Order(item_text=span, quantity=nlp.extract_quantity(u.raw), match=best)


def menu_rule(u: Utterance) -> Optional[IntentResult]:
    return MenuRequest() if nlp.is_menu_request(u.norm) else None


def price_rule(u: Utterance) -> Optional[IntentResult]:
    span = nlp.price_span(u.norm)
    if not span:
        return None
    return PriceInquiry(item_text=span, match=u.matcher.best(span))


def thanks_rule(u: Utterance) -> Optional[IntentResult]:
    return Thanks() if nlp.is_thanks(u.norm) else None


# First match wins.
RULES: Tuple[Tuple[str, Rule], ...] = (
    ("checkout", checkout_rule),
    ("cancel", cancel_rule),
    ("cart", cart_rule),
    ("greeting", greeting_rule),
    ("order", order_rule),
    ("menu", menu_rule),
    ("price", price_rule),
    ("thanks", thanks_rule),
)


def additive_order(u: Utterance) -> Optional[Order]:
    """
    Follow-up like "and a tea" while an order is open: drop the connective
    words and try the rest as an item.
    """
    if not nlp.has_connective(u.norm):
        return None
    # price or menu questions and thanks never add to the cart
    if nlp.price_span(u.norm) or nlp.is_menu_request(u.norm) or nlp.is_thanks(u.norm):
        return None
    remainder = nlp.strip_connectives(u.norm)
    if not remainder:
        return None
    best = u.matcher.best(remainder)
    if best is None:
        return None
    return Order(item_text=remainder, quantity=nlp.extract_quantity(u.raw), match=best)


def classify(
    message: str,
    state: SessionState,
    matcher: ItemMatcher,
    catalog_names: Sequence[str] = (),
) -> IntentResult:
    u = Utterance(raw=message or "", norm=nlp.normalize_message(message), matcher=matcher, catalog_names=tuple(catalog_names))

    if state == SessionState.CONFIRMING:
        follow_up = additive_order(u)
        if follow_up is not None:
            logger.debug("Additive follow-up matched %r", follow_up.match.item.name)
            return follow_up

    for name, rule in RULES:
        intent = rule(u)
        if intent is not None:
            logger.debug("Rule %s matched %r", name, u.norm)
            return intent

    return Unknown()
