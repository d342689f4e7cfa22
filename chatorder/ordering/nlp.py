# chatorder/ordering/nlp.py
from __future__ import annotations

import re
from typing import List, Optional, Tuple

# ----------------------------
# Phrase tables
# ----------------------------
CHECKOUT_PHRASES = (
    "checkout",
    "check out",
    "place order",
    "place my order",
    "confirm order",
    "confirm my order",
    "i'm done",
    "im done",
    "that's all",
    "thats all",
    "proceed to checkout",
)

CANCEL_PHRASES = (
    "cancel",
    "cancel order",
    "cancel my order",
    "start over",
    "reset",
    "clear",
    "new order",
    "never mind",
    "nevermind",
)

CART_PHRASES = (
    "basket",
    "cart",
    "my cart",
    "summary",
    "my order",
    "show my order",
    "what's in my order",
)

# Words that chain another item onto the current order
CONNECTIVES = ("add", "also", "and", "with", "plus", "+")

# ----------------------------
# Regex helpers
# ----------------------------
_WS_RE = re.compile(r"\s+")

# Trailing punctuation people type at the end of a chat line
_TRAILING_PUNCT_RE = re.compile(r"[\s.!?,;:]+$")

_GREETING_RE = re.compile(
    r"(?:^|\s)(?:hello|hi|hey|hiya|greetings?|good\s+(?:morning|afternoon|evening))(?:[\s,.!?]|$)",
    re.IGNORECASE,
)

# "i'd like 2 x the cheeseburger", "add an iced tea", "let me get fries"
_ORDER_RE = re.compile(
    r"\b(?:i'?d\s+like|i\s+would\s+like|i\s+want|can\s+i\s+(?:have|get)|could\s+i\s+(?:have|get)|"
    r"give\s+me|get\s+me|add|i'?ll\s+have|i\s+will\s+have|let\s+me\s+(?:get|have))\s+"
    r"(?:(?:\d+)\s*[x×]?\s+)?(?:(?:a|an|the|some)\s+)?([a-z][a-z\s'&-]*)",
    re.IGNORECASE,
)

_MENU_RE = re.compile(
    r"\b(?:show|what'?s|what\s+is|list|see|view)\b.*\b(?:menu|items?|food|drinks?|meals?)\b",
    re.IGNORECASE,
)
_MENU_ALT_RE = re.compile(
    r"\bwhat\s+(?:do\s+you\s+have|can\s+i\s+order|is\s+available)\b|\bmenu\b",
    re.IGNORECASE,
)

_PRICE_RE = re.compile(
    r"\b(?:how\s+much(?:\s+(?:is|are|for|does))?|what'?s\s+the\s+price\s+of|what\s+is\s+the\s+price\s+of|"
    r"price\s+of|cost\s+of)\s+(?:(?:\d+)\s*[x×]?\s+)?(?:(?:a|an|the)\s+)?([a-z][a-z\s'&-]*)",
    re.IGNORECASE,
)

_THANKS_RE = re.compile(r"\b(?:thanks|thank\s+you|thank\s+u|thx|ty)\b", re.IGNORECASE)

_QTY_RE = re.compile(r"\d+")

# Leading ordering filler left over once connectives are gone ("i want", "can i get")
_LEADING_FILLER_RE = re.compile(
    r"^\s*(?:i'?d\s+like|i\s+would\s+like|i\s+want|can\s+i\s+(?:have|get)|could\s+i\s+(?:have|get)|"
    r"give\s+me|get\s+me|i'?ll\s+have|i\s+will\s+have|let\s+me\s+(?:get|have))\b\s*",
    re.IGNORECASE,
)

_ARTICLES_RE = re.compile(r"^\s*(?:a|an|the|some)\b\s*", re.IGNORECASE)

# Trailing politeness and trailing "costs"/"each" on price questions
_TRAILING_POLITE_RE = re.compile(r"\s*\b(?:please|pls|plz|cost|costs|each)\b\s*$", re.IGNORECASE)

_CONNECTIVE_RE = re.compile(r"(?:\b(?:add|also|and|with|plus)\b|\+)", re.IGNORECASE)
_DIGITS_RE = re.compile(r"\b\d+\s*[x×]?(?=\s|$)", re.IGNORECASE)


# ----------------------------
# Canonicalization
# ----------------------------
def normalize_message(raw: str) -> str:
    """Lowercase, trim, collapse whitespace and drop trailing punctuation."""
    s = (raw or "").strip().lower()
    s = s.replace("’", "'").replace("‘", "'")
    s = _WS_RE.sub(" ", s)
    s = _TRAILING_PUNCT_RE.sub("", s)
    return s.strip()


def clean_item_span(span: str) -> str:
    """
    Tidy an extracted item phrase.
    Example:
      "the iced tea please" -> "iced tea"
    """
    s = _WS_RE.sub(" ", (span or "").strip())
    s = _ARTICLES_RE.sub("", s).strip()
    while True:
        s2 = _TRAILING_POLITE_RE.sub("", s).strip()
        if s2 == s:
            break
        s = s2
    return s


# ----------------------------
# Phrase detection
# ----------------------------
def is_phrase(msg_norm: str, phrases: Tuple[str, ...]) -> bool:
    return msg_norm in phrases


def is_greeting(msg_norm: str) -> bool:
    return bool(_GREETING_RE.search(msg_norm or ""))


def is_menu_request(msg_norm: str) -> bool:
    return bool(_MENU_RE.search(msg_norm or "") or _MENU_ALT_RE.search(msg_norm or ""))


def is_thanks(msg_norm: str) -> bool:
    return bool(_THANKS_RE.search(msg_norm or ""))


def order_span(msg_norm: str) -> Optional[str]:
    m = _ORDER_RE.search(msg_norm or "")
    if not m:
        return None
    return clean_item_span(m.group(1)) or None


def price_span(msg_norm: str) -> Optional[str]:
    m = _PRICE_RE.search(msg_norm or "")
    if not m:
        return None
    return clean_item_span(m.group(1)) or None


def has_connective(msg_norm: str) -> bool:
    return bool(_CONNECTIVE_RE.search(msg_norm or ""))


def strip_connectives(msg_norm: str) -> str:
    """
    Removes additive words, counts and ordering filler so only the item is left.
    Example:
      "add an iced tea" -> "iced tea"
      "and I want 2 cheeseburgers please" -> "cheeseburgers"
    """
    s = _CONNECTIVE_RE.sub(" ", msg_norm or "")
    s = _DIGITS_RE.sub(" ", s)
    s = _WS_RE.sub(" ", s).strip()

    while True:
        s2 = _LEADING_FILLER_RE.sub("", s).strip()
        if s2 == s:
            break
        s = s2

    return clean_item_span(s)


# ----------------------------
# Quantity parsing
# ----------------------------
def extract_quantity(raw: str) -> int:
    """First integer literal in the message, or 1 if missing / not positive."""
    m = _QTY_RE.search(raw or "")
    if not m:
        return 1
    qty = int(m.group(0))
    return qty if qty > 0 else 1


def suggest_names(span: str, names: List[str], limit: int = 3) -> List[str]:
    """Catalog names containing the span, else just the first few names."""
    needle = (span or "").strip().lower()
    contained = [n for n in names if needle and needle in n.lower()]
    return (contained or list(names))[:limit]
