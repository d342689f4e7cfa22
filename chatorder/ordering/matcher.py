# chatorder/ordering/matcher.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Optional, Pattern, Sequence, Tuple

from .errors import Unresolved

if TYPE_CHECKING:
    from .catalog import CatalogItem

EXACT = "exact"
PARTIAL = "partial"

# Name words this short are too ambiguous to anchor a partial match on.
MIN_ANCHOR_WORD_LEN = 4


@dataclass(frozen=True)
class ItemMatch:
    item: "CatalogItem"
    confidence: float
    match_type: str


def anchor_words(name: str) -> List[str]:
    """Name words long enough to be matched on their own."""
    return [w for w in (name or "").lower().split() if len(w) >= MIN_ANCHOR_WORD_LEN]


def _word_pattern(word: str) -> Pattern[str]:
    # whole word, tolerating a plural "s"
    return re.compile(rf"\b{re.escape(word)}s?\b", re.IGNORECASE)


class _IndexedItem:
    __slots__ = ("item", "exact_re", "word_res")

    def __init__(self, item: "CatalogItem") -> None:
        self.item = item
        name = (item.name or "").strip()
        self.exact_re = re.compile(rf"^{re.escape(name)}$", re.IGNORECASE) if name else None
        self.word_res: Tuple[Pattern[str], ...] = tuple(_word_pattern(w) for w in anchor_words(name))


class ItemMatcher:
    """
    Pre-compiled matcher over one catalog snapshot.

    Exact hits (whole text == full item name, any case) short-circuit with
    confidence 1.0. Otherwise every item is scored by the fraction of its
    anchor words found in the text; ties keep catalog order.
    """

    def __init__(self, items: Iterable["CatalogItem"]) -> None:
        self._index = [_IndexedItem(it) for it in items]

    def match(self, text: str) -> List[ItemMatch]:
        q = (text or "").strip()
        if not q:
            return []

        for entry in self._index:
            if entry.exact_re is not None and entry.exact_re.match(q):
                return [ItemMatch(entry.item, 1.0, EXACT)]

        scored: List[ItemMatch] = []
        for entry in self._index:
            if not entry.word_res:
                continue
            hits = sum(1 for rx in entry.word_res if rx.search(q))
            if not hits:
                continue
            confidence = hits / len(entry.word_res)
            scored.append(ItemMatch(entry.item, confidence, EXACT if confidence == 1.0 else PARTIAL))

        # sorted() is stable, so equal scores stay in catalog order
        return sorted(scored, key=lambda m: m.confidence, reverse=True)

    def best(self, text: str) -> Optional[ItemMatch]:
        matches = self.match(text)
        return matches[0] if matches else None

    def resolve(self, text: str) -> ItemMatch:
        best = self.best(text)
        if best is None:
            raise Unresolved(f"No menu item matches {text!r}")
        return best


def match(text: str, catalog: Sequence["CatalogItem"]) -> List[ItemMatch]:
    return ItemMatcher(catalog).match(text)
