# chatorder/ordering/replies.py
from __future__ import annotations

import random
from typing import Dict, Optional, Sequence, Tuple

# Canned variants per reply category; one is picked at random each time.
TEMPLATES: Dict[str, Tuple[str, ...]] = {
    "greeting": (
        "Hello! How can I help you today?",
        "Hi there! What would you like to order?",
        "Welcome to {canteen}! How may I assist you with your order today?",
    ),
    "thanks": (
        "You're welcome! Is there anything else I can help you with?",
        "Happy to help! Let me know if you need anything else.",
    ),
    "menu": (
        "Here are our available items:",
        "Our menu includes:",
    ),
    "price": (
        "{name} costs {cur}{price:.2f} each.",
        "A {name} is {cur}{price:.2f}.",
    ),
    "order": (
        "Got it! I've added {qty} {name} to your order. Would you like to add anything else?",
        "Perfect choice! {qty} {name} added to your order. What else would you like?",
        "Added {qty} {name} ({cur}{line_total:.2f}) to your order. Would you like anything else?",
    ),
    "unknown": (
        "I'm not sure I understand. Could you rephrase that?",
        "I didn't catch that. Could you say that again?",
        "I'm still learning. Could you try asking in a different way?",
    ),
}


class ReplyBook:
    """Picks reply variants with an injectable (seedable) random source."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        templates: Optional[Dict[str, Sequence[str]]] = None,
        canteen_name: str = "our canteen",
        currency_symbol: str = "₱",
    ) -> None:
        self._rng = rng or random.Random()
        self._templates = {k: tuple(v) for k, v in (templates or TEMPLATES).items()}
        self.canteen_name = canteen_name
        self.currency_symbol = currency_symbol

    def variants(self, category: str) -> Tuple[str, ...]:
        return self._templates.get(category) or self._templates["unknown"]

    def pick(self, category: str, **data) -> str:
        template = self._rng.choice(self.variants(category))
        return template.format(canteen=self.canteen_name, cur=self.currency_symbol, **data)
