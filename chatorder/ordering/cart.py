# chatorder/ordering/cart.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Tuple


@dataclass
class CartLine:
    catalog_item_id: int
    name: str
    quantity: int
    unit_price: float

    def __post_init__(self) -> None:
        if int(self.quantity) < 1:
            raise ValueError("quantity must be a positive integer")
        if float(self.unit_price) < 0:
            raise ValueError("unit_price cannot be negative")
        self.quantity = int(self.quantity)
        self.unit_price = round(float(self.unit_price), 2)

    @property
    def line_total(self) -> float:
        return round(self.quantity * self.unit_price, 2)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["line_total"] = self.line_total
        return d


def merge_line(cart: List[CartLine], catalog_item_id: int, name: str, quantity: int, unit_price: float) -> CartLine:
    """
    Add `quantity` of an item to the cart.

    A repeat mention of an item already in the cart only bumps its quantity;
    the line keeps the id, name and unit price it was first added with.
    """
    for line in cart:
        if line.catalog_item_id == catalog_item_id:
            line.quantity += int(quantity)
            return line

    line = CartLine(catalog_item_id=catalog_item_id, name=name, quantity=quantity, unit_price=unit_price)
    cart.append(line)
    return line


def cart_total(cart: List[CartLine]) -> float:
    return round(sum(line.quantity * line.unit_price for line in cart), 2)


def dump_cart(cart: List[CartLine]) -> List[Dict[str, Any]]:
    return [line.to_dict() for line in cart]


def build_summary(cart: List[CartLine], currency_symbol: str = "₱") -> Tuple[str, float]:
    if not cart:
        return ("Your order is empty.", 0.0)

    lines: List[str] = []
    for line in cart:
        lines.append(f"  • {line.quantity}x {line.name} - {currency_symbol}{line.line_total:.2f}")

    total = cart_total(cart)
    return ("Your order:\n" + "\n".join(lines) + f"\nTotal: {currency_symbol}{total:.2f}", total)
