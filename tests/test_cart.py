from __future__ import annotations

import pytest

from chatorder.ordering.cart import CartLine, build_summary, cart_total, dump_cart, merge_line


def test_merge_same_item_sums_quantity_and_keeps_first_price():
    cart = []
    merge_line(cart, 1, "Cheeseburger", 1, 50)
    merge_line(cart, 1, "Cheese Burger", 2, 65)

    assert len(cart) == 1
    assert cart[0].catalog_item_id == 1
    assert cart[0].name == "Cheeseburger"
    assert cart[0].quantity == 3
    assert cart[0].unit_price == 50


def test_merge_new_item_appends_in_order():
    cart = []
    merge_line(cart, 1, "Cheeseburger", 1, 50)
    merge_line(cart, 2, "Iced Tea", 1, 20)
    assert [line.catalog_item_id for line in cart] == [1, 2]


def test_total_is_sum_of_quantity_times_price():
    cart = [CartLine(1, "Cheeseburger", 2, 50), CartLine(2, "Iced Tea", 3, 19.99)]
    assert cart_total(cart) == pytest.approx(159.97)
    assert cart_total([]) == 0


@pytest.mark.parametrize("qty", [0, -1])
def test_line_rejects_non_positive_quantity(qty):
    with pytest.raises(ValueError):
        CartLine(1, "Cheeseburger", qty, 50)


def test_line_rejects_negative_price():
    with pytest.raises(ValueError):
        CartLine(1, "Cheeseburger", 1, -5)


def test_dump_cart_includes_line_totals():
    assert dump_cart([CartLine(1, "Cheeseburger", 2, 50)]) == [
        {"catalog_item_id": 1, "name": "Cheeseburger", "quantity": 2, "unit_price": 50.0, "line_total": 100.0}
    ]


def test_summary():
    text, total = build_summary([CartLine(1, "Cheeseburger", 1, 50), CartLine(2, "Iced Tea", 1, 20)], currency_symbol="₱")
    assert total == 70
    assert "1x Cheeseburger - ₱50.00" in text
    assert text.endswith("Total: ₱70.00")


def test_summary_of_empty_cart():
    assert build_summary([]) == ("Your order is empty.", 0.0)
