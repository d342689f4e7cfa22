from __future__ import annotations

import asyncio
import random

import pytest

from chatorder.ordering.catalog import CatalogItem
from chatorder.ordering.errors import PersistenceError
from chatorder.ordering.replies import TEMPLATES, ReplyBook

pytestmark = pytest.mark.asyncio


async def _cheeseburger_and_tea(engine, session_id="s1"):
    await engine.handle_message(session_id, "I want a cheeseburger")
    return await engine.handle_message(session_id, "add an iced tea")


# ----------------------------
# Walkthrough
# ----------------------------
async def test_order_opens_cart(engine):
    reply = await engine.handle_message("s1", "I want a cheeseburger")

    assert reply.error is None
    assert reply.intent == "order"
    assert reply.state == "confirming"
    assert reply.cart == [
        {"catalog_item_id": 1, "name": "Cheeseburger", "quantity": 1, "unit_price": 50.0, "line_total": 50.0}
    ]
    assert reply.total == 50


async def test_follow_up_adds_second_line(engine):
    reply = await _cheeseburger_and_tea(engine)

    assert reply.state == "confirming"
    assert [(line["catalog_item_id"], line["name"], line["quantity"], line["unit_price"]) for line in reply.cart] == [
        (1, "Cheeseburger", 1, 50.0),
        (2, "Iced Tea", 1, 20.0),
    ]
    assert reply.total == 70


async def test_authenticated_checkout_persists_once_and_resets(engine, persistence, notifier):
    await _cheeseburger_and_tea(engine)
    reply = await engine.handle_message("s1", "checkout", user_id=7)

    assert reply.error is None
    assert reply.order is not None
    assert reply.state == "initial"
    assert reply.cart == []

    assert len(persistence.requests) == 1
    request = persistence.requests[0]
    assert request.user_id == 7
    assert request.total_amount == 70
    assert len(request.lines) == 2

    assert [e.order_number for e in notifier.events] == [reply.order.order_number]
    session = engine.session("s1")
    assert session.cart == [] and session.state.value == "initial"


async def test_checkout_on_fresh_session_is_empty_order(engine, persistence):
    reply = await engine.handle_message("fresh", "checkout", user_id=7)

    assert reply.error == "empty_order"
    assert reply.state == "initial"
    assert reply.cart == []
    assert persistence.requests == []


async def test_greeting_does_not_touch_cart(engine):
    await engine.handle_message("s1", "I want a cheeseburger")
    reply = await engine.handle_message("s1", "hello")

    assert reply.intent == "greeting"
    assert reply.state == "confirming"
    assert len(reply.cart) == 1


async def test_unknown_item_suggests_catalog_names(engine):
    reply = await engine.handle_message("s1", "I want a sandwich")

    assert reply.intent == "item_not_found"
    assert reply.error is None
    assert reply.suggestions == ["Cheeseburger", "Iced Tea"]
    assert "sandwich" in reply.reply
    assert reply.state == "initial"
    assert reply.cart == []


# ----------------------------
# Cart rules
# ----------------------------
async def test_repeat_order_keeps_first_catalog_reference_and_price(build_engine, make_fake_catalog_store):
    catalog_store = make_fake_catalog_store([CatalogItem(id=1, name="Cheeseburger", category="main", price=50)])
    engine = build_engine(catalog_store=catalog_store, refresh_seconds=0)

    await engine.handle_message("s1", "I want a cheeseburger")
    # menu re-priced between the two mentions
    catalog_store.items = [CatalogItem(id=1, name="Cheeseburger", category="main", price=60)]
    reply = await engine.handle_message("s1", "I want 2 cheeseburgers")

    assert reply.cart == [
        {"catalog_item_id": 1, "name": "Cheeseburger", "quantity": 3, "unit_price": 50.0, "line_total": 150.0}
    ]
    assert reply.total == 150


@pytest.mark.parametrize("setup", [[], ["I want a cheeseburger"], ["I want a cheeseburger", "add an iced tea"]])
async def test_cancel_always_resets(engine, setup):
    for message in setup:
        await engine.handle_message("s1", message)

    reply = await engine.handle_message("s1", "cancel")

    assert reply.intent == "cancel"
    assert reply.state == "initial"
    assert reply.cart == []


async def test_cancel_entry_point(engine):
    await engine.handle_message("s1", "I want a cheeseburger")
    reply = await engine.cancel("s1")
    assert reply.state == "initial" and reply.cart == []


async def test_sessions_are_isolated(engine):
    await engine.handle_message("A", "I want a cheeseburger")
    before = engine.session("A")

    for message in ["I want 5 iced teas", "cancel", "I want a cheeseburger", "checkout", "hello"]:
        await engine.handle_message("B", message, user_id=1)

    after = engine.session("A")
    assert after.cart == before.cart
    assert after.state == before.state
    assert after.version == before.version


# ----------------------------
# Checkout failures
# ----------------------------
async def test_checkout_without_identity_keeps_cart(engine, persistence):
    await _cheeseburger_and_tea(engine)
    reply = await engine.handle_message("s1", "checkout")

    assert reply.error == "authentication_required"
    assert reply.state == "confirming"
    assert len(reply.cart) == 2
    assert persistence.requests == []


async def test_persistence_failure_keeps_cart_for_retry(build_engine, make_fake_persistence):
    failing = make_fake_persistence(fail=True)
    engine = build_engine(persistence=failing)
    await _cheeseburger_and_tea(engine)

    with pytest.raises(PersistenceError):
        await engine.handle_message("s1", "checkout", user_id=7)

    session = engine.session("s1")
    assert session.state.value == "confirming"
    assert [line.name for line in session.cart] == ["Cheeseburger", "Iced Tea"]

    failing.fail = False
    reply = await engine.handle_message("s1", "checkout", user_id=7)
    assert reply.order is not None
    assert reply.state == "initial"
    # both attempts carried the same idempotency key
    assert len({r.checkout_key for r in failing.requests}) == 1


async def test_slow_persistence_times_out_without_losing_cart(build_engine, make_fake_persistence):
    engine = build_engine(persistence=make_fake_persistence(delay=0.5), checkout_timeout=0.01)
    await _cheeseburger_and_tea(engine)

    with pytest.raises(PersistenceError):
        await engine.handle_message("s1", "checkout", user_id=7)

    assert len(engine.session("s1").cart) == 2


async def test_duplicate_concurrent_checkout_creates_one_order(build_engine, make_fake_persistence):
    slow = make_fake_persistence(delay=0.05)
    engine = build_engine(persistence=slow)
    await _cheeseburger_and_tea(engine)

    first, second = await asyncio.gather(
        engine.handle_message("s1", "checkout", user_id=7),
        engine.handle_message("s1", "checkout", user_id=7),
    )

    assert len(slow.requests) == 1
    assert [r.order is not None for r in (first, second)] == [True, False]
    assert second.error == "empty_order"


async def test_stale_version_is_rejected(engine, persistence):
    reply = await _cheeseburger_and_tea(engine)
    seen = reply.version

    await engine.handle_message("s1", "I want a cheeseburger")
    stale = await engine.handle_message("s1", "checkout", user_id=7, expected_version=seen)

    assert stale.error == "concurrency_conflict"
    assert persistence.requests == []

    fresh = await engine.handle_message("s1", "checkout", user_id=7, expected_version=stale.version)
    assert fresh.order is not None


async def test_notifier_failure_does_not_fail_checkout(build_engine, make_notifier):
    notifier = make_notifier(fail=True)
    engine = build_engine(notifier=notifier)
    await _cheeseburger_and_tea(engine)

    reply = await engine.handle_message("s1", "checkout", user_id=7)

    assert reply.order is not None
    assert len(notifier.events) == 1


# ----------------------------
# Other replies
# ----------------------------
async def test_blank_message_is_input_error(engine):
    reply = await engine.handle_message("s1", "   ")
    assert reply.error == "input_error"
    assert reply.state == "initial"


async def test_catalog_failure_degrades_to_unknown_reply(build_engine, make_fake_catalog_store):
    engine = build_engine(catalog_store=make_fake_catalog_store([], fail=True))
    reply = await engine.handle_message("s1", "I want a cheeseburger")

    assert reply.intent == "unknown"
    assert reply.error is None
    assert reply.cart == []


async def test_menu_lists_items(engine):
    reply = await engine.handle_message("s1", "show me the menu")
    assert reply.intent == "menu"
    assert "- Cheeseburger: ₱50.00 (main)" in reply.reply
    assert "- Iced Tea: ₱20.00 (beverage)" in reply.reply


async def test_price_reply(engine):
    reply = await engine.handle_message("s1", "how much is the iced tea")
    assert reply.intent == "price"
    assert "Iced Tea" in reply.reply and "20.00" in reply.reply
    assert reply.cart == []


async def test_price_question_during_open_order_keeps_cart(engine):
    await engine.handle_message("s1", "I want a cheeseburger")
    reply = await engine.handle_message("s1", "how much is the iced tea and the cheeseburger")

    assert reply.intent == "price"
    assert [(line["name"], line["quantity"]) for line in reply.cart] == [("Cheeseburger", 1)]


async def test_price_of_unknown_item(engine):
    reply = await engine.handle_message("s1", "how much is the lobster")
    assert reply.reply == "I couldn't find pricing for lobster."


async def test_reply_variant_follows_injected_rng(build_engine):
    engine = build_engine(replies=ReplyBook(rng=random.Random(42), canteen_name="Test Canteen"))
    expected = random.Random(42).choice(TEMPLATES["greeting"]).format(canteen="Test Canteen")

    reply = await engine.handle_message("s1", "hello")

    assert reply.reply == expected


async def test_reply_dict_shape(engine):
    reply = await engine.handle_message("s1", "I want a cheeseburger")
    body = reply.to_dict()
    assert body["status"] == "success"
    assert body["session_id"] == "s1"
    assert body["current_order"]["total"] == 50
    assert body["order"] is None
