import json

import pytest

from artcart.config import Settings
from artcart.services.cart_manager import create_cart_manager
from artcart.services.notifications import ERROR, GENERIC_ERROR_MESSAGE, INFO, SUCCESS
from artcart.services.storage import CartStorage
from conftest import FlakyStore

RED_BIRD = {"id": "a1", "title": "Red Bird", "price": "₪120", "image": "images/red-bird.jpg", "dimensions": "40x50 cm"}
BLUE_FISH = {"id": "a2", "title": "Blue Fish", "price": "80"}


def _stored(store):
    return json.loads(store.get_item("cart"))


def _cart_json(*rows):
    return json.dumps(list(rows), ensure_ascii=False)


# --- add / duplicate ---

def test_add_then_reload_in_new_context(manager, make_manager, store):
    assert manager.add_to_cart({"id": "a1", "title": "Red Bird", "price": "₪120"}) is True

    rows = _stored(store)
    assert len(rows) == 1
    assert rows[0]["price"] == "₪120.00"
    assert rows[0]["quantity"] == 1

    fresh = make_manager()
    assert [it.to_dict() for it in fresh.items] == rows
    assert CartStorage(store).load() == fresh.items


def test_duplicate_add_is_rejected_with_its_own_notice(manager):
    assert manager.add_to_cart(RED_BIRD) is True
    assert len(manager.items) == 1

    assert manager.add_to_cart(RED_BIRD) is False
    assert len(manager.items) == 1

    latest = manager.notifier.latest()
    assert latest.message == "Red Bird is already in your cart"
    assert latest.level == INFO
    successes = [n for n in manager.notifier.history if n.level == SUCCESS]
    assert [n.message for n in successes] == ["Red Bird added to cart"]


def test_any_sequence_of_adds_keeps_ids_unique(manager):
    for payload in (RED_BIRD, BLUE_FISH, RED_BIRD, {"id": "a3", "title": "Moon"}, BLUE_FISH):
        manager.add_to_cart(payload)
    ids = [it.id for it in manager.items]
    assert ids == ["a1", "a2", "a3"]
    assert all(it.quantity == 1 for it in manager.items)


def test_added_item_is_formatted(manager):
    manager.add_to_cart(RED_BIRD)
    item = manager.items[0]
    assert item.image == "/images/red-bird.jpg"
    assert item.price == "₪120.00"
    assert item.dimensions == "40x50 cm"


def test_numeric_ids_are_accepted(manager):
    assert manager.add_to_cart({"id": 17, "title": "Numbered", "price": 10}) is True
    assert manager.items[0].id == "17"
    assert manager.items[0].price == "₪10.00"


@pytest.mark.parametrize("payload", [None, "a1", {}, {"title": "No id"}, {"id": "a1"}, {"id": " ", "title": "Blank"}])
def test_invalid_payloads_are_rejected_without_writing(manager, store, payload):
    assert manager.add_to_cart(payload) is False
    assert store.writes == 0
    assert manager.items == []
    assert manager.state.is_loading is False
    assert manager.notifier.latest().level == ERROR
    assert manager.metrics.errors


def test_cache_fills_in_partial_repeat_payload(manager):
    manager.add_to_cart(RED_BIRD)
    manager.remove_from_cart("a1")

    assert manager.add_to_cart({"id": "a1", "title": "Red Bird"}) is True
    item = manager.items[0]
    assert item.price == "₪120.00"
    assert item.image == "/images/red-bird.jpg"


def test_cache_entries_expire(manager, clock):
    manager.add_to_cart(RED_BIRD)
    manager.remove_from_cart("a1")
    clock.advance(301)
    manager.add_to_cart({"id": "a1", "title": "Red Bird"})
    assert manager.items[0].amount is None
    assert manager.items[0].image == ""


# --- remove / quantity ---

def test_remove_of_absent_id_leaves_store_identical(manager, store):
    manager.add_to_cart(RED_BIRD)
    before = store.get_item("cart")
    writes = store.writes

    assert manager.remove_from_cart("nope") is False
    assert store.get_item("cart") == before
    assert store.writes == writes


def test_remove(manager, store):
    manager.add_to_cart(RED_BIRD)
    manager.add_to_cart(BLUE_FISH)
    assert manager.remove_from_cart("a1") is True
    assert [row["id"] for row in _stored(store)] == ["a2"]
    assert manager.badge_count == 1
    assert manager.notifier.latest().message == "Item removed from cart"


def test_update_quantity_clamps_and_deletes(manager, store):
    manager.add_to_cart(RED_BIRD)

    assert manager.update_quantity("a1", 5) is True
    assert manager.items[0].quantity == 5
    assert manager.badge_count == 5

    assert manager.update_quantity("a1", 500) is True
    assert _stored(store)[0]["quantity"] == 99

    assert manager.update_quantity("missing", 2) is False
    assert manager.update_quantity("a1", "lots") is False

    assert manager.update_quantity("a1", 0) is True
    assert manager.items == []
    assert _stored(store) == []


# --- totals ---

def test_total_skips_unparseable_prices(make_manager, store):
    store.set_item("cart", _cart_json(
        {"id": "a", "title": "A", "price": "₪10.00", "quantity": 1},
        {"id": "b", "title": "B", "price": "garbage", "quantity": 1},
    ))
    manager = make_manager()
    assert manager.calculate_total() == "10.00"
    # the unparseable line is kept as it was
    assert manager.items[1].price == "garbage"


def test_total_uses_quantities(manager):
    manager.add_to_cart(RED_BIRD)
    manager.add_to_cart(BLUE_FISH)
    manager.update_quantity("a2", 2)
    assert manager.calculate_total() == "280.00"


# --- persistence and recovery ---

def test_corrupted_store_self_heals():
    store = FlakyStore({"cart": "not-an-array"})
    manager = create_cart_manager(Settings(), store=store)
    assert manager.init() is True
    assert manager.items == []
    assert store.get_item("cart") == "[]"
    assert manager.notifier.latest().message == GENERIC_ERROR_MESSAGE


def test_normalized_cart_is_not_rewritten(make_manager, store):
    store.set_item("cart", _cart_json({"id": "a1", "title": "Red Bird", "price": "₪120.00",
                                       "amount": "120.00", "currency": "₪", "quantity": 1}))
    writes = store.writes
    manager = make_manager()
    manager.load_cart()
    manager.remove_from_cart("nope")
    assert store.writes == writes
    assert manager.items[0].price == "₪120.00"


def test_currency_drift_is_normalized_on_load(make_manager, store):
    store.set_item("cart", _cart_json({"id": "a1", "title": "Red Bird", "price": "$50.00", "quantity": 1}))
    store.set_item("artwork-data", json.dumps({"settings": {"currency": "₪"}}, ensure_ascii=False))

    manager = make_manager()
    assert manager.currency == "₪"
    assert manager.items[0].price == "₪50.00"
    assert _stored(store)[0]["price"] == "₪50.00"


def test_write_failure_keeps_memory_as_working_copy(manager, store):
    store.fail_writes = True
    assert manager.add_to_cart(RED_BIRD) is True
    assert store.get_item("cart") is None
    assert GENERIC_ERROR_MESSAGE in [n.message for n in manager.notifier.history]

    assert manager.add_to_cart(BLUE_FISH) is True
    assert [it.id for it in manager.items] == ["a1", "a2"]

    store.fail_writes = False
    assert manager.remove_from_cart("a1") is True
    assert [row["id"] for row in _stored(store)] == ["a2"]


def test_second_context_sees_first_contexts_additions(make_manager, store):
    tab_one = make_manager()
    tab_two = make_manager()

    tab_one.add_to_cart(RED_BIRD)
    tab_two.add_to_cart(BLUE_FISH)
    assert [row["id"] for row in _stored(store)] == ["a1", "a2"]

    # tab one still holds what it last loaded until its next operation
    assert [it.id for it in tab_one.items] == ["a1"]
    assert tab_one.add_to_cart(BLUE_FISH) is False
    assert [it.id for it in tab_one.items] == ["a1", "a2"]


def test_init_only_once(manager):
    assert manager.is_initialized
    assert manager.init() is False


# --- engine state ---

def test_loading_flag_and_last_updated(manager):
    events = []
    manager.subscribe(events.append)

    manager.add_to_cart(RED_BIRD)
    assert events[0]["new_state"]["is_loading"] is True
    assert events[-1]["new_state"]["is_loading"] is False
    stamped = events[-1]["new_state"]["last_updated"]
    assert stamped is not None

    manager.add_to_cart(RED_BIRD)
    assert events[-1]["new_state"]["is_loading"] is False
    assert events[-1]["new_state"]["last_updated"] == stamped
    assert manager.state.version == events[-1]["new_state"]["version"]


def test_operation_started_from_a_listener_is_refused(manager):
    results = []

    def nested(event):
        if event["new_state"]["is_loading"] and not results:
            results.append(manager.add_to_cart(BLUE_FISH))

    manager.subscribe(nested)
    assert manager.add_to_cart(RED_BIRD) is True
    assert results == [False]
    assert [it.id for it in manager.items] == ["a1"]
    assert manager.state.is_loading is False


# --- rendering ---

def test_closed_panel_is_not_rendered(manager):
    manager.add_to_cart(RED_BIRD)
    assert manager.scheduler.render_count == 0
    assert manager.panel.html == ""


def test_open_panel_renders_and_coalesces_updates(manager, clock, defer):
    manager.add_to_cart(RED_BIRD)
    view = manager.open_cart()
    assert view.total_display == "₪120.00"
    assert "Red Bird" in manager.panel.html
    assert "Unique artwork" in manager.panel.html

    clock.advance(0.2)
    manager.add_to_cart(BLUE_FISH)
    assert manager.scheduler.render_count == 1
    assert "Blue Fish" in manager.panel.html

    manager.add_to_cart({"id": "a3", "title": "Moon", "price": "5"})
    manager.add_to_cart({"id": "a4", "title": "Sun", "price": "5"})
    assert "Moon" not in manager.panel.html
    assert len(defer.calls) == 1

    clock.advance(0.1)
    defer.run_all()
    assert manager.scheduler.render_count == 2
    assert "Sun" in manager.panel.html
    assert "₪210.00" in manager.panel.html


def test_panel_escapes_titles(manager):
    manager.add_to_cart({"id": "x", "title": "<script>alert(1)</script>", "price": "1"})
    manager.open_cart()
    assert "<script>" not in manager.panel.html
    assert "&lt;script&gt;" in manager.panel.html


def test_empty_panel(manager):
    manager.open_cart()
    assert "Your Cart is Empty" in manager.panel.html
    assert "₪0.00" in manager.panel.html


def test_render_failure_does_not_fail_the_mutation(make_manager):
    class BrokenPanel:
        def render(self, view):
            raise RuntimeError("panel gone")

    manager = make_manager(panel=BrokenPanel())
    manager.machine.update(is_open=True)
    assert manager.add_to_cart(RED_BIRD) is True
    assert [it.id for it in manager.items] == ["a1"]
    assert any(e["message"] == "Error during render" for e in manager.metrics.errors)
    assert manager.render_cart_items() is None


# --- empty / checkout / settings ---

def test_empty_cart_needs_confirmation(manager, store):
    manager.add_to_cart(RED_BIRD)
    assert manager.empty_cart() is False
    assert len(manager.items) == 1

    assert manager.empty_cart(confirmed=True) is True
    assert manager.items == []
    assert store.get_item("cart") == "[]"
    assert manager.notifier.latest().message == "Cart emptied successfully"


def test_checkout_stub(manager):
    assert manager.checkout() is False
    assert manager.notifier.latest().message == "Your cart is empty"

    manager.add_to_cart(RED_BIRD)
    manager.open_cart()
    assert manager.checkout() is True
    assert manager.items == []
    assert manager.state.is_open is False
    assert manager.notifier.latest().message == "Thank you for your order!"


def test_catalog_settings_switch_currency(manager, store):
    manager.add_to_cart(RED_BIRD)
    assert manager.apply_catalog_settings({"settings": {"currency": "$"}}) is True
    assert manager.items[0].price == "$120.00"
    assert _stored(store)[0]["price"] == "$120.00"

    assert manager.apply_catalog_settings({"currency": "$"}) is False
    manager.add_to_cart(BLUE_FISH)
    assert manager.items[1].price == "$80.00"


# --- housekeeping ---

def test_button_states(manager):
    manager.add_to_cart(RED_BIRD)
    states = manager.button_states(["a1", "a2"])
    assert states["a1"] == {"label": "Already in Cart", "disabled": True, "in_cart": True}
    assert states["a2"]["label"] == "Add to Cart"


def test_performance_report_and_cleanup(manager):
    manager.add_to_cart(RED_BIRD)
    manager.add_to_cart(BLUE_FISH)

    report = manager.performance_report()
    assert report["operations"]["add_to_cart"]["count"] == 2
    assert report["operations"]["storage"]["count"] >= 2
    assert report["cache_size"] == 2
    assert report["cart_size"] == 2

    manager.cleanup()
    assert len(manager.cache) == 0
    assert not manager.scheduler.is_busy()


def test_reset_cart_clears_store_and_panel(manager, store):
    manager.add_to_cart(RED_BIRD)
    manager.open_cart()
    manager.reset_cart()

    assert manager.items == []
    assert manager.badge_count == 0
    assert _stored(store) == []
    assert "Your Cart is Empty" in manager.panel.html

    manager.close_cart()
    assert manager.state.is_open is False


def test_infinite_quantity_in_store_is_repaired(store, make_manager):
    store.set_item("cart", '[{"id": "a1", "title": "Red Bird", "price": "₪10.00", "quantity": 1e400}]')
    manager = make_manager(init=False)

    assert manager.init() is True
    assert manager.badge_count == 1
    assert _stored(store)[0]["quantity"] == 1

    assert manager.add_to_cart(BLUE_FISH) is True
    assert [row["id"] for row in _stored(store)] == ["a1", "a2"]


def test_oversized_quantity_in_store_is_clamped(store, make_manager):
    store.set_item("cart", _cart_json({"id": "a1", "title": "Red Bird", "price": "₪10.00", "quantity": 1000000}))
    manager = make_manager()

    assert manager.badge_count == 99
    assert manager.calculate_total() == "990.00"
    assert _stored(store)[0]["quantity"] == 99
