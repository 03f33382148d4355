import json
from decimal import Decimal

import pytest

from artcart.db.kv_store import MemoryKeyValueStore
from artcart.errors import StoreCorruptedError, StoreWriteError
from artcart.models.cart import CartItem
from artcart.services.storage import CartStorage


def test_missing_key_is_empty_cart():
    storage = CartStorage(MemoryKeyValueStore())
    assert storage.load() == []


@pytest.mark.parametrize("raw", ["not-an-array", '"not-an-array"', '{"id": "a1"}', "[1, 2]", "[{\"id\": \"a1\"}, null]"])
def test_malformed_values_are_corruption(raw):
    storage = CartStorage(MemoryKeyValueStore({"cart": raw}))
    with pytest.raises(StoreCorruptedError) as info:
        storage.load()
    assert info.value.raw == raw


def test_save_then_load_in_new_adapter():
    store = MemoryKeyValueStore()
    item = CartItem(id="a1", title="Red Bird", image="/img/red-bird.jpg", amount=Decimal("120.00"), currency="₪")
    CartStorage(store).save([item])

    stored = json.loads(store.get_item("cart"))
    assert stored == [{
        "id": "a1",
        "title": "Red Bird",
        "image": "/img/red-bird.jpg",
        "dimensions": "",
        "price": "₪120.00",
        "amount": "120.00",
        "currency": "₪",
        "quantity": 1,
    }]
    assert CartStorage(store).load() == [item]


def test_legacy_rows_with_display_price_only():
    raw = json.dumps([
        {"id": "a1", "title": "Red Bird", "price": "$50.00", "quantity": 1},
        {"id": "a2", "title": "Blue Fish", "price": "garbage", "quantity": "2"},
        {"id": "a3", "title": "Old Print", "price": "75"},
    ])
    items = CartStorage(MemoryKeyValueStore({"cart": raw})).load()

    assert items[0].amount == Decimal("50.00")
    assert items[0].currency == "$"
    assert items[1].amount is None
    assert items[1].price == "garbage"
    assert items[1].quantity == 2
    assert items[2].amount == Decimal("75.00")
    assert items[2].currency == ""


def test_write_failure_is_typed():
    class FullStore(MemoryKeyValueStore):
        def set_item(self, key, value):
            raise OSError("quota exceeded")

    with pytest.raises(StoreWriteError):
        CartStorage(FullStore()).save([])


def test_reset_writes_empty_array():
    store = MemoryKeyValueStore({"cart": "not-an-array"})
    CartStorage(store).reset()
    assert store.get_item("cart") == "[]"


@pytest.mark.parametrize("quantity,expected", [("1e400", 1), ("Infinity", 1), ("NaN", 1), ("1000000", 99), ("0", 1)])
def test_out_of_range_quantity_is_clamped_and_flagged(quantity, expected):
    raw = '[{"id": "a1", "title": "Red Bird", "price": "₪10.00", "quantity": %s}]' % quantity
    storage = CartStorage(MemoryKeyValueStore({"cart": raw}))
    items = storage.load()
    assert items[0].quantity == expected
    assert storage.repaired is True


def test_in_range_quantities_are_not_flagged():
    raw = json.dumps([{"id": "a1", "title": "Red Bird", "price": "₪10.00", "quantity": 2},
                      {"id": "a2", "title": "Blue Fish", "price": "₪5.00", "quantity": "3"}])
    storage = CartStorage(MemoryKeyValueStore({"cart": raw}))
    storage.load()
    assert storage.repaired is False


def test_max_quantity_is_configurable():
    raw = json.dumps([{"id": "a1", "title": "Red Bird", "quantity": 7}])
    assert CartStorage(MemoryKeyValueStore({"cart": raw}), max_quantity=5).load()[0].quantity == 5


def test_unbuildable_row_is_corruption(monkeypatch):
    def broken(cls, d, max_quantity=99):
        raise ArithmeticError("bad row")

    monkeypatch.setattr(CartItem, "from_dict", classmethod(broken))
    raw = json.dumps([{"id": "a1", "title": "Red Bird"}])
    with pytest.raises(StoreCorruptedError) as info:
        CartStorage(MemoryKeyValueStore({"cart": raw})).load()
    assert info.value.raw == raw
