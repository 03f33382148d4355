# artcart/services/storage.py
"""
Persistent store adapter: the whole cart lives as one JSON array under a single
key of the local key-value store. It is read fully and written fully on every
call; there is no partial update and no concurrency token.
"""

import json
import logging
from typing import Any, Iterable, List

from artcart.db.kv_store import KeyValueStore
from artcart.errors import StoreCorruptedError, StoreWriteError
from artcart.models.cart import MAX_QUANTITY, CartItem

logger = logging.getLogger(__name__)


class CartStorage:
    def __init__(self, store: KeyValueStore, key: str = "cart", max_quantity: int = MAX_QUANTITY):
        self.store = store
        self.key = key
        self.max_quantity = int(max_quantity)
        # set by load() when a row was read back differently than it is stored
        self.repaired = False

    def load(self) -> List[CartItem]:
        """
        Return the persisted cart. A missing key is an empty cart; anything that
        is not a JSON array of objects raises StoreCorruptedError. Out-of-range
        quantities are clamped and flag the cart as `repaired`.
        """
        self.repaired = False
        raw = self.store.get_item(self.key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise StoreCorruptedError("Cart data is not valid JSON", raw=raw) from exc
        if not isinstance(data, list):
            raise StoreCorruptedError("Invalid cart data structure: expected a list, got %s" % type(data).__name__,
                                      raw=raw)
        items: List[CartItem] = []
        for row in data:
            if not isinstance(row, dict):
                raise StoreCorruptedError("Invalid cart entry: %r" % (row,), raw=raw)
            try:
                item = CartItem.from_dict(row, max_quantity=self.max_quantity)
            except Exception as exc:
                raise StoreCorruptedError("Invalid cart entry: %r" % (row,), raw=raw) from exc
            if _quantity_changed(row.get("quantity"), item.quantity):
                logger.warning("Repaired quantity %r of cart entry %r", row.get("quantity"), item.id)
                self.repaired = True
            items.append(item)
        return items

    @staticmethod
    def dumps(items: Iterable[CartItem]) -> str:
        return json.dumps([it.to_dict() for it in items], ensure_ascii=False)

    def save(self, items: Iterable[CartItem]) -> None:
        payload = self.dumps(items)
        try:
            self.store.set_item(self.key, payload)
        except OSError as exc:
            # quota exceeded, read-only disk, lock timeout...
            raise StoreWriteError(f"Could not write cart under key {self.key!r}: {exc}") from exc
        logger.debug("Saved cart (%d bytes) under %r", len(payload), self.key)

    def reset(self) -> None:
        self.save([])


def _quantity_changed(stored: Any, loaded: int) -> bool:
    if isinstance(stored, bool) or not isinstance(stored, (int, float)):
        return False
    return stored != loaded
