import time
from typing import Any, Callable, Dict, Optional, Tuple


class ItemCache:
    """
    Short-lived memory of the last processed metadata per item id. Entries
    expire `ttl_seconds` after insertion and are evicted when looked up.
    Never consulted to decide whether an item is in the cart.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, Tuple[Dict[str, Any], float]] = {}

    @staticmethod
    def _key(item_id: str) -> str:
        return f"item_{item_id}"

    def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        key = self._key(item_id)
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return dict(value)

    def put(self, item_id: str, value: Dict[str, Any]) -> None:
        self._entries[self._key(item_id)] = (dict(value), self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
