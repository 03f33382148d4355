# artcart/services/currency.py
"""
Currency resolver for the cart.

The active symbol comes from the first source that has one:
  1. the catalog settings the host loaded in this process,
  2. the settings blob persisted under the settings key,
  3. the symbol already embedded in the first cart line,
  4. the configured default.

Normalization rewrites every line whose symbol differs (or is missing) to the
active one; the amount itself never changes.
"""

import json
import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from artcart.db.kv_store import KeyValueStore
from artcart.errors import StoreCorruptedError
from artcart.models.cart import CartItem
from artcart.utils.money import extract_symbol, parse_amount

logger = logging.getLogger(__name__)


@dataclass
class CatalogSettings:
    """Catalog-wide settings published by the storefront once artwork data has loaded."""
    currency: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "CatalogSettings":
        return cls(currency=_currency_from_blob(d))


def _currency_from_blob(d: Any) -> Optional[str]:
    # accepts {"currency": "₪"} as well as the catalog payload {"settings": {"currency": "₪"}}
    if not isinstance(d, dict):
        return None
    nested = d.get("settings")
    if isinstance(nested, dict) and nested.get("currency"):
        return str(nested["currency"]).strip() or None
    if d.get("currency"):
        return str(d["currency"]).strip() or None
    return None


class CurrencyResolver:
    def __init__(self, store: KeyValueStore, settings_key: str, default_symbol: str,
                 catalog_settings: Optional[CatalogSettings] = None):
        self.store = store
        self.settings_key = settings_key
        self.default_symbol = default_symbol
        self.catalog_settings = catalog_settings

    def _from_catalog(self) -> Optional[str]:
        if self.catalog_settings is None:
            return None
        return (self.catalog_settings.currency or "").strip() or None

    def _from_persisted(self) -> Optional[str]:
        try:
            raw = self.store.get_item(self.settings_key)
        except StoreCorruptedError as exc:
            logger.warning("Could not read catalog settings: %s", exc)
            return None
        if not raw:
            return None
        try:
            return _currency_from_blob(json.loads(raw))
        except ValueError:
            logger.warning("Ignoring unreadable catalog settings under %r", self.settings_key)
            return None

    @staticmethod
    def _from_items(items: Sequence[CartItem]) -> Optional[str]:
        if not items:
            return None
        first = items[0]
        if first.currency:
            return first.currency
        return extract_symbol(first.raw_price)

    def detect(self, items: Sequence[CartItem] = ()) -> str:
        return (self._from_catalog()
                or self._from_persisted()
                or self._from_items(items)
                or self.default_symbol)

    def normalize(self, items: Sequence[CartItem], symbol: str) -> Tuple[List[CartItem], bool]:
        """
        Return (items, changed). Lines whose amount is unknown are kept as they
        are rather than rewritten with a made-up number.
        """
        changed = False
        out: List[CartItem] = []
        for item in items:
            if item.amount is not None and item.currency != symbol:
                item = replace(item, currency=symbol)
                changed = True
            out.append(item)
        return out, changed

    @staticmethod
    def price_fields(value: Any, symbol: str) -> Dict[str, Any]:
        """Split a caller-supplied price into the amount/currency/raw_price fields of a CartItem."""
        amount: Optional[Decimal] = parse_amount(value)
        if amount is None:
            return {"amount": None, "currency": "", "raw_price": "" if value is None else str(value)}
        return {"amount": amount, "currency": symbol, "raw_price": ""}
