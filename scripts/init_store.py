"""Creates the local store with the catalog settings blob and an empty cart."""
import json
import sys

from artcart.config import settings
from artcart.db.kv_store import FileKeyValueStore


currency = sys.argv[1] if len(sys.argv) > 1 else settings.DEFAULT_CURRENCY
store = FileKeyValueStore(settings.store_path)

store.set_item(settings.SETTINGS_KEY, json.dumps({"settings": {"currency": currency}}, ensure_ascii=False))
print(f'Wrote catalog settings (currency {currency}) to {settings.store_path}')

if store.get_item(settings.CART_KEY) is None:
    store.set_item(settings.CART_KEY, "[]")
    print('Created empty cart')
else:
    print('Cart already exists')
