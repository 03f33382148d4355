# artcart/services/cart_manager.py
"""
Cart state manager: owns the in-memory cart, keeps it in step with the local
store and exposes the operations storefront widgets call.

Every public operation is total: it returns a value and never raises. Internal
failures go to the `report(message, error)` hook. Mutations re-read the store
first so changes written by another context since the last load are picked
up; the write that follows replaces the stored cart wholesale (last writer
wins, concurrent edits from another context can be lost).

Usage:
    manager = create_cart_manager(settings)
    manager.init()
    manager.add_to_cart({"id": "a1", "title": "Red Bird", "price": "₪120"})
    manager.calculate_total()  # "120.00"
"""

import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from artcart.config import Settings
from artcart.core.scheduler import Defer, RenderScheduler
from artcart.core.state_machine import EngineState, EngineStateMachine, Listener
from artcart.db.kv_store import FileKeyValueStore, KeyValueStore
from artcart.errors import CartError, StoreCorruptedError, StoreWriteError
from artcart.models.cart import CartItem
from artcart.schemas.cart import CartItemIn
from artcart.services.currency import CatalogSettings, CurrencyResolver
from artcart.services.item_cache import ItemCache
from artcart.services.metrics import PerformanceLog
from artcart.services.notifications import ERROR, INFO, SUCCESS, ErrorReporter, NotificationCenter
from artcart.services.panel import CartLine, CartPanel, CartView, HtmlCartPanel
from artcart.services.storage import CartStorage
from artcart.utils.images import canonical_image_path
from artcart.utils.money import CENTS

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


class CartManager:
    def __init__(self, storage: CartStorage, resolver: CurrencyResolver,
                 cache: Optional[ItemCache] = None,
                 notifier: Optional[NotificationCenter] = None,
                 metrics: Optional[PerformanceLog] = None,
                 reporter: Optional[ErrorReporter] = None,
                 panel: Optional[CartPanel] = None,
                 machine: Optional[EngineStateMachine] = None,
                 throttle_seconds: float = 0.1,
                 clock: Callable[[], float] = time.monotonic,
                 defer: Optional[Defer] = None,
                 min_quantity: int = 1,
                 max_quantity: int = 99,
                 metrics_retention_seconds: float = 600.0):
        self.storage = storage
        self.resolver = resolver
        self.cache = cache or ItemCache(clock=clock)
        self.notifier = notifier or NotificationCenter()
        self.metrics = metrics or PerformanceLog()
        self.reporter = reporter or ErrorReporter(self.notifier, self.metrics)
        self.panel = panel
        self.machine = machine or EngineStateMachine()
        self.min_quantity = int(min_quantity)
        self.max_quantity = int(max_quantity)
        self.metrics_retention_seconds = float(metrics_retention_seconds)

        self.cart: List[CartItem] = []
        self.currency: str = resolver.default_symbol
        self.badge_count = 0
        self.is_initialized = False
        self._unsaved = False

        self.scheduler = RenderScheduler(
            render=self._render,
            should_render=lambda: self.state.is_open,
            throttle_seconds=throttle_seconds,
            clock=clock,
            defer=defer,
            on_error=self.report,
            on_timing=lambda ms: self.metrics.track("render", ms),
        )

    # --- plumbing ---

    @property
    def state(self) -> EngineState:
        return self.machine.state

    @property
    def items(self) -> List[CartItem]:
        return list(self.cart)

    def report(self, message: str, error: Optional[BaseException] = None) -> None:
        self.reporter.report(message, error)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register for {"old_state", "new_state"} events; returns an unsubscribe callable."""
        return self.machine.subscribe(listener)

    def _begin(self) -> None:
        self.machine.update(is_loading=True)

    def _finish(self, succeeded: bool) -> None:
        changes: Dict[str, Any] = {"is_loading": False}
        if succeeded:
            changes["last_updated"] = datetime.now(timezone.utc)
        self.machine.update(**changes)

    def _save(self, report_failure: bool = True) -> bool:
        started = time.perf_counter()
        try:
            self.storage.save(self.cart)
            self._unsaved = False
            return True
        except StoreWriteError as exc:
            # the in-memory cart stays the working copy until a write goes through
            self._unsaved = True
            if report_failure:
                self.report("Error saving cart to storage", exc)
            else:
                logger.warning("Cart still not persisted: %s", exc)
            return False
        finally:
            self.metrics.track("storage", _elapsed_ms(started))

    def _reload(self) -> None:
        """Re-read the store, recover from corruption, detect and apply the currency."""
        if self._unsaved and not self._save(report_failure=False):
            self._apply_currency()
            return
        try:
            items = self.storage.load()
        except StoreCorruptedError as exc:
            self.report("Cart data in storage was corrupted; resetting cart", exc)
            self.cart = []
            self._save()
            items = []
        self.cart = items
        if self.storage.repaired:
            self._save()
        self._apply_currency()

    def _apply_currency(self) -> None:
        self.currency = self.resolver.detect(self.cart)
        self.cart, changed = self.resolver.normalize(self.cart, self.currency)
        if changed:
            self._save()

    def _update_badge(self) -> None:
        self.badge_count = self.item_count()

    def _build_item(self, data: Dict[str, Any]) -> CartItem:
        return CartItem(
            id=str(data["id"]),
            title=str(data["title"]),
            image=canonical_image_path(data.get("image")),
            dimensions=str(data.get("dimensions") or ""),
            quantity=1,
            **self.resolver.price_fields(data.get("price"), self.currency),
        )

    def _render(self) -> CartView:
        self._reload()
        view = self.build_view()
        if self.panel is not None:
            self.panel.render(view)
        return view

    def _reset(self) -> None:
        self.cart = []
        self._save()
        self._update_badge()
        if self.state.is_open:
            self.render_cart_items()

    # --- lifecycle ---

    def init(self) -> bool:
        if self.is_initialized:
            logger.warning("Cart manager already initialized")
            return False
        try:
            self._reload()
            self._update_badge()
        except Exception as exc:
            self.report("Failed to initialize cart", exc)
            return False
        self.is_initialized = True
        logger.info("Cart manager initialized: %d item(s), currency %s", len(self.cart), self.currency)
        return True

    def load_cart(self) -> List[CartItem]:
        try:
            self._reload()
            self._update_badge()
        except Exception as exc:
            self.report("Error loading cart from storage", exc)
        return self.items

    # --- mutations ---

    def add_to_cart(self, payload: Union[CartItemIn, Dict[str, Any], None]) -> bool:
        """
        Add a one-of-a-kind item if it is not in the cart yet. Returns False for
        invalid payloads and for items already present (with an "already in
        your cart" notice).
        """
        started = time.perf_counter()
        try:
            item_in = CartItemIn.parse(payload)
            self._begin()
        except CartError as exc:
            self.report("Error adding item to cart", exc)
            return False

        succeeded = False
        try:
            supplied = item_in.model_dump(exclude_none=True)
            cached = self.cache.get(item_in.id)
            data = {**cached, **supplied} if cached else supplied

            self._reload()
            item = self._build_item(data)
            self.cache.put(item.id, {
                "title": item.title,
                "image": item.image,
                "dimensions": item.dimensions,
                "price": item.price,
            })

            if self.is_in_cart(item.id):
                self.notifier.notify(f"{item.title} is already in your cart", INFO)
                return False

            self.cart.append(item)
            self._save()
            self.cart, changed = self.resolver.normalize(self.cart, self.currency)
            if changed:
                self._save()
            self._update_badge()
            self.scheduler.request_render()
            self.notifier.notify(f"{item.title} added to cart", SUCCESS)
            self.metrics.track("add_to_cart", _elapsed_ms(started))
            succeeded = True
            return True
        except Exception as exc:
            self.report("Error adding item to cart", exc)
            return False
        finally:
            self._finish(succeeded)

    def remove_from_cart(self, item_id: str) -> bool:
        """Drop the line for `item_id`. Removing an absent id changes nothing and writes nothing."""
        try:
            self._begin()
        except CartError as exc:
            self.report("Error removing item from cart", exc)
            return False

        succeeded = False
        try:
            self._reload()
            remaining = [it for it in self.cart if it.id != str(item_id)]
            if len(remaining) == len(self.cart):
                return False
            self.cart = remaining
            self._save()
            self._update_badge()
            self.scheduler.request_render()
            self.notifier.notify("Item removed from cart", INFO)
            succeeded = True
            return True
        except Exception as exc:
            self.report("Error removing item from cart", exc)
            return False
        finally:
            self._finish(succeeded)

    def update_quantity(self, item_id: str, quantity: int) -> bool:
        """Set a line's quantity, clamped to [min_quantity, max_quantity]; zero or less removes it."""
        try:
            quantity = int(quantity)
            self._begin()
        except (CartError, TypeError, ValueError) as exc:
            self.report("Error updating quantity", exc)
            return False

        succeeded = False
        try:
            self._reload()
            idx = next((i for i, it in enumerate(self.cart) if it.id == str(item_id)), None)
            if idx is None:
                return False
            if quantity <= 0:
                del self.cart[idx]
            else:
                clamped = max(self.min_quantity, min(self.max_quantity, quantity))
                self.cart[idx] = replace(self.cart[idx], quantity=clamped)
            self._save()
            self._update_badge()
            self.scheduler.request_render()
            succeeded = True
            return True
        except Exception as exc:
            self.report("Error updating quantity", exc)
            return False
        finally:
            self._finish(succeeded)

    def empty_cart(self, confirmed: bool = False) -> bool:
        """Destructive: only runs when the user confirmed it."""
        if not confirmed:
            logger.info("Empty cart requested without confirmation; nothing changed")
            return False
        try:
            self._begin()
        except CartError as exc:
            self.report("Error emptying cart", exc)
            return False

        succeeded = False
        try:
            self._reset()
            self.notifier.notify("Cart emptied successfully", INFO)
            succeeded = True
            return True
        except Exception as exc:
            self.report("Error emptying cart", exc)
            return False
        finally:
            self._finish(succeeded)

    def reset_cart(self) -> None:
        try:
            self._reset()
        except Exception as exc:
            self.report("Error resetting cart", exc)

    def checkout(self) -> bool:
        # payment is not handled here; checking out just clears the cart
        try:
            self._begin()
        except CartError as exc:
            self.report("Error during checkout", exc)
            return False

        succeeded = False
        try:
            self._reload()
            if not self.cart:
                self.notifier.notify("Your cart is empty", ERROR)
                return False
            self.notifier.notify("Checkout functionality would be implemented here", INFO)
            self._reset()
            self.machine.update(is_open=False)
            self.notifier.notify("Thank you for your order!", SUCCESS)
            succeeded = True
            return True
        except Exception as exc:
            self.report("Error during checkout", exc)
            return False
        finally:
            self._finish(succeeded)

    def apply_catalog_settings(self, catalog: Union[CatalogSettings, Dict[str, Any]]) -> bool:
        """
        Adopt catalog settings published after the cart was populated. Returns
        True when the active currency changed (lines are re-prefixed and saved).
        """
        try:
            if not isinstance(catalog, CatalogSettings):
                catalog = CatalogSettings.from_dict(catalog)
            self.resolver.catalog_settings = catalog
            previous = self.currency
            self._reload()
            if self.currency == previous:
                return False
            self._update_badge()
            if self.state.is_open:
                self.render_cart_items()
            logger.info("Cart currency changed from %s to %s", previous, self.currency)
            return True
        except Exception as exc:
            self.report("Error applying catalog settings", exc)
            return False

    # --- queries ---

    def calculate_total(self) -> str:
        try:
            total = sum((it.line_total() for it in self.cart), Decimal("0"))
            return f"{total.quantize(CENTS):.2f}"
        except Exception as exc:
            self.report("Error calculating total", exc)
            return "0.00"

    def item_count(self) -> int:
        return sum(int(it.quantity) for it in self.cart)

    def is_in_cart(self, item_id: str) -> bool:
        return any(it.id == str(item_id) for it in self.cart)

    def button_states(self, item_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """Label/disabled state for each listing's add button."""
        out: Dict[str, Dict[str, Any]] = {}
        for item_id in item_ids:
            in_cart = self.is_in_cart(item_id)
            out[str(item_id)] = {
                "label": "Already in Cart" if in_cart else "Add to Cart",
                "disabled": in_cart,
                "in_cart": in_cart,
            }
        return out

    def build_view(self) -> CartView:
        return CartView(
            lines=[CartLine.from_item(it, self.currency) for it in self.cart],
            total=self.calculate_total(),
            currency=self.currency,
            count=self.item_count(),
        )

    def summary(self) -> Dict[str, Any]:
        return {
            "items": [it.to_dict() for it in self.cart],
            "total": self.calculate_total(),
            "currency": self.currency,
            "count": self.badge_count,
            "state": self.state.to_dict(),
        }

    # --- display ---

    def render_cart_items(self) -> Optional[CartView]:
        """Render the panel now, whatever the throttle says. UI chrome calls this when opening the cart."""
        try:
            return self._render()
        except Exception as exc:
            self.report("Error rendering cart items", exc)
            return None

    def request_render(self) -> None:
        self.scheduler.request_render()

    def open_cart(self) -> Optional[CartView]:
        try:
            self.machine.update(is_open=True)
        except Exception as exc:
            self.report("Error opening cart", exc)
            return None
        return self.render_cart_items()

    def close_cart(self) -> None:
        try:
            self.machine.update(is_open=False)
        except Exception as exc:
            self.report("Error closing cart", exc)

    # --- housekeeping ---

    def cleanup(self) -> None:
        logger.info("Cleaning up cart manager")
        self.cache.clear()
        self.metrics.prune(self.metrics_retention_seconds)
        self.scheduler.clear()

    def performance_report(self) -> Dict[str, Any]:
        return {
            "operations": self.metrics.report(),
            "errors": len(self.metrics.errors),
            "cache_size": len(self.cache),
            "cart_size": len(self.cart),
            "state": self.state.to_dict(),
        }


def create_cart_manager(settings: Settings,
                        store: Optional[KeyValueStore] = None,
                        catalog_settings: Optional[CatalogSettings] = None,
                        panel: Optional[CartPanel] = None,
                        clock: Callable[[], float] = time.monotonic,
                        defer: Optional[Defer] = None) -> CartManager:
    """Build a manager and its collaborators from settings. The caller owns the instance."""
    if store is None:
        store = FileKeyValueStore(settings.store_path)
    notifier = NotificationCenter(ttl_seconds=settings.NOTIFICATION_TTL_SECONDS)
    metrics = PerformanceLog(window=settings.METRICS_WINDOW)
    return CartManager(
        storage=CartStorage(store, key=settings.CART_KEY, max_quantity=settings.MAX_QUANTITY),
        resolver=CurrencyResolver(store, settings.SETTINGS_KEY, settings.DEFAULT_CURRENCY, catalog_settings),
        cache=ItemCache(ttl_seconds=settings.CACHE_TTL_SECONDS, clock=clock),
        notifier=notifier,
        metrics=metrics,
        reporter=ErrorReporter(notifier, metrics),
        panel=panel if panel is not None else HtmlCartPanel(),
        throttle_seconds=settings.render_throttle_seconds,
        clock=clock,
        defer=defer,
        min_quantity=settings.MIN_QUANTITY,
        max_quantity=settings.MAX_QUANTITY,
        metrics_retention_seconds=settings.METRICS_RETENTION_SECONDS,
    )
