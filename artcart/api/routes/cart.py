from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Body, Depends
from fastapi.responses import HTMLResponse

from artcart.api.deps import get_cart_manager
from artcart.api.schemas.cart import (
    ButtonStatesSchema,
    CartActionResult,
    EmptyCartSchema,
    NotificationSchema,
    QuantityUpdateSchema,
)
from artcart.services.cart_manager import CartManager
from artcart.services.notifications import Notification

router = APIRouter(prefix="/api/cart", tags=["cart"])

# Handlers are async so that every call into the manager runs on the event loop
# thread, one at a time.


def _result(manager: CartManager, ok: bool, previous: Optional[Notification]) -> CartActionResult:
    """`previous` is the latest notice before the call; only a newer one is echoed back."""
    latest = manager.notifier.latest()
    return CartActionResult(
        ok=ok,
        count=manager.badge_count,
        total=manager.calculate_total(),
        message=latest.message if latest is not None and latest is not previous else None,
    )


@router.get("", response_model=Dict[str, Any])
async def get_cart(manager: CartManager = Depends(get_cart_manager)):
    """
    Current cart as stored, re-read from the local store first.
    """
    manager.load_cart()
    return manager.summary()


@router.post("/items", response_model=CartActionResult)
async def add_item(payload: Dict[str, Any] = Body(...), manager: CartManager = Depends(get_cart_manager)):
    """
    Product-listing widgets post the artwork they show. The body is passed to the
    manager as-is; a payload missing id or title comes back with ok=false.
    """
    previous = manager.notifier.latest()
    return _result(manager, manager.add_to_cart(payload), previous)


@router.delete("/items/{item_id}", response_model=CartActionResult)
async def remove_item(item_id: str, manager: CartManager = Depends(get_cart_manager)):
    previous = manager.notifier.latest()
    return _result(manager, manager.remove_from_cart(item_id), previous)


@router.patch("/items/{item_id}", response_model=CartActionResult)
async def update_item_quantity(item_id: str, payload: QuantityUpdateSchema,
                               manager: CartManager = Depends(get_cart_manager)):
    previous = manager.notifier.latest()
    return _result(manager, manager.update_quantity(item_id, payload.quantity), previous)


@router.post("/open", response_class=HTMLResponse)
async def open_cart(manager: CartManager = Depends(get_cart_manager)):
    manager.open_cart()
    return HTMLResponse(getattr(manager.panel, "html", ""))


@router.post("/close", response_model=Dict[str, Any])
async def close_cart(manager: CartManager = Depends(get_cart_manager)):
    manager.close_cart()
    return {"state": manager.state.to_dict()}


@router.get("/panel", response_class=HTMLResponse)
async def cart_panel(manager: CartManager = Depends(get_cart_manager)):
    """
    Last rendered panel. Runs a render that the throttle deferred if it is due.
    """
    manager.scheduler.poll()
    html = getattr(manager.panel, "html", "")
    if not html:
        manager.render_cart_items()
        html = getattr(manager.panel, "html", "")
    return HTMLResponse(html)


@router.post("/empty", response_model=Dict[str, Any])
async def empty_cart(payload: EmptyCartSchema, manager: CartManager = Depends(get_cart_manager)):
    if not payload.confirm:
        return {"emptied": False, "confirmation_required": True}
    emptied = manager.empty_cart(confirmed=True)
    return {"emptied": emptied, "confirmation_required": False, "count": manager.badge_count}


@router.post("/checkout", response_model=CartActionResult)
async def checkout(manager: CartManager = Depends(get_cart_manager)):
    previous = manager.notifier.latest()
    return _result(manager, manager.checkout(), previous)


@router.post("/buttons", response_model=Dict[str, Any])
async def button_states(payload: ButtonStatesSchema, manager: CartManager = Depends(get_cart_manager)):
    manager.load_cart()
    return manager.button_states(payload.ids)


@router.get("/notifications", response_model=List[NotificationSchema])
async def active_notifications(manager: CartManager = Depends(get_cart_manager)):
    return [n.to_dict() for n in manager.notifier.active()]


@router.get("/metrics", response_model=Dict[str, Any])
async def performance_report(manager: CartManager = Depends(get_cart_manager)):
    return manager.performance_report()
