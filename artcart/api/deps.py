# artcart/api/deps.py
from fastapi import HTTPException, Request, status

from artcart.services.cart_manager import CartManager


def get_cart_manager(request: Request) -> CartManager:
    """
    Dependency that returns the cart manager owned by the application
    (built in the lifespan handler of artcart.main).
    Usage:
        manager: CartManager = Depends(get_cart_manager)
    """
    manager = getattr(request.app.state, "cart_manager", None)
    if manager is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Cart is not initialized")
    return manager
