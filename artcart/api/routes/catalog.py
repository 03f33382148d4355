from typing import Any, Dict
from fastapi import APIRouter, Depends

from artcart.api.deps import get_cart_manager
from artcart.api.schemas.cart import CatalogSettingsSchema
from artcart.services.cart_manager import CartManager
from artcart.services.currency import CatalogSettings

router = APIRouter(prefix="/api/catalog", tags=["catalog"])


@router.put("/settings", response_model=Dict[str, Any])
async def publish_catalog_settings(payload: CatalogSettingsSchema,
                                   manager: CartManager = Depends(get_cart_manager)):
    """
    Called once the storefront has loaded its artwork data. The cart adopts the
    catalog currency and re-prefixes existing lines.
    """
    changed = manager.apply_catalog_settings(CatalogSettings(currency=payload.currency))
    return {"currency": manager.currency, "changed": changed, "items": [it.to_dict() for it in manager.items]}
