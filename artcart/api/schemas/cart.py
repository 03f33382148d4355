from typing import List, Optional
from pydantic import BaseModel, Field


class QuantityUpdateSchema(BaseModel):
    quantity: int


class EmptyCartSchema(BaseModel):
    confirm: bool = False


class CatalogSettingsSchema(BaseModel):
    currency: str = Field(min_length=1)


class ButtonStatesSchema(BaseModel):
    ids: List[str] = []


class NotificationSchema(BaseModel):
    message: str
    level: str
    created_at: float
    expires_at: float


class CartActionResult(BaseModel):
    ok: bool
    count: int
    total: str
    message: Optional[str] = None
