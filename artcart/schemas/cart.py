from typing import Any, Mapping, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from artcart.errors import InvalidCartItem


class CartItemIn(BaseModel):
    """
    What a product widget hands to `CartManager.add_to_cart`. Only `id` and
    `title` are required; repeat interactions may send partial data and the
    item cache fills in the rest.
    """
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    price: Optional[Union[str, int, float]] = None
    image: Optional[str] = None
    dimensions: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, v: Any) -> Any:
        # listing widgets often render numeric ids
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @classmethod
    def parse(cls, payload: Any) -> "CartItemIn":
        """Validate a raw payload, raising InvalidCartItem instead of pydantic's error."""
        if isinstance(payload, cls):
            return payload
        if not isinstance(payload, Mapping):
            raise InvalidCartItem("Invalid item data: expected an object, got %s" % type(payload).__name__)
        try:
            return cls.model_validate(dict(payload))
        except ValidationError as exc:
            raise InvalidCartItem("Invalid item data", errors=exc.errors()) from exc
