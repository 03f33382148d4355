# artcart/models/cart.py
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Any, Optional

from artcart.utils.money import extract_symbol, format_price, parse_amount

MAX_QUANTITY = 99


@dataclass
class CartItem:
    """
    One line in the cart. The price is kept as an amount plus a currency symbol;
    the "₪120.00" display string is derived and only written out for readers of
    the stored JSON. `raw_price` holds whatever text a line came with when no
    amount could be read from it, so it survives a round trip untouched.
    """
    id: str
    title: str = ""
    image: str = ""
    dimensions: str = ""
    amount: Optional[Decimal] = None
    currency: str = ""
    quantity: int = 1
    raw_price: str = ""

    @property
    def price(self) -> str:
        if self.amount is None:
            return self.raw_price
        return format_price(self.amount, self.currency)

    @property
    def has_amount(self) -> bool:
        return self.amount is not None

    def line_total(self) -> Decimal:
        if self.amount is None:
            return Decimal("0")
        return self.amount * int(self.quantity)

    @classmethod
    def from_dict(cls, d: Dict[str, Any], max_quantity: int = MAX_QUANTITY) -> "CartItem":
        if not isinstance(d, dict):
            raise ValueError("Cannot construct CartItem from %r" % type(d).__name__)

        price = d.get("price")
        amount = parse_amount(d.get("amount"))
        currency = d.get("currency") or ""
        if amount is None:
            # legacy rows only carry the display string
            amount = parse_amount(price)
            if amount is not None:
                currency = extract_symbol(price) or ""
        elif not currency:
            currency = extract_symbol(price) or ""

        try:
            quantity = int(float(d.get("quantity") or 1))
        except (TypeError, ValueError, OverflowError):
            # non-numeric, NaN or infinite
            quantity = 1

        return cls(
            id=str(d.get("id") or ""),
            title=str(d.get("title") or ""),
            image=str(d.get("image") or ""),
            dimensions=str(d.get("dimensions") or ""),
            amount=amount,
            currency=str(currency),
            quantity=max(1, min(int(max_quantity), quantity)),
            raw_price="" if amount is not None or price is None else str(price),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "image": self.image,
            "dimensions": self.dimensions,
            "price": self.price,
            "amount": None if self.amount is None else str(self.amount),
            "currency": self.currency,
            "quantity": int(self.quantity),
        }
