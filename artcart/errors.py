from typing import Optional


class CartError(Exception):
    """Base class for everything the cart engine raises internally."""


class StoreCorruptedError(CartError):
    """The persisted cart is present but is not a well-formed array of items."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class StoreWriteError(CartError):
    pass


class InvalidCartItem(CartError, ValueError):
    """
    Raised at the add-to-cart boundary when a caller passes a payload that
    does not validate. `errors` carries the pydantic error list when there is one.
    """

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = list(errors or [])
