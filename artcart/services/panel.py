# artcart/services/panel.py
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from artcart.models.cart import CartItem

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
PANEL_TEMPLATE = "cart_panel.html"


@dataclass
class CartLine:
    id: str
    title: str
    image: str
    dimensions: str
    price: str
    quantity: int

    @classmethod
    def from_item(cls, item: CartItem, currency: str) -> "CartLine":
        return cls(
            id=item.id,
            title=item.title,
            image=item.image,
            dimensions=item.dimensions,
            price=item.price or f"{currency}0.00",
            quantity=int(item.quantity),
        )


@dataclass
class CartView:
    """Everything the cart panel shows; display strings are produced here, not stored."""
    lines: List[CartLine] = field(default_factory=list)
    total: str = "0.00"
    currency: str = ""
    count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def total_display(self) -> str:
        return f"{self.currency}{self.total}"

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["is_empty"] = self.is_empty
        out["total_display"] = self.total_display
        return out


class CartPanel:
    """Display surface the engine renders into."""

    def render(self, view: CartView) -> None:
        raise NotImplementedError


class HtmlCartPanel(CartPanel):
    """Renders the cart panel fragment with Jinja2 and keeps the last output."""

    def __init__(self, env: Optional[Environment] = None):
        self.env = env or Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
        )
        self.html: str = ""
        self.last_view: Optional[CartView] = None

    def render(self, view: CartView) -> None:
        template = self.env.get_template(PANEL_TEMPLATE)
        self.html = template.render(view=view)
        self.last_view = view
