"""Cart & line-item domain models: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.mp_common.money import calculate_tax


@dataclass
class Product:
    id: str
    shop_id: str
    name: str
    unit: str
    price: int          # minor units, current list price
    tax_rate_bps: int   # 1800 = 18%
    stock: int
    is_active: bool = True


@dataclass
class CartLine:
    user_id: str
    product_id: str
    quantity: int
    added_at: datetime | None = None


@dataclass(frozen=True)
class LineItem:
    """Immutable order line. unit_price is copied from the product at order time."""

    product_id: str
    name: str
    unit: str
    quantity: int
    unit_price: int
    tax_rate_bps: int = 0

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"quantity must be > 0, got {self.quantity}")
        if self.unit_price < 0:
            raise ValueError(f"unit_price must be >= 0, got {self.unit_price}")

    @property
    def item_total(self) -> int:
        return self.unit_price * self.quantity

    @property
    def tax_amount(self) -> int:
        return calculate_tax(self.item_total, self.tax_rate_bps)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit": self.unit,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "tax_rate_bps": self.tax_rate_bps,
            "item_total": self.item_total,
            "tax_amount": self.tax_amount,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LineItem":
        return cls(
            product_id=data["product_id"],
            name=data["name"],
            unit=data["unit"],
            quantity=int(data["quantity"]),
            unit_price=int(data["unit_price"]),
            tax_rate_bps=int(data.get("tax_rate_bps", 0)),
        )


@dataclass(frozen=True)
class PriceBreakdown:
    """Order price breakdown in minor units. total == subtotal + tax + shipping, always."""

    subtotal: int
    tax: int
    shipping: int
    total: int

    def __post_init__(self) -> None:
        for name in ("subtotal", "tax", "shipping"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.total != self.subtotal + self.tax + self.shipping:
            raise ValueError(
                f"total {self.total} != subtotal {self.subtotal} + tax {self.tax}"
                f" + shipping {self.shipping}"
            )

    @classmethod
    def of(cls, subtotal: int, tax: int, shipping: int) -> "PriceBreakdown":
        return cls(subtotal=subtotal, tax=tax, shipping=shipping, total=subtotal + tax + shipping)


@dataclass(frozen=True)
class CartSnapshot:
    shop_id: str
    items: tuple[LineItem, ...] = field(default_factory=tuple)

    @property
    def product_ids(self) -> list[str]:
        return [item.product_id for item in self.items]
