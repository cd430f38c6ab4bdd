from collections.abc import Iterable

from src.mp_cart.domain.models import LineItem, PriceBreakdown
from src.mp_common.enums import DeliveryType


def shipping_fee(delivery_type: DeliveryType, delivery_fee: int) -> int:
    """Flat delivery fee; pickup orders ship for free."""
    return delivery_fee if delivery_type is DeliveryType.DELIVERY else 0


def compute_breakdown(items: Iterable[LineItem], shipping: int) -> PriceBreakdown:
    """Sum item totals and per-line tax (each line rounded independently)."""
    subtotal = 0
    tax = 0
    for item in items:
        subtotal += item.item_total
        tax += item.tax_amount
    return PriceBreakdown.of(subtotal=subtotal, tax=tax, shipping=shipping)
