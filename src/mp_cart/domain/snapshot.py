"""Cart snapshot builder: mutable cart lines -> immutable line items.

Pure transform. Prices are copied from the product rows passed in, so later
price changes never reach an existing order. Inventory is not touched here.
"""

from collections.abc import Mapping, Sequence

from src.mp_cart.domain.models import CartLine, CartSnapshot, LineItem, Product
from src.mp_common.errors import EmptyCartError, ProductUnavailableError, ValidationError


def _merge_quantities(lines: Sequence[CartLine]) -> dict[str, int]:
    """Collapse duplicate lines for one product, keeping first-seen order."""
    merged: dict[str, int] = {}
    for line in lines:
        if line.quantity <= 0:
            raise ValidationError(
                f"quantity for product {line.product_id} must be > 0, got {line.quantity}"
            )
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
    return merged


def build_snapshot(
    lines: Sequence[CartLine], products: Mapping[str, Product]
) -> CartSnapshot:
    """Build the order line items for a checkout.

    Raises:
        EmptyCartError: the cart has no lines.
        ProductUnavailableError: a product no longer exists or is disabled.
        ValidationError: non-positive quantity, or products from more than one shop.
    """
    if not lines:
        raise EmptyCartError()

    quantities = _merge_quantities(lines)

    items: list[LineItem] = []
    shop_ids: set[str] = set()
    for product_id, quantity in quantities.items():
        product = products.get(product_id)
        if product is None or not product.is_active:
            raise ProductUnavailableError(product_id)
        shop_ids.add(product.shop_id)
        items.append(
            LineItem(
                product_id=product.id,
                name=product.name,
                unit=product.unit,
                quantity=quantity,
                unit_price=product.price,
                tax_rate_bps=product.tax_rate_bps,
            )
        )

    if len(shop_ids) > 1:
        raise ValidationError("an order may only contain products from one shop")

    return CartSnapshot(shop_id=shop_ids.pop(), items=tuple(items))
