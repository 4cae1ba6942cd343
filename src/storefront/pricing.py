"""Order pricing.

All arithmetic is done on Decimal at full precision. Rounding to cents only
happens in display_amount(), never before a total is stored.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

FREE_SHIPPING_THRESHOLD = Decimal("100")
FLAT_SHIPPING = Decimal("10")
TAX_RATE = Decimal("0.08")

_CENTS = Decimal("0.01")
_HUNDRED = Decimal("100")


def _as_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def effective_unit_price(
    price: Any, on_sale: bool = False, sale_percentage: Any = None
) -> Decimal:
    """Unit price after the sale discount, if the product is on sale."""
    base = _as_decimal(price)
    if on_sale and sale_percentage:
        return base * (1 - _as_decimal(sale_percentage) / _HUNDRED)
    return base


@dataclass(frozen=True)
class PriceSummary:
    items_price: Decimal
    shipping_price: Decimal
    tax_price: Decimal
    total_price: Decimal

    def to_display(self) -> dict[str, str]:
        return {
            "itemsPrice": str(display_amount(self.items_price)),
            "shippingPrice": str(display_amount(self.shipping_price)),
            "taxPrice": str(display_amount(self.tax_price)),
            "totalPrice": str(display_amount(self.total_price)),
        }


def items_subtotal(lines: Iterable[tuple[Any, int]]) -> Decimal:
    """Sum of unit price * quantity over (unit_price, quantity) pairs."""
    total = Decimal("0")
    for unit_price, quantity in lines:
        total += _as_decimal(unit_price) * quantity
    return total


def shipping_for(items_price: Decimal) -> Decimal:
    # Free shipping strictly above the threshold
    return Decimal("0") if items_price > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING


def tax_for(items_price: Decimal) -> Decimal:
    return items_price * TAX_RATE


def summarize(items_price: Any) -> PriceSummary:
    """Derive shipping, tax and grand total from an items subtotal."""
    items_price = _as_decimal(items_price)
    shipping = shipping_for(items_price)
    tax = tax_for(items_price)
    return PriceSummary(
        items_price=items_price,
        shipping_price=shipping,
        tax_price=tax,
        total_price=items_price + shipping + tax,
    )


def calculate_totals(lines: Iterable[tuple[Any, int]]) -> PriceSummary:
    """
    Price a sequence of (effective unit price, quantity) lines.

    An empty sequence still carries flat shipping; callers reject empty
    orders before pricing them.
    """
    return summarize(items_subtotal(lines))


def display_amount(value: Any) -> Decimal:
    """Round an amount to cents for presentation."""
    return _as_decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)
