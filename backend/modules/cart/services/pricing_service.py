# backend/modules/cart/services/pricing_service.py

"""
Cart pricing engine.

Derives subtotal, delivery fee, discount, tax and grand total from a list of
line items. All arithmetic is done in ``Decimal``; amounts are quantized to the
currency's minor unit exactly once, when the summary is built, so the
displayed total always equals the displayed parts.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence, Union
import logging

logger = logging.getLogger(__name__)

MINOR_UNIT = Decimal("0.01")
ZERO = Decimal("0")

CURRENCY_SYMBOLS = {
    "BDT": "৳",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
}


@dataclass(frozen=True)
class CatalogRef:
    """Reference to a catalog entry by item type and id"""

    item_type: str  # "menu_item" or legacy "dish"
    item_id: str


@dataclass(frozen=True)
class LineItem:
    """A cart entry with its price already resolved from the catalog"""

    id: str
    catalog_ref: CatalogRef
    quantity: int
    unit_price: Decimal
    currency: str = "BDT"
    name: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        # Unrounded on purpose; rounding happens once in compute_summary
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class AppliedDiscount:
    """A promotional or loyalty discount applied to the cart"""

    value: Decimal
    code: Optional[str] = None
    label: Optional[str] = None


@dataclass(frozen=True)
class PricingConfig:
    """Store pricing rules for one session"""

    free_delivery_threshold: Decimal = Decimal("500")
    delivery_fee: Decimal = Decimal("50")
    currency: str = "BDT"
    charge_delivery_on_empty_cart: bool = False
    tax_rate: Decimal = ZERO

    @classmethod
    def from_settings(cls, settings=None) -> "PricingConfig":
        if settings is None:
            from core.config import settings
        return cls(
            free_delivery_threshold=Decimal(settings.CART_FREE_DELIVERY_THRESHOLD),
            delivery_fee=Decimal(settings.CART_DELIVERY_FEE),
            currency=settings.CART_CURRENCY,
            charge_delivery_on_empty_cart=settings.CART_CHARGE_DELIVERY_ON_EMPTY,
            tax_rate=Decimal(settings.CART_TAX_RATE),
        )


@dataclass(frozen=True)
class CartSummary:
    """Display-ready cart totals"""

    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal
    total: Decimal
    currency: str
    tax: Decimal = ZERO
    item_count: int = 0
    total_quantity: int = 0
    discount_code: Optional[str] = field(default=None)

    @property
    def is_free_delivery(self) -> bool:
        return self.delivery_fee == ZERO


def round_currency(value: Decimal) -> Decimal:
    """Quantize an amount to the currency's minor unit (half-up)."""
    return Decimal(value).quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def calculate_subtotal(line_items: Iterable[LineItem]) -> Decimal:
    """Exact, unrounded sum of unit price times quantity."""
    return sum((item.line_total for item in line_items), ZERO)


def calculate_delivery_fee(subtotal: Decimal, config: PricingConfig, is_empty: bool) -> Decimal:
    if is_empty and not config.charge_delivery_on_empty_cart:
        return ZERO
    if subtotal > config.free_delivery_threshold:
        return ZERO
    return Decimal(config.delivery_fee)


def compute_summary(
    line_items: Sequence[LineItem],
    config: PricingConfig,
    applied_discount: Optional[AppliedDiscount] = None,
) -> CartSummary:
    """
    Compute the cart summary for already-validated line items.

    Args:
        line_items: Resolved line items (quantity >= 1, unit_price >= 0)
        config: Store pricing rules
        applied_discount: Optional discount; clamped so it never exceeds subtotal

    Returns:
        CartSummary with every amount rounded to 2 decimal places, where
        total == subtotal - discount + tax + delivery_fee.
    """
    is_empty = len(line_items) == 0
    subtotal = calculate_subtotal(line_items)

    discount = ZERO
    if applied_discount is not None and not is_empty:
        discount = min(round_currency(applied_discount.value), subtotal)

    tax = (subtotal - discount) * Decimal(config.tax_rate)
    delivery_fee = calculate_delivery_fee(subtotal, config, is_empty)

    # The total is rounded once from exact terms. Tax is reported as the
    # remainder so that subtotal - discount + tax + delivery == total holds
    # on the displayed values as well.
    total_r = round_currency(subtotal - discount + tax + delivery_fee)
    subtotal_r = round_currency(subtotal)
    discount_r = round_currency(discount)
    delivery_r = round_currency(delivery_fee)
    tax_r = total_r - subtotal_r + discount_r - delivery_r

    return CartSummary(
        subtotal=subtotal_r,
        delivery_fee=delivery_r,
        discount=discount_r,
        total=total_r,
        currency=config.currency,
        tax=tax_r,
        item_count=len(line_items),
        total_quantity=sum(item.quantity for item in line_items),
        discount_code=applied_discount.code if applied_discount and discount else None,
    )


def parse_price(price: Union[Decimal, int, float, str, None]) -> Decimal:
    """
    Parse a price coming from the database or a client payload.

    Numbers and numeric strings become Decimal; anything else becomes 0.
    Floats go through ``str`` so their shortest repr is used.
    """
    if price is None or isinstance(price, bool):
        return ZERO
    if isinstance(price, Decimal):
        return price if price.is_finite() else ZERO
    try:
        value = Decimal(str(price).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    return value if value.is_finite() else ZERO


def get_currency_symbol(currency: Optional[str]) -> str:
    if not currency:
        return CURRENCY_SYMBOLS["BDT"]
    return CURRENCY_SYMBOLS.get(currency.upper(), currency)


def format_price(price, currency: str = "BDT", decimals: int = 2) -> str:
    """Format an amount for display, e.g. ``৳350.00``."""
    amount = parse_price(price).quantize(
        Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP
    )
    return f"{get_currency_symbol(currency)}{amount}"
