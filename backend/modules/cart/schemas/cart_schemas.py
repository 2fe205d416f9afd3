# backend/modules/cart/schemas/cart_schemas.py

"""
Request/response schemas for the cart API.

These are the boundary where untrusted input is validated: a quantity below
one, a negative price or a negative discount is rejected here and never
reaches the pricing engine.
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.error_handling import APIValidationError

from ..services.pricing_service import (
    AppliedDiscount,
    CartSummary,
    CatalogRef,
    LineItem,
)


class CatalogRefInput(BaseModel):
    """Reference to a catalog entry"""

    item_type: str = Field("menu_item", pattern="^(menu_item|dish)$")
    item_id: str = Field(..., min_length=1, max_length=64)


class CartLineInput(BaseModel):
    """A cart line as sent by the client; the price is resolved server-side"""

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = Field(None, max_length=64)
    item_type: str = Field("menu_item", pattern="^(menu_item|dish)$")
    item_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(..., ge=1, strict=True)


class LineItemInput(BaseModel):
    """A fully priced line item from a trusted-but-unchecked source"""

    id: str = Field(..., min_length=1)
    item_type: str = Field("menu_item", pattern="^(menu_item|dish)$")
    item_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, strict=True)
    unit_price: Decimal = Field(..., ge=0, allow_inf_nan=False)
    currency: str = Field("BDT", min_length=3, max_length=3)
    name: Optional[str] = None

    def to_line_item(self) -> LineItem:
        return LineItem(
            id=self.id,
            catalog_ref=CatalogRef(item_type=self.item_type, item_id=self.item_id),
            quantity=self.quantity,
            unit_price=self.unit_price,
            currency=self.currency.upper(),
            name=self.name,
        )


class DiscountInput(BaseModel):
    """Discount to apply to the cart"""

    value: Decimal = Field(..., ge=0, decimal_places=2, allow_inf_nan=False)
    code: Optional[str] = Field(None, max_length=50)
    label: Optional[str] = Field(None, max_length=200)

    def to_applied_discount(self) -> AppliedDiscount:
        return AppliedDiscount(value=self.value, code=self.code, label=self.label)


class CartSummaryRequest(BaseModel):
    """Estimate totals for a set of cart lines"""

    items: List[CartLineInput] = Field(default_factory=list, max_length=200)
    discount: Optional[DiscountInput] = None

    @field_validator("items")
    @classmethod
    def validate_unique_items(cls, v: List[CartLineInput]):
        seen = set()
        for line in v:
            key = (line.item_type, line.item_id)
            if key in seen:
                raise ValueError(f"Duplicate cart line for {line.item_type} {line.item_id}")
            seen.add(key)
        return v


class CartLineResponse(BaseModel):
    id: str
    item_type: str
    item_id: str
    name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    currency: str


class CartSummaryResponse(BaseModel):
    """Cart totals; a display estimate, recomputed at order finalization"""

    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    item_count: int
    total_quantity: int
    is_free_delivery: bool
    discount_code: Optional[str] = None
    lines: List[CartLineResponse] = []
    dropped_item_ids: List[str] = []

    @classmethod
    def from_summary(
        cls,
        summary: CartSummary,
        lines: Iterable[LineItem] = (),
        dropped_item_ids: Iterable[str] = (),
    ) -> "CartSummaryResponse":
        return cls(
            subtotal=summary.subtotal,
            delivery_fee=summary.delivery_fee,
            discount=summary.discount,
            tax=summary.tax,
            total=summary.total,
            currency=summary.currency,
            item_count=summary.item_count,
            total_quantity=summary.total_quantity,
            is_free_delivery=summary.is_free_delivery,
            discount_code=summary.discount_code,
            lines=[
                CartLineResponse(
                    id=line.id,
                    item_type=line.catalog_ref.item_type,
                    item_id=line.catalog_ref.item_id,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    currency=line.currency,
                )
                for line in lines
            ],
            dropped_item_ids=list(dropped_item_ids),
        )


def build_line_items(entries: Iterable[Mapping[str, Any]]) -> List[LineItem]:
    """
    Validate raw line item dicts and convert them for the pricing engine.

    Raises:
        APIValidationError: if any entry has a bad quantity or price
    """
    line_items = []
    errors: Dict[str, Any] = {}
    for index, entry in enumerate(entries):
        try:
            line_items.append(LineItemInput.model_validate(entry).to_line_item())
        except ValidationError as e:
            errors[str(index)] = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
    if errors:
        raise APIValidationError("Invalid cart line items", errors)
    return line_items
