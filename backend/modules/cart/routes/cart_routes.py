# backend/modules/cart/routes/cart_routes.py

"""
Cart pricing endpoints.

Totals returned here are a display estimate. Prices are resolved from the
catalog on the server; the authoritative amount is recomputed when the order
is finalized.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import get_db
from core.error_handling import handle_api_errors

from ..schemas.cart_schemas import CartSummaryRequest, CartSummaryResponse
from ..services.catalog_service import CatalogSource, SqlCatalogSource, resolve_line_items
from ..services.pricing_service import PricingConfig, compute_summary

router = APIRouter(prefix="/api/v1/cart", tags=["Cart"])


def get_catalog_source(db: Session = Depends(get_db)) -> CatalogSource:
    return SqlCatalogSource(db)


def get_pricing_config() -> PricingConfig:
    return PricingConfig.from_settings()


@router.post("/summary", response_model=CartSummaryResponse)
@handle_api_errors
async def estimate_cart_summary(
    request: CartSummaryRequest,
    catalog: CatalogSource = Depends(get_catalog_source),
    config: PricingConfig = Depends(get_pricing_config),
):
    """
    Estimate cart totals.

    Lines whose item no longer exists in the catalog are dropped from the
    estimate and reported in ``dropped_item_ids``.
    """
    entries = [
        {
            "id": line.id or f"{line.item_type}:{line.item_id}",
            "item_type": line.item_type,
            "item_id": line.item_id,
            "quantity": line.quantity,
        }
        for line in request.items
    ]
    line_items = resolve_line_items(entries, catalog)
    resolved_ids = {item.id for item in line_items}
    dropped = [e["item_id"] for e in entries if e["id"] not in resolved_ids]

    discount = request.discount.to_applied_discount() if request.discount else None
    summary = compute_summary(line_items, config, discount)
    return CartSummaryResponse.from_summary(summary, line_items, dropped)
