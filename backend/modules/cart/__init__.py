# backend/modules/cart/__init__.py

"""
Cart pricing, catalog resolution and cart metadata.
"""

from .routes.cart_routes import router as cart_router
from .services.pricing_service import (
    AppliedDiscount,
    CartSummary,
    CatalogRef,
    LineItem,
    PricingConfig,
    compute_summary,
)
from .services.cart_service import CartService

__all__ = [
    "cart_router",
    "AppliedDiscount",
    "CartSummary",
    "CatalogRef",
    "LineItem",
    "PricingConfig",
    "compute_summary",
    "CartService",
]
