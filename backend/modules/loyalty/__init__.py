# backend/modules/loyalty/__init__.py

"""
Star Rewards: loyalty tiers, reward selection and order finalization.
"""

from .routes.loyalty_routes import router as loyalty_router
from .models.rewards_models import (
    LoyaltyAccount, LoyaltyPointsTransaction, RewardRedemption,
    OrderSettlement, PointsTransactionType
)
from .services.loyalty_resolver import (
    LoyaltyState, LoyaltyTier, Reward, resolve_loyalty_state
)
from .services.order_integration import OrderFinalizationService

__all__ = [
    "loyalty_router",
    "LoyaltyAccount",
    "LoyaltyPointsTransaction",
    "RewardRedemption",
    "OrderSettlement",
    "PointsTransactionType",
    "LoyaltyState",
    "LoyaltyTier",
    "Reward",
    "resolve_loyalty_state",
    "OrderFinalizationService"
]
