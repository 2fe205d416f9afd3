from .rewards_models import (
    LoyaltyAccount,
    LoyaltyPointsTransaction,
    RewardRedemption,
    OrderSettlement,
    PointsTransactionType,
)

__all__ = [
    "LoyaltyAccount",
    "LoyaltyPointsTransaction",
    "RewardRedemption",
    "OrderSettlement",
    "PointsTransactionType",
]
