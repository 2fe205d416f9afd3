# backend/modules/loyalty/schemas/loyalty_schemas.py

"""
Schemas for loyalty state, reward selection and order finalization.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from modules.cart.schemas.cart_schemas import CartLineInput, DiscountInput
from modules.cart.schemas.cart_schemas import CartSummaryResponse

from ..services.loyalty_resolver import LoyaltyState, Reward


# ========== Reward Schemas ==========

class RewardSchema(BaseModel):
    """Redeemable reward"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    label: str
    cost: int

    @classmethod
    def from_reward(cls, reward: Reward) -> "RewardSchema":
        return cls(id=reward.id, label=reward.label, cost=reward.cost)


class RewardSelectionRequest(BaseModel):
    """Select a reward for the next checkout"""
    reward_id: str = Field(..., min_length=1, max_length=64)
    order_total: Decimal = Field(..., ge=0, allow_inf_nan=False)


# ========== Loyalty State Schemas ==========

class LoyaltyStateRequest(BaseModel):
    """Resolve loyalty state for an order total"""
    order_total: Decimal = Field(..., ge=0, allow_inf_nan=False)
    points_balance: int = Field(0, ge=0)


class LoyaltyStateResponse(BaseModel):
    """Resolved tier, progress and reward availability"""
    tier: str
    tier_multiplier: Decimal
    tier_threshold: Decimal
    points_balance: int
    next_tier: Optional[str] = None
    next_tier_threshold: Optional[Decimal] = None
    points_earned_this_order: int
    projected_points: int
    progress_percent: int = Field(..., ge=0, le=100)
    points_to_next_tier: int
    rewards_catalog: List[RewardSchema] = []
    redeemable_rewards: List[RewardSchema] = []
    unlocking_soon_rewards: List[RewardSchema] = []

    @classmethod
    def from_state(cls, state: LoyaltyState) -> "LoyaltyStateResponse":
        return cls(
            tier=state.tier,
            tier_multiplier=state.tier_multiplier,
            tier_threshold=state.tier_threshold,
            points_balance=state.points_balance,
            next_tier=state.next_tier,
            next_tier_threshold=state.next_tier_threshold,
            points_earned_this_order=state.points_earned_this_order,
            projected_points=state.projected_points,
            progress_percent=state.progress_percent,
            points_to_next_tier=state.points_to_next_tier,
            rewards_catalog=[RewardSchema.from_reward(r) for r in state.rewards_catalog],
            redeemable_rewards=[RewardSchema.from_reward(r) for r in state.redeemable_rewards],
            unlocking_soon_rewards=[
                RewardSchema.from_reward(r) for r in state.unlocking_soon_rewards
            ],
        )


# ========== Order Finalization Schemas ==========

class FinalizeOrderRequest(BaseModel):
    """Finalize an order; prices are resolved from the catalog"""
    model_config = ConfigDict(extra="forbid")

    customer_id: str = Field(..., min_length=1, max_length=64)
    items: List[CartLineInput] = Field(..., min_length=1, max_length=200)
    reward_id: Optional[str] = Field(None, max_length=64)
    discount: Optional[DiscountInput] = None


class FinalizeOrderResponse(BaseModel):
    order_id: str
    customer_id: str
    summary: CartSummaryResponse
    tier: str
    reward_id: Optional[str] = None
    points_redeemed: int
    points_earned: int
    points_balance: int
    already_finalized: bool = False


class BalanceResponse(BaseModel):
    customer_id: str
    points_balance: int
    lifetime_points_earned: int
    lifetime_points_spent: int


class ReferralInfoResponse(BaseModel):
    code: Optional[str] = None
    share_url: str = ""
    headline: str
    subcopy: str
