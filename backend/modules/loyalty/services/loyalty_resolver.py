# backend/modules/loyalty/services/loyalty_resolver.py

"""
Loyalty state resolution.

Maps an order total onto a configurable, ordered tier table and a rewards
catalog. Everything here is pure: nothing is persisted and no points are
deducted. Deduction happens once, when an order is finalized.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional, Tuple
import logging

from core.error_handling import APIValidationError

from ..data.default_rewards import DEFAULT_REWARD_DEFINITIONS, DEFAULT_TIER_DEFINITIONS

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LoyaltyTier:
    """A named level unlocked at a spend threshold"""

    name: str
    threshold: Decimal
    multiplier: Decimal


@dataclass(frozen=True)
class Reward:
    """A catalog entry exchangeable for points"""

    id: str
    label: str
    cost: int


TierTable = Tuple[LoyaltyTier, ...]


@dataclass(frozen=True)
class LoyaltyState:
    tier: str
    tier_multiplier: Decimal
    tier_threshold: Decimal
    points_balance: int
    next_tier: Optional[str]
    next_tier_threshold: Optional[Decimal]
    points_earned_this_order: int
    projected_points: int
    progress_percent: int
    points_to_next_tier: int
    rewards_catalog: Tuple[Reward, ...] = field(default_factory=tuple)
    redeemable_rewards: Tuple[Reward, ...] = field(default_factory=tuple)
    unlocking_soon_rewards: Tuple[Reward, ...] = field(default_factory=tuple)

    def is_redeemable(self, reward_id: str) -> bool:
        return any(r.id == reward_id for r in self.redeemable_rewards)


def build_tier_table(definitions: Iterable[Any]) -> TierTable:
    """
    Build a validated tier table from dicts or ``LoyaltyTier`` objects.

    Raises:
        APIValidationError: if the table is empty, has a negative threshold,
            a non-positive multiplier, or thresholds that do not strictly increase
    """
    tiers: List[LoyaltyTier] = []
    for definition in definitions:
        if isinstance(definition, LoyaltyTier):
            tiers.append(definition)
            continue
        tiers.append(
            LoyaltyTier(
                name=str(definition["name"]),
                threshold=Decimal(str(definition["threshold"])),
                multiplier=Decimal(str(definition.get("multiplier", "1"))),
            )
        )

    if not tiers:
        raise APIValidationError("Tier table must contain at least one tier")

    if tiers[0].threshold < 0:
        raise APIValidationError(
            "Tier thresholds must be non-negative", {"tier": tiers[0].name}
        )

    for tier in tiers:
        if tier.multiplier <= 0:
            raise APIValidationError(
                "Tier multiplier must be positive", {"tier": tier.name}
            )

    for lower, upper in zip(tiers, tiers[1:]):
        if upper.threshold <= lower.threshold:
            raise APIValidationError(
                "Tier thresholds must strictly increase",
                {"tier": upper.name, "threshold": str(upper.threshold)},
            )

    return tuple(tiers)


def build_rewards_catalog(definitions: Iterable[Any]) -> Tuple[Reward, ...]:
    rewards = []
    seen = set()
    for definition in definitions:
        reward = (
            definition
            if isinstance(definition, Reward)
            else Reward(
                id=str(definition["id"]),
                label=str(definition["label"]),
                cost=int(definition["cost"]),
            )
        )
        if reward.cost < 0:
            raise APIValidationError("Reward cost must be non-negative", {"reward": reward.id})
        if reward.id in seen:
            raise APIValidationError("Duplicate reward id", {"reward": reward.id})
        seen.add(reward.id)
        rewards.append(reward)
    return tuple(sorted(rewards, key=lambda r: r.cost))


def default_tier_table() -> TierTable:
    return build_tier_table(DEFAULT_TIER_DEFINITIONS)


def default_rewards_catalog() -> Tuple[Reward, ...]:
    return build_rewards_catalog(DEFAULT_REWARD_DEFINITIONS)


def find_tier_index(order_total: Decimal, tier_table: TierTable) -> int:
    """Index of the highest tier whose threshold is <= order_total (inclusive)."""
    index = 0
    for i, tier in enumerate(tier_table):
        if tier.threshold <= order_total:
            index = i
        else:
            break
    return index


def calculate_points_earned(order_total: Decimal, multiplier: Decimal) -> int:
    points = (Decimal(order_total) * Decimal(multiplier)).to_integral_value(rounding=ROUND_FLOOR)
    return max(0, int(points))


def resolve_loyalty_state(
    order_total,
    tier_table: TierTable,
    reward_catalog: Iterable[Reward],
    points_balance: int = 0,
) -> LoyaltyState:
    """
    Resolve tier, projected points, tier progress and reward availability.

    Args:
        order_total: Non-negative monetary total the tier is resolved against
        tier_table: Validated table from ``build_tier_table``
        reward_catalog: Rewards with point costs
        points_balance: Points the customer already holds

    Returns:
        LoyaltyState. A total at or above the highest threshold yields 100%
        progress and no next tier.
    """
    total = Decimal(str(order_total))
    catalog = tuple(sorted(reward_catalog, key=lambda r: r.cost))

    index = find_tier_index(total, tier_table)
    current = tier_table[index]
    next_tier = tier_table[index + 1] if index + 1 < len(tier_table) else None

    earned = calculate_points_earned(total, current.multiplier)
    projected = points_balance + earned

    if next_tier is None:
        progress = 100
        points_to_next = 0
    else:
        span = next_tier.threshold - current.threshold
        ratio = (total - current.threshold) / span * HUNDRED
        ratio = min(HUNDRED, max(Decimal(0), ratio))
        progress = int(ratio.to_integral_value(rounding=ROUND_HALF_UP))
        remaining = (next_tier.threshold - total).to_integral_value(rounding=ROUND_CEILING)
        points_to_next = max(0, int(remaining))

    redeemable = tuple(r for r in catalog if r.cost <= points_balance)
    unlocking_soon = tuple(r for r in catalog if points_balance < r.cost <= projected)

    return LoyaltyState(
        tier=current.name,
        tier_multiplier=current.multiplier,
        tier_threshold=current.threshold,
        points_balance=points_balance,
        next_tier=next_tier.name if next_tier else None,
        next_tier_threshold=next_tier.threshold if next_tier else None,
        points_earned_this_order=earned,
        projected_points=projected,
        progress_percent=progress,
        points_to_next_tier=points_to_next,
        rewards_catalog=catalog,
        redeemable_rewards=redeemable,
        unlocking_soon_rewards=unlocking_soon,
    )
