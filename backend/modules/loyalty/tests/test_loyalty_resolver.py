# backend/modules/loyalty/tests/test_loyalty_resolver.py

import pytest
from decimal import Decimal

from core.error_handling import APIValidationError
from modules.loyalty.services.loyalty_resolver import (
    LoyaltyTier,
    Reward,
    build_rewards_catalog,
    build_tier_table,
    calculate_points_earned,
    resolve_loyalty_state,
)


class TestResolveLoyaltyState:
    """Test cases for tier resolution against the default program"""

    def test_zero_total(self, tier_table, rewards_catalog):
        state = resolve_loyalty_state(0, tier_table, rewards_catalog)

        assert state.tier == "Bronze"
        assert state.next_tier == "Silver"
        assert state.next_tier_threshold == Decimal("500")
        assert state.progress_percent == 0
        assert state.points_to_next_tier == 500
        assert state.points_earned_this_order == 0

    def test_progress_within_tier(self, tier_table, rewards_catalog):
        state = resolve_loyalty_state(Decimal("250"), tier_table, rewards_catalog)

        assert state.tier == "Bronze"
        assert state.progress_percent == 50
        assert state.points_to_next_tier == 250
        assert state.points_earned_this_order == 250

    def test_threshold_is_inclusive(self, tier_table, rewards_catalog):
        state = resolve_loyalty_state(Decimal("500"), tier_table, rewards_catalog)

        assert state.tier == "Silver"
        assert state.tier_threshold == Decimal("500")
        assert state.next_tier == "Gold"
        assert state.progress_percent == 0
        assert state.points_to_next_tier == 500

    def test_just_below_threshold(self, tier_table, rewards_catalog):
        state = resolve_loyalty_state(Decimal("499.99"), tier_table, rewards_catalog)

        assert state.tier == "Bronze"
        assert state.points_to_next_tier == 1

    def test_multiplier_applied_and_floored(self, tier_table, rewards_catalog):
        state = resolve_loyalty_state(Decimal("750"), tier_table, rewards_catalog)

        assert state.tier == "Silver"
        assert state.tier_multiplier == Decimal("1.25")
        assert state.points_earned_this_order == 937
        assert state.progress_percent == 50

    def test_gold_order(self, tier_table, rewards_catalog):
        state = resolve_loyalty_state(Decimal("1430"), tier_table, rewards_catalog, points_balance=100)

        assert state.tier == "Gold"
        assert state.points_earned_this_order == 2145
        assert state.projected_points == 2245
        assert state.progress_percent == 43
        assert state.points_to_next_tier == 570

    @pytest.mark.parametrize("total", [Decimal("2000"), Decimal("2000.01"), Decimal("99999")])
    def test_top_tier_has_no_next(self, tier_table, rewards_catalog, total):
        state = resolve_loyalty_state(total, tier_table, rewards_catalog)

        assert state.tier == "Platinum"
        assert state.next_tier is None
        assert state.next_tier_threshold is None
        assert state.progress_percent == 100
        assert state.points_to_next_tier == 0

    def test_tier_never_decreases_as_total_grows(self, tier_table, rewards_catalog):
        names = [t.name for t in tier_table]
        totals = [Decimal(v) for v in ("0", "1", "499.99", "500", "999", "1000", "1999.99", "2000", "5000")]

        indexes = [
            names.index(resolve_loyalty_state(total, tier_table, rewards_catalog).tier)
            for total in totals
        ]

        assert indexes == sorted(indexes)

    def test_progress_always_within_bounds(self, tier_table, rewards_catalog):
        for total in range(0, 2600, 37):
            state = resolve_loyalty_state(total, tier_table, rewards_catalog)
            assert 0 <= state.progress_percent <= 100

    def test_below_first_threshold_resolves_to_first_tier(self, rewards_catalog):
        table = build_tier_table([
            {"name": "Member", "threshold": 100, "multiplier": 1},
            {"name": "VIP", "threshold": 300, "multiplier": 3},
        ])

        state = resolve_loyalty_state(Decimal("50"), table, rewards_catalog)

        assert state.tier == "Member"
        assert state.progress_percent == 0
        assert state.points_to_next_tier == 250

    def test_single_tier_table(self, rewards_catalog):
        table = build_tier_table([LoyaltyTier("Member", Decimal("0"), Decimal("2"))])

        state = resolve_loyalty_state(Decimal("10"), table, rewards_catalog)

        assert state.next_tier is None
        assert state.progress_percent == 100
        assert state.points_earned_this_order == 20


class TestRewardAvailability:
    """Test cases for redeemable and unlocking-soon rewards"""

    def test_redeemable_uses_current_balance(self, tier_table, rewards_catalog):
        state = resolve_loyalty_state(0, tier_table, rewards_catalog, points_balance=450)

        assert [r.id for r in state.redeemable_rewards] == ["dessert", "mocktails"]
        assert state.unlocking_soon_rewards == ()
        assert state.is_redeemable("mocktails")
        assert not state.is_redeemable("chef-table")

    def test_unlocking_soon_uses_projected_points(self, tier_table, rewards_catalog):
        state = resolve_loyalty_state(Decimal("1000"), tier_table, rewards_catalog, points_balance=450)

        assert state.projected_points == 1950
        assert [r.id for r in state.unlocking_soon_rewards] == ["chef-table", "vip-night"]

    def test_catalog_is_returned_sorted_by_cost(self, tier_table):
        catalog = [Reward("b", "B", 900), Reward("a", "A", 100)]

        state = resolve_loyalty_state(0, tier_table, catalog)

        assert [r.id for r in state.rewards_catalog] == ["a", "b"]

    def test_resolving_is_pure(self, tier_table, rewards_catalog):
        first = resolve_loyalty_state(Decimal("1430"), tier_table, rewards_catalog, points_balance=500)
        second = resolve_loyalty_state(Decimal("1430"), tier_table, rewards_catalog, points_balance=500)

        assert first == second
        assert first.points_balance == 500


class TestProgramValidation:
    """Test cases for building tier tables and reward catalogs"""

    def test_empty_table_rejected(self):
        with pytest.raises(APIValidationError):
            build_tier_table([])

    def test_thresholds_must_increase(self):
        with pytest.raises(APIValidationError):
            build_tier_table([
                {"name": "A", "threshold": 0},
                {"name": "B", "threshold": 500},
                {"name": "C", "threshold": 500},
            ])

    def test_negative_threshold_rejected(self):
        with pytest.raises(APIValidationError):
            build_tier_table([{"name": "A", "threshold": -1}])

    def test_non_positive_multiplier_rejected(self):
        with pytest.raises(APIValidationError):
            build_tier_table([{"name": "A", "threshold": 0, "multiplier": 0}])

    def test_duplicate_reward_rejected(self):
        with pytest.raises(APIValidationError):
            build_rewards_catalog([
                {"id": "dessert", "label": "Dessert", "cost": 300},
                {"id": "dessert", "label": "Another", "cost": 100},
            ])

    def test_negative_cost_rejected(self):
        with pytest.raises(APIValidationError):
            build_rewards_catalog([{"id": "x", "label": "X", "cost": -1}])

    def test_default_program(self, tier_table, rewards_catalog):
        assert [t.name for t in tier_table] == ["Bronze", "Silver", "Gold", "Platinum"]
        assert [r.cost for r in rewards_catalog] == [300, 450, 750, 1200]

    def test_points_never_negative(self):
        assert calculate_points_earned(Decimal("0"), Decimal("1.5")) == 0
        assert calculate_points_earned(Decimal("0.99"), Decimal("1")) == 0
