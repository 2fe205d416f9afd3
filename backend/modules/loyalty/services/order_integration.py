# backend/modules/loyalty/services/order_integration.py

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from core.error_handling import APIValidationError, ConflictError, NotFoundError
from modules.cart.services.pricing_service import (
    AppliedDiscount, CartSummary, CatalogRef, LineItem, PricingConfig, compute_summary
)

from ..models.rewards_models import (
    LoyaltyAccount, LoyaltyPointsTransaction, OrderSettlement, RewardRedemption,
    PointsTransactionType
)
from .loyalty_resolver import Reward, TierTable, resolve_loyalty_state


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinalizationResult:
    order_id: str
    customer_id: str
    summary: CartSummary
    tier: str
    reward_id: Optional[str]
    points_redeemed: int
    points_earned: int
    points_balance: int
    already_finalized: bool = False
    line_items: Tuple[LineItem, ...] = ()


class OrderFinalizationService:
    """Settles loyalty points when an order is placed.

    Totals are recomputed here from server-side prices; whatever the client
    displayed is never trusted. Each order is settled at most once.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_account(self, customer_id: str) -> Optional[LoyaltyAccount]:
        return self.db.query(LoyaltyAccount).filter(
            LoyaltyAccount.customer_id == str(customer_id)
        ).first()

    def get_or_create_account(self, customer_id: str) -> LoyaltyAccount:
        account = self.db.query(LoyaltyAccount).filter(
            LoyaltyAccount.customer_id == str(customer_id)
        ).with_for_update().first()
        if account is None:
            account = LoyaltyAccount(
                customer_id=str(customer_id),
                points_balance=0,
                lifetime_points_earned=0,
                lifetime_points_spent=0,
            )
            self.db.add(account)
            self.db.flush()
        return account

    def get_balance(self, customer_id: str) -> LoyaltyAccount:
        """Get a customer's loyalty account.

        Raises:
            NotFoundError: If the customer has never finalized an order
        """
        account = self.get_account(customer_id)
        if account is None:
            raise NotFoundError("Loyalty account", customer_id)
        return account

    def finalize_order(
        self,
        customer_id: str,
        order_id: str,
        line_items: Sequence[LineItem],
        pricing_config: PricingConfig,
        tier_table: TierTable,
        reward_catalog: Iterable[Reward],
        reward_id: Optional[str] = None,
        discount: Optional[AppliedDiscount] = None,
    ) -> FinalizationResult:
        """Recompute the order total, redeem the selected reward and credit points.

        Calling this again for an already finalized order changes nothing and
        returns the original outcome.

        Raises:
            APIValidationError: Unknown reward or insufficient points balance
            ConflictError: The order was finalized for another customer
        """
        customer_id = str(customer_id)
        order_id = str(order_id)
        catalog = tuple(reward_catalog)
        summary = compute_summary(line_items, pricing_config, discount)

        existing = self._load_finalized(order_id, customer_id)
        if existing is not None:
            logger.info(f"Order {order_id} already finalized; returning stored outcome")
            return existing

        reward = None
        if reward_id:
            reward = next((r for r in catalog if r.id == reward_id), None)
            if reward is None:
                raise APIValidationError("Unknown reward", {"reward_id": reward_id})

        try:
            account = self.get_or_create_account(customer_id)
            balance = account.points_balance

            if reward is not None and balance < reward.cost:
                raise APIValidationError(
                    "Insufficient points balance",
                    {"reward_id": reward.id, "cost": reward.cost, "points_balance": balance},
                )

            state = resolve_loyalty_state(summary.total, tier_table, catalog, balance)

            points_redeemed = 0
            if reward is not None:
                points_redeemed = reward.cost
                self._record_transaction(
                    account, PointsTransactionType.REDEEMED, -reward.cost,
                    f"Redeemed {reward.label}", order_id, reward.id,
                )
                self.db.add(RewardRedemption(
                    order_id=order_id,
                    customer_id=customer_id,
                    reward_id=reward.id,
                    points_cost=reward.cost,
                    subtotal=summary.subtotal,
                    delivery_fee=summary.delivery_fee,
                    discount=summary.discount,
                    total=summary.total,
                    points_earned=state.points_earned_this_order,
                ))

            # Ledger row is written even for zero points
            self._record_transaction(
                account, PointsTransactionType.EARNED, state.points_earned_this_order,
                f"Order {order_id} earned at x{state.tier_multiplier}", order_id,
                tier=state.tier,
            )
            self.db.add(OrderSettlement(
                order_id=order_id,
                customer_id=customer_id,
                currency=summary.currency,
                subtotal=summary.subtotal,
                delivery_fee=summary.delivery_fee,
                discount=summary.discount,
                tax=summary.tax,
                total=summary.total,
                discount_code=summary.discount_code,
                item_count=summary.item_count,
                total_quantity=summary.total_quantity,
                lines=_serialize_lines(line_items),
                tier=state.tier,
                reward_id=reward.id if reward else None,
                points_redeemed=points_redeemed,
                points_earned=state.points_earned_this_order,
            ))

            self.db.commit()

        except IntegrityError:
            self.db.rollback()
            # Another request settled the same order first
            existing = self._load_finalized(order_id, customer_id)
            if existing is None:
                raise
            return existing
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Finalized order {order_id} for customer {customer_id}: "
            f"total={summary.total}, earned={state.points_earned_this_order}, "
            f"redeemed={points_redeemed}"
        )

        return FinalizationResult(
            order_id=order_id,
            customer_id=customer_id,
            summary=summary,
            tier=state.tier,
            reward_id=reward.id if reward else None,
            points_redeemed=points_redeemed,
            points_earned=state.points_earned_this_order,
            points_balance=account.points_balance,
            line_items=tuple(line_items),
        )

    def _record_transaction(
        self,
        account: LoyaltyAccount,
        transaction_type: PointsTransactionType,
        points_change: int,
        reason: str,
        order_id: str,
        reward_id: Optional[str] = None,
        tier: Optional[str] = None,
    ) -> LoyaltyPointsTransaction:
        before = account.points_balance
        after = before + points_change
        account.points_balance = after
        if points_change > 0:
            account.lifetime_points_earned += points_change
        elif points_change < 0:
            account.lifetime_points_spent += -points_change

        transaction = LoyaltyPointsTransaction(
            account_id=account.id,
            transaction_type=transaction_type.value,
            points_change=points_change,
            points_balance_before=before,
            points_balance_after=after,
            reason=reason,
            order_id=order_id,
            reward_id=reward_id,
            tier=tier,
        )
        self.db.add(transaction)
        # Surface unique violations before the redemption row is written
        self.db.flush()
        return transaction

    def _load_finalized(self, order_id: str, customer_id: str) -> Optional[FinalizationResult]:
        """Rebuild the stored outcome of a settled order, or None if it is unsettled."""
        settlement = self.db.query(OrderSettlement).filter(
            OrderSettlement.order_id == order_id
        ).first()
        if settlement is None:
            return None

        if settlement.customer_id != customer_id:
            raise ConflictError(
                f"Order {order_id} was finalized for another customer",
                {"order_id": order_id},
            )

        account = self.get_balance(customer_id)
        summary = CartSummary(
            subtotal=Decimal(settlement.subtotal),
            delivery_fee=Decimal(settlement.delivery_fee),
            discount=Decimal(settlement.discount),
            total=Decimal(settlement.total),
            currency=settlement.currency,
            tax=Decimal(settlement.tax),
            item_count=settlement.item_count,
            total_quantity=settlement.total_quantity,
            discount_code=settlement.discount_code,
        )

        return FinalizationResult(
            order_id=order_id,
            customer_id=customer_id,
            summary=summary,
            tier=settlement.tier,
            reward_id=settlement.reward_id,
            points_redeemed=settlement.points_redeemed,
            points_earned=settlement.points_earned,
            points_balance=account.points_balance,
            already_finalized=True,
            line_items=_deserialize_lines(settlement.lines or []),
        )


def _serialize_lines(line_items: Sequence[LineItem]) -> List[Dict[str, Any]]:
    return [
        {
            "id": line.id,
            "item_type": line.catalog_ref.item_type,
            "item_id": line.catalog_ref.item_id,
            "name": line.name,
            "quantity": line.quantity,
            "unit_price": str(line.unit_price),
            "currency": line.currency,
        }
        for line in line_items
    ]


def _deserialize_lines(rows: Iterable[Dict[str, Any]]) -> Tuple[LineItem, ...]:
    return tuple(
        LineItem(
            id=row["id"],
            catalog_ref=CatalogRef(item_type=row["item_type"], item_id=row["item_id"]),
            quantity=row["quantity"],
            unit_price=Decimal(row["unit_price"]),
            currency=row["currency"],
            name=row.get("name"),
        )
        for row in rows
    )
