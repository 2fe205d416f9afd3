# backend/modules/loyalty/routes/loyalty_routes.py

"""
Routes for loyalty state, reward selection and order finalization.
"""

from typing import Tuple

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from core.error_handling import handle_api_errors
from core.key_value_store import KeyValueStore, get_key_value_store
from modules.cart.routes.cart_routes import get_catalog_source, get_pricing_config
from modules.cart.schemas.cart_schemas import CartSummaryResponse
from modules.cart.services.catalog_service import CatalogSource, resolve_line_items
from modules.cart.services.pricing_service import PricingConfig

from ..schemas.loyalty_schemas import (
    BalanceResponse,
    FinalizeOrderRequest,
    FinalizeOrderResponse,
    LoyaltyStateRequest,
    LoyaltyStateResponse,
    ReferralInfoResponse,
    RewardSelectionRequest,
)
from ..services.loyalty_resolver import (
    Reward,
    TierTable,
    default_rewards_catalog,
    default_tier_table,
    resolve_loyalty_state,
)
from ..services.order_integration import OrderFinalizationService
from ..services.reward_selection import RewardSelectionService, resolve_referral_info

router = APIRouter(prefix="/api/v1/loyalty", tags=["Loyalty"])


def get_tier_table() -> TierTable:
    return default_tier_table()


def get_reward_catalog() -> Tuple[Reward, ...]:
    return default_rewards_catalog()


def get_store() -> KeyValueStore:
    return get_key_value_store()


# ========== Loyalty State ==========

@router.post("/state", response_model=LoyaltyStateResponse)
@handle_api_errors
async def get_loyalty_state(
    request: LoyaltyStateRequest,
    tier_table: TierTable = Depends(get_tier_table),
    reward_catalog: Tuple[Reward, ...] = Depends(get_reward_catalog),
):
    """Resolve tier, progress and reward availability for an order total"""
    state = resolve_loyalty_state(
        request.order_total, tier_table, reward_catalog, request.points_balance
    )
    return LoyaltyStateResponse.from_state(state)


# ========== Reward Selection ==========

@router.put("/customers/{customer_id}/reward-selection")
@handle_api_errors
async def select_reward(
    customer_id: str,
    request: RewardSelectionRequest,
    db: Session = Depends(get_db),
    store: KeyValueStore = Depends(get_store),
    tier_table: TierTable = Depends(get_tier_table),
    reward_catalog: Tuple[Reward, ...] = Depends(get_reward_catalog),
):
    """Select a reward for the next checkout; only affordable rewards are accepted"""
    account = OrderFinalizationService(db).get_account(customer_id)
    balance = account.points_balance if account else 0
    state = resolve_loyalty_state(request.order_total, tier_table, reward_catalog, balance)
    return RewardSelectionService(store, customer_id).select_reward(request.reward_id, state)


@router.delete("/customers/{customer_id}/reward-selection", status_code=status.HTTP_204_NO_CONTENT)
@handle_api_errors
async def clear_reward_selection(
    customer_id: str,
    store: KeyValueStore = Depends(get_store),
):
    RewardSelectionService(store, customer_id).clear_selection()


@router.get("/customers/{customer_id}/referral", response_model=ReferralInfoResponse)
@handle_api_errors
async def get_referral_info(
    customer_id: str,
    store: KeyValueStore = Depends(get_store),
):
    info = resolve_referral_info(
        customer_id, store, settings.REFERRAL_ORIGIN, settings.REFERRAL_BONUS_POINTS
    )
    return ReferralInfoResponse(
        code=info.code, share_url=info.share_url, headline=info.headline, subcopy=info.subcopy
    )


# ========== Points ==========

@router.get("/customers/{customer_id}/balance", response_model=BalanceResponse)
@handle_api_errors
async def get_points_balance(customer_id: str, db: Session = Depends(get_db)):
    account = OrderFinalizationService(db).get_balance(customer_id)
    return BalanceResponse(
        customer_id=account.customer_id,
        points_balance=account.points_balance,
        lifetime_points_earned=account.lifetime_points_earned,
        lifetime_points_spent=account.lifetime_points_spent,
    )


@router.post("/orders/{order_id}/finalize", response_model=FinalizeOrderResponse)
@handle_api_errors
async def finalize_order(
    order_id: str,
    request: FinalizeOrderRequest,
    db: Session = Depends(get_db),
    catalog: CatalogSource = Depends(get_catalog_source),
    config: PricingConfig = Depends(get_pricing_config),
    store: KeyValueStore = Depends(get_store),
    tier_table: TierTable = Depends(get_tier_table),
    reward_catalog: Tuple[Reward, ...] = Depends(get_reward_catalog),
):
    """
    Settle loyalty points for an order.

    Prices come from the catalog and the total is recomputed here. Without an
    explicit reward_id the customer's stored reward selection is honored and
    cleared once the order settles. Repeating the call for the same order
    returns the original outcome without deducting points again.
    """
    selection_service = RewardSelectionService(store, request.customer_id)
    reward_id = request.reward_id
    if reward_id is None:
        selection = selection_service.get_selection()
        reward_id = selection["id"] if selection else None

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
    discount = request.discount.to_applied_discount() if request.discount else None

    result = OrderFinalizationService(db).finalize_order(
        customer_id=request.customer_id,
        order_id=order_id,
        line_items=line_items,
        pricing_config=config,
        tier_table=tier_table,
        reward_catalog=reward_catalog,
        reward_id=reward_id,
        discount=discount,
    )
    if not result.already_finalized:
        selection_service.clear_selection()

    return FinalizeOrderResponse(
        order_id=result.order_id,
        customer_id=result.customer_id,
        summary=CartSummaryResponse.from_summary(result.summary, result.line_items),
        tier=result.tier,
        reward_id=result.reward_id,
        points_redeemed=result.points_redeemed,
        points_earned=result.points_earned,
        points_balance=result.points_balance,
        already_finalized=result.already_finalized,
    )
