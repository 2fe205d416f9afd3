# backend/modules/loyalty/services/reward_selection.py

"""
Explicit reward selection and referral codes.

Resolving loyalty state never selects anything; a reward is only attached to
the next checkout when the customer picks it here.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
import logging
import secrets
import string

from core.error_handling import APIValidationError
from core.key_value_store import KeyValueStore

from .loyalty_resolver import LoyaltyState

logger = logging.getLogger(__name__)

REFERRAL_PREFIX = "sc-ref"
REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits
REFERRAL_CODE_LENGTH = 6


class RewardSelectionService:
    """Stores the reward a customer chose for their next order"""

    def __init__(self, store: KeyValueStore, owner_id: str, key_prefix: str = "cart"):
        if not owner_id:
            raise APIValidationError("Reward selection owner is required")
        self.store = store
        self.owner_id = str(owner_id)
        # Shares the cart's reward slot so checkout reads one place
        self.key = f"{key_prefix}:{self.owner_id}:reward"

    def select_reward(self, reward_id: str, state: LoyaltyState) -> Dict[str, Any]:
        """
        Select a reward the customer can afford right now.

        Raises:
            APIValidationError: if the reward is unknown or not redeemable
                with the current balance
        """
        reward = next((r for r in state.rewards_catalog if r.id == reward_id), None)
        if reward is None:
            raise APIValidationError("Unknown reward", {"reward_id": reward_id})

        if not state.is_redeemable(reward_id):
            raise APIValidationError(
                "Reward is not redeemable with the current balance",
                {
                    "reward_id": reward_id,
                    "cost": reward.cost,
                    "points_balance": state.points_balance,
                },
            )

        selection = {
            "id": reward.id,
            "label": reward.label,
            "cost": reward.cost,
            "selected_at": datetime.utcnow().isoformat(),
        }
        self.store.set(self.key, selection)
        logger.info(f"Customer {self.owner_id} selected reward {reward.id}")
        return selection

    def get_selection(self) -> Optional[Dict[str, Any]]:
        return self.store.get(self.key)

    def clear_selection(self):
        self.store.delete(self.key)


@dataclass(frozen=True)
class ReferralInfo:
    code: Optional[str]
    share_url: str
    headline: str
    subcopy: str


def _generate_referral_code() -> str:
    token = "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))
    return f"STAR-{token}"


def ensure_referral_code(user_id: str, store: KeyValueStore) -> str:
    """Return the user's referral code, creating and storing one on first use."""
    key = f"{REFERRAL_PREFIX}:{user_id}"
    existing = store.get(key)
    if existing:
        return existing

    code = _generate_referral_code()
    store.set(key, code)
    return code


def resolve_referral_info(
    user_id: Optional[str],
    store: KeyValueStore,
    origin: str,
    bonus_points: int = 250,
) -> ReferralInfo:
    """Referral code and share link for a user; anonymous users get a sign-in prompt."""
    if not user_id:
        return ReferralInfo(
            code=None,
            share_url="",
            headline="Join Star Rewards",
            subcopy="Sign in to track points, unlock perks, and share invite links with friends.",
        )

    code = ensure_referral_code(str(user_id), store)
    return ReferralInfo(
        code=code,
        share_url=f"{origin.rstrip('/')}/?ref={code}",
        headline="Refer friends, earn bonus treats",
        subcopy=(
            f"Each new guest who books with your link unlocks {bonus_points} "
            "bonus points after their first visit."
        ),
    )
