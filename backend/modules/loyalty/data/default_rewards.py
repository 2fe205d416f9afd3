# backend/modules/loyalty/data/default_rewards.py

"""
Default Star Rewards program: tier table and redeemable rewards catalog.

These are the values used when no per-environment program is configured.
The resolver never reads them directly; callers pass them in.
"""

from typing import Any, Dict, List

DEFAULT_TIER_DEFINITIONS: List[Dict[str, Any]] = [
    {"name": "Bronze", "threshold": "0", "multiplier": "1.0"},
    {"name": "Silver", "threshold": "500", "multiplier": "1.25"},
    {"name": "Gold", "threshold": "1000", "multiplier": "1.5"},
    {"name": "Platinum", "threshold": "2000", "multiplier": "2.0"},
]

DEFAULT_REWARD_DEFINITIONS: List[Dict[str, Any]] = [
    {"id": "dessert", "label": "Complimentary Dessert", "cost": 300},
    {"id": "mocktails", "label": "Round of Signature Mocktails", "cost": 450},
    {"id": "chef-table", "label": "Chef Table Upgrade", "cost": 750},
    {"id": "vip-night", "label": "VIP Tasting Night Invite", "cost": 1200},
]
