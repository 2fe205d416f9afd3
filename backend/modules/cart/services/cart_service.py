# backend/modules/cart/services/cart_service.py

"""
Cart state for one owner (a user id or a guest session id).

Lines, notes, saved-for-later items and the reward selected for checkout
are kept in an injected key-value store. Pricing is delegated to the pure
pricing engine.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging
import uuid

from core.error_handling import APIValidationError, NotFoundError
from core.key_value_store import KeyValueStore

from .catalog_service import CatalogSource, ITEM_TYPES, resolve_line_items
from .pricing_service import (
    AppliedDiscount,
    CartSummary,
    CatalogRef,
    LineItem,
    PricingConfig,
    compute_summary,
)

logger = logging.getLogger(__name__)


class CartService:
    """Service for managing a single cart and its metadata"""

    def __init__(
        self,
        store: KeyValueStore,
        catalog: CatalogSource,
        owner_id: str,
        key_prefix: str = "cart",
    ):
        if not owner_id:
            raise APIValidationError("Cart owner is required")
        self.store = store
        self.catalog = catalog
        self.owner_id = str(owner_id)
        self.key_prefix = key_prefix

    # ========== Storage keys ==========

    def _key(self, name: str) -> str:
        return f"{self.key_prefix}:{self.owner_id}:{name}"

    @property
    def items_key(self) -> str:
        return self._key("items")

    @property
    def notes_key(self) -> str:
        return self._key("notes")

    @property
    def saved_key(self) -> str:
        return self._key("saved")

    @property
    def reward_key(self) -> str:
        return self._key("reward")

    def _load_entries(self) -> List[Dict[str, Any]]:
        return self.store.get(self.items_key, [])

    def _save_entries(self, entries: List[Dict[str, Any]]):
        self.store.set(self.items_key, entries)

    def _find_entry(self, entries: List[Dict[str, Any]], line_id: str) -> Dict[str, Any]:
        for entry in entries:
            if entry["id"] == line_id:
                return entry
        raise NotFoundError("Cart line", line_id)

    # ========== Lines ==========

    def add_item(self, item_type: str, item_id: str) -> Dict[str, Any]:
        """Add one unit of a catalog item, merging with an existing line."""
        if item_type not in ITEM_TYPES:
            raise APIValidationError(
                "Unknown catalog item type", {"item_type": item_type}
            )

        item = self.catalog.find_item(CatalogRef(item_type=item_type, item_id=str(item_id)))
        if item is None:
            raise NotFoundError("Catalog item", item_id)
        if not item.is_available:
            raise APIValidationError(
                "This item is currently unavailable", {"item_id": item_id}
            )

        entries = self._load_entries()
        for entry in entries:
            if entry["item_type"] == item.item_type and entry["item_id"] == item.id:
                entry["quantity"] += 1
                self._save_entries(entries)
                return entry

        entry = {
            "id": str(uuid.uuid4()),
            "item_type": item.item_type,
            "item_id": item.id,
            "quantity": 1,
            "added_at": datetime.utcnow().isoformat(),
        }
        entries.insert(0, entry)
        self._save_entries(entries)
        logger.debug(f"Added {item.item_type} {item.id} to cart {self.owner_id}")
        return entry

    def update_quantity(self, line_id: str, quantity: int) -> Optional[Dict[str, Any]]:
        """
        Set a line's quantity. A quantity of zero or less removes the line.

        Returns the updated entry, or None when the line was removed.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise APIValidationError("Quantity must be an integer", {"quantity": quantity})

        entries = self._load_entries()
        entry = self._find_entry(entries, line_id)

        if quantity <= 0:
            self.remove_item(line_id)
            return None

        entry["quantity"] = quantity
        self._save_entries(entries)
        return entry

    def remove_item(self, line_id: str):
        entries = self._load_entries()
        self._find_entry(entries, line_id)
        self._save_entries([e for e in entries if e["id"] != line_id])
        self.remove_note(line_id)

    def get_entries(self) -> List[Dict[str, Any]]:
        return self._load_entries()

    def get_line_items(self) -> List[LineItem]:
        return resolve_line_items(self._load_entries(), self.catalog)

    def item_count(self) -> int:
        """Number of distinct lines"""
        return len(self._load_entries())

    def total_quantity(self) -> int:
        return sum(entry["quantity"] for entry in self._load_entries())

    def get_summary(
        self,
        config: PricingConfig,
        discount: Optional[AppliedDiscount] = None,
    ) -> CartSummary:
        return compute_summary(self.get_line_items(), config, discount)

    def clear(self):
        self.store.delete(self.items_key)

    # ========== Saved for later ==========

    def save_for_later(self, line_id: str) -> Dict[str, Any]:
        """Move a line out of the cart into the saved collection.

        The line's note travels with it and comes back on move_to_cart.
        """
        entries = self._load_entries()
        entry = self._find_entry(entries, line_id)
        note = self.get_note(line_id)

        saved = self.get_saved_for_later()
        if not any(s["id"] == line_id for s in saved):
            saved_entry = {**entry, "saved_at": datetime.utcnow().isoformat()}
            if note:
                saved_entry["note"] = note
            saved.append(saved_entry)
            self.store.set(self.saved_key, saved)

        self._save_entries([e for e in entries if e["id"] != line_id])
        self.remove_note(line_id)
        return entry

    def get_saved_for_later(self) -> List[Dict[str, Any]]:
        return self.store.get(self.saved_key, [])

    def is_saved_for_later(self, line_id: str) -> bool:
        return any(s["id"] == line_id for s in self.get_saved_for_later())

    def remove_from_saved(self, line_id: str):
        saved = self.get_saved_for_later()
        self.store.set(self.saved_key, [s for s in saved if s["id"] != line_id])

    def move_to_cart(self, line_id: str) -> Dict[str, Any]:
        """Return a saved line to the cart, merging with an existing line."""
        saved = self.get_saved_for_later()
        match = next((s for s in saved if s["id"] == line_id), None)
        if match is None:
            raise NotFoundError("Saved item", line_id)

        entries = self._load_entries()
        existing = next(
            (
                e
                for e in entries
                if e["item_type"] == match["item_type"] and e["item_id"] == match["item_id"]
            ),
            None,
        )
        if existing:
            existing["quantity"] += match["quantity"]
            restored = existing
        else:
            restored = {k: v for k, v in match.items() if k not in ("saved_at", "note")}
            entries.insert(0, restored)

        self._save_entries(entries)
        if match.get("note") and not self.get_note(restored["id"]):
            self.set_note(restored["id"], match["note"])
        self.remove_from_saved(line_id)
        return restored

    # ========== Notes ==========

    def get_notes(self) -> Dict[str, str]:
        return self.store.get(self.notes_key, {})

    def get_note(self, line_id: str) -> Optional[str]:
        return self.get_notes().get(line_id)

    def set_note(self, line_id: str, note: Optional[str]):
        """Attach a kitchen note to a line; a blank note clears it."""
        notes = self.get_notes()
        if note and note.strip():
            notes[line_id] = note.strip()
        else:
            notes.pop(line_id, None)
        self.store.set(self.notes_key, notes)

    def remove_note(self, line_id: str):
        notes = self.get_notes()
        if line_id in notes:
            del notes[line_id]
            self.store.set(self.notes_key, notes)

    # ========== Reward selection ==========

    def select_reward(self, reward: Optional[Dict[str, Any]]):
        """Record the reward to honor at checkout; None clears it."""
        if reward:
            self.store.set(self.reward_key, reward)
        else:
            self.store.delete(self.reward_key)

    def get_selected_reward(self) -> Optional[Dict[str, Any]]:
        return self.store.get(self.reward_key)

    def clear_selected_reward(self):
        self.store.delete(self.reward_key)

    def clear_metadata(self):
        """Drop notes, saved items and the selected reward"""
        self.store.delete(self.notes_key)
        self.store.delete(self.saved_key)
        self.store.delete(self.reward_key)
