# backend/modules/cart/tests/test_cart_service.py

import pytest
from decimal import Decimal

from core.error_handling import APIValidationError, NotFoundError
from modules.cart.services.cart_service import CartService
from modules.cart.services.pricing_service import AppliedDiscount


class TestCartLines:
    """Test cases for adding, updating and removing cart lines"""

    def test_add_item_creates_line(self, cart_service):
        entry = cart_service.add_item("menu_item", "m-biryani")

        assert entry["quantity"] == 1
        assert entry["item_type"] == "menu_item"
        assert entry["item_id"] == "m-biryani"
        assert "added_at" in entry
        assert cart_service.item_count() == 1

    def test_add_same_item_merges(self, cart_service):
        first = cart_service.add_item("menu_item", "m-biryani")
        second = cart_service.add_item("menu_item", "m-biryani")

        assert second["id"] == first["id"]
        assert second["quantity"] == 2
        assert cart_service.item_count() == 1
        assert cart_service.total_quantity() == 2

    def test_newest_line_first(self, cart_service):
        cart_service.add_item("menu_item", "m-biryani")
        cart_service.add_item("menu_item", "m-latte")

        assert [e["item_id"] for e in cart_service.get_entries()] == ["m-latte", "m-biryani"]

    def test_legacy_reference_falls_back_to_other_type(self, cart_service):
        entry = cart_service.add_item("menu_item", "d-fuchka")

        assert entry["item_type"] == "dish"

    def test_add_unknown_item(self, cart_service):
        with pytest.raises(NotFoundError):
            cart_service.add_item("menu_item", "missing")

    def test_add_unavailable_item(self, cart_service):
        with pytest.raises(APIValidationError):
            cart_service.add_item("menu_item", "m-seasonal")

    def test_add_unknown_type(self, cart_service):
        with pytest.raises(APIValidationError):
            cart_service.add_item("combo", "m-biryani")

    def test_update_quantity(self, cart_service):
        entry = cart_service.add_item("menu_item", "m-biryani")

        updated = cart_service.update_quantity(entry["id"], 3)

        assert updated["quantity"] == 3
        assert cart_service.total_quantity() == 3

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity_removes_line(self, cart_service, quantity):
        entry = cart_service.add_item("menu_item", "m-biryani")

        assert cart_service.update_quantity(entry["id"], quantity) is None
        assert cart_service.get_entries() == []

    @pytest.mark.parametrize("quantity", ["3", 1.5, True, None])
    def test_non_integer_quantity_rejected(self, cart_service, quantity):
        entry = cart_service.add_item("menu_item", "m-biryani")

        with pytest.raises(APIValidationError):
            cart_service.update_quantity(entry["id"], quantity)

    def test_update_missing_line(self, cart_service):
        with pytest.raises(NotFoundError):
            cart_service.update_quantity("nope", 2)

    def test_remove_item_drops_note(self, cart_service):
        entry = cart_service.add_item("menu_item", "m-biryani")
        cart_service.set_note(entry["id"], "extra raita")

        cart_service.remove_item(entry["id"])

        assert cart_service.get_entries() == []
        assert cart_service.get_note(entry["id"]) is None

    def test_owner_required(self, store, catalog):
        with pytest.raises(APIValidationError):
            CartService(store, catalog, owner_id="")

    def test_carts_are_isolated_by_owner(self, store, catalog):
        alice = CartService(store, catalog, owner_id="alice")
        guest = CartService(store, catalog, owner_id="guest-42")

        alice.add_item("menu_item", "m-biryani")

        assert guest.get_entries() == []


class TestCartSummary:
    """Test cases for pricing a stored cart"""

    def test_summary_from_catalog_prices(self, cart_service, pricing_config):
        cart_service.add_item("menu_item", "m-biryani")
        cart_service.add_item("menu_item", "m-platter")
        cart_service.add_item("menu_item", "m-latte")

        summary = cart_service.get_summary(pricing_config)

        assert summary.subtotal == Decimal("1430.00")
        assert summary.delivery_fee == Decimal("0.00")
        assert summary.total == Decimal("1430.00")

    def test_summary_with_discount(self, cart_service, pricing_config):
        cart_service.add_item("menu_item", "m-soup")

        summary = cart_service.get_summary(pricing_config, AppliedDiscount(value=Decimal("80")))

        assert summary.discount == Decimal("50.00")
        assert summary.total == Decimal("50.00")

    def test_unresolved_lines_are_dropped(self, cart_service, store, pricing_config):
        cart_service.add_item("menu_item", "m-soup")
        entries = store.get(cart_service.items_key)
        entries.append({"id": "ghost", "item_type": "menu_item", "item_id": "retired", "quantity": 4})
        store.set(cart_service.items_key, entries)

        line_items = cart_service.get_line_items()

        assert "ghost" not in [item.id for item in line_items]
        assert len(line_items) == 1
        assert cart_service.get_summary(pricing_config).subtotal == Decimal("50.00")

    def test_clear(self, cart_service):
        cart_service.add_item("menu_item", "m-soup")

        cart_service.clear()

        assert cart_service.get_entries() == []


class TestSavedForLater:
    """Test cases for the saved-for-later collection"""

    def test_save_for_later_moves_line(self, cart_service):
        entry = cart_service.add_item("menu_item", "m-latte")

        cart_service.save_for_later(entry["id"])

        assert cart_service.get_entries() == []
        assert cart_service.is_saved_for_later(entry["id"])
        assert "saved_at" in cart_service.get_saved_for_later()[0]

    def test_save_twice_keeps_one_copy(self, cart_service, store):
        entry = cart_service.add_item("menu_item", "m-latte")
        cart_service.save_for_later(entry["id"])
        store.set(cart_service.items_key, [entry])

        cart_service.save_for_later(entry["id"])

        assert len(cart_service.get_saved_for_later()) == 1
        assert cart_service.get_entries() == []

    def test_move_to_cart_merges_quantity(self, cart_service):
        saved = cart_service.add_item("menu_item", "m-latte")
        cart_service.update_quantity(saved["id"], 2)
        cart_service.save_for_later(saved["id"])
        cart_service.add_item("menu_item", "m-latte")

        restored = cart_service.move_to_cart(saved["id"])

        assert restored["quantity"] == 3
        assert cart_service.item_count() == 1
        assert cart_service.get_saved_for_later() == []

    def test_move_to_cart_restores_line(self, cart_service):
        saved = cart_service.add_item("menu_item", "m-latte")
        cart_service.save_for_later(saved["id"])

        restored = cart_service.move_to_cart(saved["id"])

        assert restored["id"] == saved["id"]
        assert "saved_at" not in restored

    def test_note_travels_with_saved_line(self, cart_service):
        entry = cart_service.add_item("menu_item", "m-biryani")
        cart_service.set_note(entry["id"], "extra raita")

        cart_service.save_for_later(entry["id"])

        assert cart_service.get_notes() == {}
        assert cart_service.get_saved_for_later()[0]["note"] == "extra raita"

        restored = cart_service.move_to_cart(entry["id"])

        assert "note" not in restored
        assert cart_service.get_note(entry["id"]) == "extra raita"

    def test_move_unknown_saved_item(self, cart_service):
        with pytest.raises(NotFoundError):
            cart_service.move_to_cart("nope")


class TestCartMetadata:
    """Test cases for notes and the selected reward"""

    def test_set_and_clear_note(self, cart_service):
        entry = cart_service.add_item("menu_item", "m-biryani")

        cart_service.set_note(entry["id"], "  less spicy  ")
        assert cart_service.get_note(entry["id"]) == "less spicy"

        cart_service.set_note(entry["id"], "   ")
        assert cart_service.get_note(entry["id"]) is None

    def test_selected_reward(self, cart_service):
        cart_service.select_reward({"id": "dessert", "label": "Complimentary Dessert", "cost": 300})

        assert cart_service.get_selected_reward()["id"] == "dessert"

        cart_service.select_reward(None)
        assert cart_service.get_selected_reward() is None

    def test_clear_metadata(self, cart_service):
        entry = cart_service.add_item("menu_item", "m-biryani")
        cart_service.set_note(entry["id"], "no onions")
        cart_service.select_reward({"id": "dessert"})
        other = cart_service.add_item("menu_item", "m-latte")
        cart_service.save_for_later(other["id"])

        cart_service.clear_metadata()

        assert cart_service.get_notes() == {}
        assert cart_service.get_saved_for_later() == []
        assert cart_service.get_selected_reward() is None
        assert cart_service.item_count() == 1
