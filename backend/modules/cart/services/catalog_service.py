# backend/modules/cart/services/catalog_service.py

"""
Catalog lookups used to price cart lines.

Cart entries reference either a current ``menu_item`` or a legacy ``dish``.
Prices always come from the catalog, never from the stored cart entry.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from .pricing_service import CatalogRef, LineItem, parse_price
from ..models.catalog_models import CatalogEntry

logger = logging.getLogger(__name__)

MENU_ITEM = "menu_item"
DISH = "dish"
ITEM_TYPES = (MENU_ITEM, DISH)


@dataclass(frozen=True)
class CatalogItem:
    id: str
    item_type: str
    name: str
    price: Decimal
    currency: str = "BDT"
    is_available: bool = True


class CatalogSource(ABC):
    """Read access to catalog prices"""

    @abstractmethod
    def get_item(self, item_type: str, item_id: str) -> Optional[CatalogItem]:
        """Return the catalog item or None when it does not exist."""

    def find_item(self, ref: CatalogRef) -> Optional[CatalogItem]:
        """
        Dereference a cart reference, falling back to the other item type.

        Older carts stored menu items under the dish key and vice versa, so
        the referenced type is tried first and the other type second.
        """
        item = self.get_item(ref.item_type, ref.item_id)
        if item is not None:
            return item
        for fallback in ITEM_TYPES:
            if fallback != ref.item_type:
                item = self.get_item(fallback, ref.item_id)
                if item is not None:
                    return item
        return None


class InMemoryCatalog(CatalogSource):
    """Catalog backed by a dict; used for fixtures and guest previews"""

    def __init__(self, items: Iterable[CatalogItem] = ()):
        self._items: Dict[Tuple[str, str], CatalogItem] = {}
        for item in items:
            self.add(item)

    def add(self, item: CatalogItem):
        self._items[(item.item_type, item.id)] = item

    def get_item(self, item_type: str, item_id: str) -> Optional[CatalogItem]:
        return self._items.get((item_type, item_id))


class SqlCatalogSource(CatalogSource):
    """Catalog backed by the ``catalog_entries`` table"""

    def __init__(self, db: Session):
        self.db = db

    def get_item(self, item_type: str, item_id: str) -> Optional[CatalogItem]:
        entry = (
            self.db.query(CatalogEntry)
            .filter(CatalogEntry.item_type == item_type, CatalogEntry.item_id == item_id)
            .first()
        )
        if not entry:
            return None
        return CatalogItem(
            id=entry.item_id,
            item_type=entry.item_type,
            name=entry.name,
            price=parse_price(entry.price),
            currency=entry.currency,
            is_available=bool(entry.is_available),
        )


def resolve_line_items(
    entries: Iterable[Mapping], catalog: CatalogSource
) -> List[LineItem]:
    """
    Turn stored cart entries into priced line items.

    Each entry needs ``id``, ``item_type``, ``item_id`` and ``quantity``.
    Entries whose catalog item no longer exists are skipped rather than
    priced at zero.
    """
    line_items = []
    for entry in entries:
        ref = CatalogRef(item_type=entry["item_type"], item_id=str(entry["item_id"]))
        item = catalog.find_item(ref)
        if item is None:
            logger.warning(
                f"Dropping cart line {entry.get('id')}: "
                f"{ref.item_type} {ref.item_id} not found in catalog"
            )
            continue
        line_items.append(
            LineItem(
                id=str(entry["id"]),
                catalog_ref=CatalogRef(item_type=item.item_type, item_id=item.id),
                quantity=int(entry["quantity"]),
                unit_price=item.price,
                currency=item.currency,
                name=item.name,
            )
        )
    return line_items
