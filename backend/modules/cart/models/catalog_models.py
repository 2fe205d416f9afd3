# backend/modules/cart/models/catalog_models.py

from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, UniqueConstraint, Index
from sqlalchemy.sql import func

from core.database import Base


class CatalogEntry(Base):
    """Priced catalog item, either a current menu item or a legacy dish"""
    __tablename__ = "catalog_entries"

    id = Column(Integer, primary_key=True, index=True)
    item_type = Column(String(20), nullable=False)  # menu_item, dish
    item_id = Column(String(64), nullable=False)
    name = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="BDT")
    is_available = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("item_type", "item_id", name="uq_catalog_entries_type_item"),
        Index("ix_catalog_entries_lookup", "item_type", "item_id"),
    )

    def __repr__(self):
        return f"<CatalogEntry(type={self.item_type}, id={self.item_id}, price={self.price})>"
