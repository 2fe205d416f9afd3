# backend/modules/loyalty/models/rewards_models.py

from sqlalchemy import (Column, Integer, String, ForeignKey, DateTime, JSON,
                        Numeric, Index, CheckConstraint, UniqueConstraint)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum

from core.database import Base


class PointsTransactionType(str, Enum):
    """Kinds of points ledger entries"""
    EARNED = "earned"
    REDEEMED = "redeemed"
    ADJUSTED = "adjusted"


class LoyaltyAccount(Base):
    """Current points balance for a customer"""
    __tablename__ = "loyalty_accounts"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(String(64), nullable=False, unique=True, index=True)
    points_balance = Column(Integer, nullable=False, default=0)
    lifetime_points_earned = Column(Integer, nullable=False, default=0)
    lifetime_points_spent = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    transactions = relationship("LoyaltyPointsTransaction", back_populates="account")

    __table_args__ = (
        CheckConstraint("points_balance >= 0", name="check_points_balance_non_negative"),
    )

    def __repr__(self):
        return f"<LoyaltyAccount(customer_id={self.customer_id}, balance={self.points_balance})>"


class LoyaltyPointsTransaction(Base):
    """Ledger of every points change"""
    __tablename__ = "loyalty_points_transactions"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("loyalty_accounts.id"), nullable=False, index=True)

    transaction_type = Column(String(20), nullable=False, index=True)  # earned, redeemed, adjusted
    points_change = Column(Integer, nullable=False)  # Positive for earning, negative for spending
    points_balance_before = Column(Integer, nullable=False)
    points_balance_after = Column(Integer, nullable=False)

    reason = Column(String(200), nullable=False)
    order_id = Column(String(64), nullable=True, index=True)
    reward_id = Column(String(64), nullable=True)
    tier = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    account = relationship("LoyaltyAccount", back_populates="transactions")

    __table_args__ = (
        # One earn and one redeem row per order at most
        UniqueConstraint("order_id", "transaction_type", name="uq_points_order_type"),
        Index("ix_loyalty_points_transactions_account_type", "account_id", "transaction_type"),
    )

    def __repr__(self):
        return f"<LoyaltyPointsTransaction(id={self.id}, order={self.order_id}, points={self.points_change})>"


class RewardRedemption(Base):
    """A reward honored on a finalized order; at most one per order"""
    __tablename__ = "reward_redemptions"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(64), nullable=False, unique=True, index=True)
    customer_id = Column(String(64), nullable=False, index=True)
    reward_id = Column(String(64), nullable=False)
    points_cost = Column(Integer, nullable=False)

    # Server-side totals at finalization
    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    points_earned = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=func.now(), nullable=False)

    def __repr__(self):
        return f"<RewardRedemption(order={self.order_id}, reward={self.reward_id}, cost={self.points_cost})>"


class OrderSettlement(Base):
    """Server-side totals and points outcome of a finalized order; one per order"""
    __tablename__ = "order_settlements"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(64), nullable=False, unique=True, index=True)
    customer_id = Column(String(64), nullable=False, index=True)

    currency = Column(String(3), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    discount_code = Column(String(64), nullable=True)
    item_count = Column(Integer, nullable=False, default=0)
    total_quantity = Column(Integer, nullable=False, default=0)
    lines = Column(JSON, nullable=False, default=list)  # Priced lines as settled

    tier = Column(String(50), nullable=False)
    reward_id = Column(String(64), nullable=True)
    points_redeemed = Column(Integer, nullable=False, default=0)
    points_earned = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=func.now(), nullable=False)

    def __repr__(self):
        return f"<OrderSettlement(order={self.order_id}, total={self.total}, earned={self.points_earned})>"
