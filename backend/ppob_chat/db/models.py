"""
SQLAlchemy ORM Models for PPOB Chat

Three independent collections: products (catalog mirror), transactions
(purchase records) and admin_stats (derived daily cache). No foreign key
links transactions to products; transactions carry the resolved SKU.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, CheckConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ProductModel(Base):
    """
    ORM model for products table.

    position preserves catalog insertion order; resolution picks the first
    match in that order.
    """
    __tablename__ = "products"

    id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False, index=True)
    category = Column(String, nullable=False, index=True)
    provider = Column(String, nullable=False)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)
    admin_fee = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("price >= 0", name="product_price_check"),
    )


class TransactionModel(Base):
    """
    ORM model for transactions table.

    payment_ref is uniquely indexed so webhook lookups are a single probe.
    """
    __tablename__ = "transactions"

    id = Column(String, primary_key=True)
    product_id = Column(String)
    product_type = Column(String, nullable=False)
    product_name = Column(String, nullable=False)
    target_number = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    admin_fee = Column(Integer, nullable=False)
    total_amount = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)
    payment_url = Column(String)
    payment_ref = Column(String, unique=True, index=True)
    fulfillment_ref = Column(String)
    fulfillment_status = Column(String)
    serial_number = Column(String)
    needs_review = Column(Boolean, nullable=False, default=False, index=True)
    failure_reason = Column(Text)
    ai_command = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'paid', 'success', 'failed')", name="status_check"),
        CheckConstraint("total_amount = amount + admin_fee", name="total_amount_check"),
    )


class AdminStatsModel(Base):
    """
    ORM model for admin_stats table.

    Cache of the last computation per day; overwritten on every read.
    """
    __tablename__ = "admin_stats"

    date = Column(String, primary_key=True)  # YYYY-MM-DD
    total_transactions = Column(Integer, nullable=False, default=0)
    total_revenue = Column(Integer, nullable=False, default=0)
    pending_transactions = Column(Integer, nullable=False, default=0)
    failed_transactions = Column(Integer, nullable=False, default=0)
    computed_at = Column(DateTime, nullable=False, default=datetime.utcnow)
