"""
Inventory lifecycle models.

Maps to:
- inventory_orders table - One row per (account, vendor, order_number)
- inventory_items table - Tenant-scoped frames derived from parsed line items
- processed_emails table - Outcome log for each pipeline run

Receipt state lives in inventory_items.received_at. Unreceived queries filter
on that column, never on status.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database.base import Base


class InventoryOrder(Base):
    """Order header persisted from a parsed vendor email."""

    __tablename__ = "inventory_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, nullable=False)
    vendor_id = Column(
        Integer, ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True
    )
    vendor_name = Column(String(100), nullable=False)

    order_number = Column(String(100), nullable=False)
    reference_number = Column(String(100), nullable=True)
    customer_name = Column(String(255), nullable=True)
    customer_code = Column(String(50), nullable=True)
    account_number = Column(String(50), nullable=True)
    rep_name = Column(String(100), nullable=True)
    order_date = Column(Date, nullable=True)
    total_pieces = Column(Integer, nullable=False, default=0, server_default="0")

    status = Column(String(20), nullable=False, default="pending", server_default="pending")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "InventoryItem", back_populates="order", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint(
            "account_id", "vendor_name", "order_number", name="inventory_orders_dedup_key"
        ),
        CheckConstraint(
            "status IN ('pending', 'partial', 'confirmed')",
            name="inventory_orders_status_check",
        ),
        Index("idx_inventory_orders_account", "account_id"),
    )

    def __repr__(self) -> str:
        return f"<InventoryOrder(id={self.id}, order={self.order_number}, status={self.status})>"


class InventoryItem(Base):
    """One frame on an order, moving pending -> current -> sold/archived."""

    __tablename__ = "inventory_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, nullable=False)
    order_id = Column(
        Integer, ForeignKey("inventory_orders.id", ondelete="CASCADE"), nullable=False
    )
    vendor_id = Column(
        Integer, ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True
    )
    catalog_id = Column(
        Integer, ForeignKey("vendor_catalog.id", ondelete="SET NULL"), nullable=True
    )

    # Frame identity
    brand = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    color = Column(String(150), nullable=True)
    color_code = Column(String(50), nullable=True)
    size = Column(String(30), nullable=True)
    eye_size = Column(String(10), nullable=True)
    bridge = Column(String(10), nullable=True)
    temple = Column(String(10), nullable=True)
    quantity = Column(Integer, nullable=False, default=1, server_default="1")

    # Enrichment
    upc = Column(String(20), nullable=True)
    sku = Column(String(100), nullable=True)
    wholesale_price = Column(Numeric(10, 2), nullable=True)
    msrp = Column(Numeric(10, 2), nullable=True)
    in_stock = Column(Boolean, nullable=True)
    material = Column(String(100), nullable=True)
    api_verified = Column(Boolean, nullable=False, default=False, server_default="false")
    confidence_score = Column(Integer, nullable=False, default=0, server_default="0")

    # Lifecycle
    status = Column(String(20), nullable=False, default="pending", server_default="pending")
    received_at = Column(DateTime(timezone=True), nullable=True)  # Receipt state
    sold_at = Column(DateTime(timezone=True), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("InventoryOrder", back_populates="items")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'current', 'sold', 'archived')",
            name="inventory_items_status_check",
        ),
        CheckConstraint("quantity >= 1", name="inventory_items_quantity_check"),
        Index("idx_inventory_items_order", "order_id"),
        Index("idx_inventory_items_account_status", "account_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<InventoryItem(id={self.id}, {self.brand} {self.model}, status={self.status})>"


class ProcessedEmail(Base):
    """Outcome of one pipeline run over an inbound email."""

    __tablename__ = "processed_emails"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, nullable=True)
    sender = Column(String(255), nullable=True)
    subject = Column(Text, nullable=True)

    vendor_code = Column(String(50), nullable=True)
    detection_confidence = Column(Integer, nullable=True)
    detection_tier = Column(String(20), nullable=True)

    parse_status = Column(String(20), nullable=False)
    error_code = Column(String(50), nullable=True)
    error_reason = Column(Text, nullable=True)
    items_count = Column(Integer, nullable=False, default=0, server_default="0")
    order_id = Column(
        Integer, ForeignKey("inventory_orders.id", ondelete="SET NULL"), nullable=True
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "parse_status IN ('parsed', 'failed', 'manual_review')",
            name="processed_emails_status_check",
        ),
        Index("idx_processed_emails_status", "parse_status"),
    )

    def __repr__(self) -> str:
        return f"<ProcessedEmail(id={self.id}, vendor={self.vendor_code}, status={self.parse_status})>"
