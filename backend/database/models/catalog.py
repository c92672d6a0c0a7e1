"""
Shared vendor catalog model.

Maps to:
- vendor_catalog table - Cross-tenant cache of enriched frame attributes

Uniqueness is enforced on (vendor_id, model, color, eye_size). Text key
columns store '' rather than NULL so the composite key is always comparable.
UPC and fuzzy model+color lookups are used for matching only.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from database.base import Base

DATA_SOURCES = ("api", "web_scrape", "vendor_catalog_match", "email_parse")


class CatalogEntry(Base):
    """
    One vendor+brand+model+color+size combination.

    Created on the first cache miss, updated (times_ordered + 1, last_updated)
    on every later hit or re-cache. Never deleted automatically.
    """

    __tablename__ = "vendor_catalog"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vendor_id = Column(
        Integer, ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False
    )
    vendor_name = Column(String(100), nullable=True)

    # Product identity
    brand = Column(String(100), nullable=False, default="", server_default="")
    collection = Column(String(100), nullable=True)
    model = Column(String(100), nullable=False, default="", server_default="")
    color = Column(String(150), nullable=False, default="", server_default="")
    color_code = Column(String(50), nullable=True)
    color_name = Column(String(150), nullable=True)

    # Size (eye_size may hold "54" or "54-18-140" depending on source)
    eye_size = Column(String(20), nullable=False, default="", server_default="")
    bridge = Column(String(10), nullable=True)
    temple = Column(String(10), nullable=True)
    full_size = Column(String(30), nullable=True)

    # Enriched attributes
    upc = Column(String(20), nullable=True)
    ean = Column(String(20), nullable=True)
    sku = Column(String(100), nullable=True)
    wholesale_cost = Column(Numeric(10, 2), nullable=True)
    msrp = Column(Numeric(10, 2), nullable=True)
    material = Column(String(100), nullable=True)
    gender = Column(String(20), nullable=True)
    in_stock = Column(Boolean, nullable=True)
    stock_status = Column(String(50), nullable=True)

    # Verification metadata
    api_verified = Column(Boolean, nullable=False, default=False, server_default="false")
    confidence_score = Column(Integer, nullable=False, default=0, server_default="0")
    validation_reason = Column(Text, nullable=True)
    data_source = Column(
        String(30), nullable=False, default="email_parse", server_default="email_parse"
    )

    # Popularity
    times_ordered = Column(Integer, nullable=False, default=1, server_default="1")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_updated = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "vendor_id",
            "model",
            "color",
            "eye_size",
            name="vendor_catalog_natural_key",
        ),
        CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 100",
            name="vendor_catalog_confidence_check",
        ),
        CheckConstraint(
            "data_source IN ('api', 'web_scrape', 'vendor_catalog_match', 'email_parse')",
            name="vendor_catalog_data_source_check",
        ),
        Index("idx_vendor_catalog_vendor", "vendor_id"),
        Index("idx_vendor_catalog_upc", "upc"),
        Index("idx_vendor_catalog_brand", "brand"),
    )

    def __repr__(self) -> str:
        return (
            f"<CatalogEntry(id={self.id}, vendor={self.vendor_id}, "
            f"{self.brand} {self.model} {self.color} {self.eye_size})>"
        )
