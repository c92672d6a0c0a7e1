"""
Vendor identity models.

Maps to:
- vendors table - Canonical supplier identities with detection signatures

Detection signatures are data: adding a vendor means adding a row (and, if it
should be parsed, a registered parser), never new detector logic.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from database.base import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite test database)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Vendor(Base):
    """
    A supplier whose order-confirmation emails are parsed.

    Detection fields:
    - domains: sender domains (tier 1, weight 95)
    - signatures: exact body substrings (tier 2, weight 90)
    - subject_keywords / body_keywords: weak keywords (tier 3, weight 75)
    - required_matches: keyword hits needed before tier 3 classifies
    """

    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(100), nullable=False)

    # Detection signatures
    domains = Column(JSONType, nullable=False, default=list)
    signatures = Column(JSONType, nullable=False, default=list)
    subject_keywords = Column(JSONType, nullable=False, default=list)
    body_keywords = Column(JSONType, nullable=False, default=list)
    required_matches = Column(Integer, nullable=False, default=2, server_default="2")

    # Strategy selection
    parser_code = Column(String(50), nullable=True)
    enrichment_strategy = Column(
        String(20), nullable=False, default="none", server_default="none"
    )
    requires_pdf = Column(Boolean, nullable=False, default=False, server_default="false")

    is_active = Column(Boolean, nullable=False, default=True, server_default="true")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "enrichment_strategy IN ('api', 'web_scrape', 'none')",
            name="vendors_enrichment_strategy_check",
        ),
        CheckConstraint("required_matches >= 2", name="vendors_required_matches_check"),
        Index("idx_vendors_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Vendor(id={self.id}, code={self.code}, name={self.name})>"
