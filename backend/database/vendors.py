"""
Vendors - Database Operations

Vendor identities and their detection signatures.

Modules:
- Seeding (seed_vendor_patterns) - idempotent upsert of the default patterns
- Lookup (get_vendor_by_code, get_vendor_identities, get_vendors)
"""

import logging
from typing import Optional

from sqlalchemy.sql import func

from pipeline.detector import VendorIdentity, default_identities
from pipeline.vendor_patterns import DEFAULT_VENDOR_PATTERNS

from .base import dialect_insert, get_session
from .models.vendor import Vendor

logger = logging.getLogger(__name__)

SIGNATURE_FIELDS = (
    "name",
    "domains",
    "signatures",
    "subject_keywords",
    "body_keywords",
    "required_matches",
    "parser_code",
    "enrichment_strategy",
    "requires_pdf",
)


def _vendor_to_identity(vendor: Vendor) -> VendorIdentity:
    return VendorIdentity(
        id=vendor.id,
        code=vendor.code,
        name=vendor.name,
        domains=list(vendor.domains or []),
        signatures=list(vendor.signatures or []),
        subject_keywords=list(vendor.subject_keywords or []),
        body_keywords=list(vendor.body_keywords or []),
        required_matches=vendor.required_matches,
        parser_code=vendor.parser_code,
        enrichment_strategy=vendor.enrichment_strategy,
        requires_pdf=vendor.requires_pdf,
    )


def _vendor_to_dict(vendor: Vendor) -> dict:
    return {
        "id": vendor.id,
        "code": vendor.code,
        "name": vendor.name,
        "domains": list(vendor.domains or []),
        "parser_code": vendor.parser_code,
        "enrichment_strategy": vendor.enrichment_strategy,
        "requires_pdf": vendor.requires_pdf,
        "is_active": vendor.is_active,
    }


def seed_vendor_patterns(patterns: Optional[list[dict]] = None) -> int:
    """
    Insert or refresh vendor rows from detection patterns.

    Existing vendors keep their id; their signatures are overwritten.

    Returns:
        Number of vendors written
    """
    patterns = patterns if patterns is not None else DEFAULT_VENDOR_PATTERNS
    if not patterns:
        return 0

    rows = [
        {"code": p["code"], **{name: p.get(name) for name in SIGNATURE_FIELDS if name in p}}
        for p in patterns
    ]

    with get_session() as session:
        insert = dialect_insert(session)
        for row in rows:
            stmt = insert(Vendor).values(**row)
            stmt = stmt.on_conflict_do_update(
                index_elements=["code"],
                set_={
                    **{name: stmt.excluded[name] for name in row if name != "code"},
                    "updated_at": func.now(),
                },
            )
            session.execute(stmt)
        session.commit()

    logger.info(f"Seeded {len(rows)} vendor patterns")
    return len(rows)


def get_vendor_by_code(code: str) -> Optional[dict]:
    with get_session() as session:
        vendor = session.query(Vendor).filter(Vendor.code == code).first()
        return _vendor_to_dict(vendor) if vendor else None


def get_vendor_id(code: str) -> Optional[int]:
    """vendors.id for a code, or None when the vendor is not registered."""
    with get_session() as session:
        return session.query(Vendor.id).filter(Vendor.code == code).scalar()


def get_vendors(active_only: bool = True) -> list:
    with get_session() as session:
        query = session.query(Vendor)
        if active_only:
            query = query.filter(Vendor.is_active.is_(True))
        return [_vendor_to_dict(v) for v in query.order_by(Vendor.name).all()]


def get_vendor_identities() -> list[VendorIdentity]:
    """
    Active vendor identities for the detector.

    Falls back to the built-in patterns (without ids) when the vendors table
    has not been seeded.
    """
    with get_session() as session:
        vendors = (
            session.query(Vendor)
            .filter(Vendor.is_active.is_(True))
            .order_by(Vendor.id)
            .all()
        )
        identities = [_vendor_to_identity(v) for v in vendors]

    if not identities:
        logger.warning("vendors table is empty, using built-in detection patterns")
        return default_identities()
    return identities
