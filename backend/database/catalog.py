"""
Vendor Catalog - Database Operations

Shared, cross-tenant frame catalog used as a cache in front of vendor
enrichment.

Modules:
- Matcher chain (match_exact, match_eye_prefix, match_upc, match_fuzzy)
- Hit bookkeeping (record_catalog_hit)
- Catalog writer (cache_catalog_items) - atomic upsert on the natural key
- Statistics (get_catalog_stats, get_vendor_analytics)
"""

import logging
import re
from typing import Callable, Optional

from sqlalchemy import case, distinct, func, or_, true
from sqlalchemy.orm import Session

from .base import dialect_insert, get_session
from .models.catalog import CatalogEntry
from .models.vendor import Vendor

logger = logging.getLogger(__name__)

# Matchers take (session, vendor_id, item) and return an entry or None
CatalogMatcher = Callable[[Session, int, object], Optional[CatalogEntry]]

EYE_TOKEN = re.compile(r"^\s*(\d{2})(?!\d)")


def eye_key(item) -> str:
    """Eye-size value stored in (and compared against) the natural key."""
    return (item.eye_size or item.size or "").strip()


def leading_eye_token(item) -> Optional[str]:
    match = EYE_TOKEN.match(item.eye_size or item.size or "")
    return match.group(1) if match else None


def _identity_filters(vendor_id: int, item) -> list:
    return [
        CatalogEntry.vendor_id == vendor_id,
        func.lower(CatalogEntry.model) == (item.model or "").lower(),
        func.lower(CatalogEntry.color) == (item.color or "").lower(),
    ]


# ============================================================================
# MATCHER CHAIN
# ============================================================================


def match_exact(session: Session, vendor_id: int, item) -> Optional[CatalogEntry]:
    """vendor + model + color (case-insensitive) + identical eye size."""
    return (
        session.query(CatalogEntry)
        .filter(*_identity_filters(vendor_id, item), CatalogEntry.eye_size == eye_key(item))
        .first()
    )


def match_eye_prefix(session: Session, vendor_id: int, item) -> Optional[CatalogEntry]:
    """
    Leading 2-digit eye token against differently formatted sizes.

    '50' matches a stored '50' or '50-18-140' / '50/18/140', never '52-18-140'.
    """
    token = leading_eye_token(item)
    if not token:
        return None
    return (
        session.query(CatalogEntry)
        .filter(
            *_identity_filters(vendor_id, item),
            or_(
                CatalogEntry.eye_size == token,
                CatalogEntry.eye_size.like(f"{token}-%"),
                CatalogEntry.eye_size.like(f"{token}/%"),
            ),
        )
        .order_by(CatalogEntry.id)
        .first()
    )


def match_upc(session: Session, vendor_id: int, item) -> Optional[CatalogEntry]:
    if not item.upc:
        return None
    return (
        session.query(CatalogEntry)
        .filter(CatalogEntry.vendor_id == vendor_id, CatalogEntry.upc == item.upc)
        .first()
    )


def match_fuzzy(session: Session, vendor_id: int, item) -> Optional[CatalogEntry]:
    """
    Model substring + color, ignoring size entirely.

    Known limitation: may return a different size variant of the frame.
    Callers flag these hits as incomplete.
    """
    if not item.model:
        return None
    return (
        session.query(CatalogEntry)
        .filter(
            CatalogEntry.vendor_id == vendor_id,
            CatalogEntry.model.icontains(item.model, autoescape=True),
            func.lower(CatalogEntry.color) == (item.color or "").lower(),
        )
        .order_by(CatalogEntry.times_ordered.desc(), CatalogEntry.id)
        .first()
    )


CATALOG_MATCHERS: list[tuple[str, CatalogMatcher]] = [
    ("exact", match_exact),
    ("eye_prefix", match_eye_prefix),
    ("upc", match_upc),
    ("fuzzy", match_fuzzy),
]


def find_catalog_entry(
    session: Session, vendor_id: int, item, matchers=None
) -> tuple[Optional[CatalogEntry], Optional[str]]:
    """Run the matcher chain; first hit wins. Returns (entry, tier)."""
    for tier, matcher in matchers or CATALOG_MATCHERS:
        entry = matcher(session, vendor_id, item)
        if entry is not None:
            return entry, tier
    return None, None


def record_catalog_hit(session: Session, entry: CatalogEntry) -> None:
    """Count an order against an existing entry."""
    entry.times_ordered = (entry.times_ordered or 0) + 1
    entry.last_updated = func.now()


def catalog_entry_to_dict(entry: CatalogEntry) -> dict:
    return {
        "id": entry.id,
        "vendor_id": entry.vendor_id,
        "vendor_name": entry.vendor_name,
        "brand": entry.brand,
        "collection": entry.collection,
        "model": entry.model,
        "color": entry.color,
        "color_code": entry.color_code,
        "color_name": entry.color_name,
        "eye_size": entry.eye_size,
        "bridge": entry.bridge,
        "temple": entry.temple,
        "full_size": entry.full_size,
        "upc": entry.upc,
        "ean": entry.ean,
        "sku": entry.sku,
        "wholesale_cost": float(entry.wholesale_cost) if entry.wholesale_cost is not None else None,
        "msrp": float(entry.msrp) if entry.msrp is not None else None,
        "material": entry.material,
        "gender": entry.gender,
        "in_stock": entry.in_stock,
        "stock_status": entry.stock_status,
        "api_verified": entry.api_verified,
        "confidence_score": entry.confidence_score,
        "validation_reason": entry.validation_reason,
        "data_source": entry.data_source,
        "times_ordered": entry.times_ordered,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
        "last_updated": entry.last_updated.isoformat() if entry.last_updated else None,
    }


# ============================================================================
# CATALOG WRITER
# ============================================================================

# Attributes refreshed from the incoming item when it carries a value
REFRESHABLE = (
    "vendor_name",
    "brand",
    "collection",
    "color_code",
    "color_name",
    "bridge",
    "temple",
    "full_size",
    "upc",
    "ean",
    "sku",
    "wholesale_cost",
    "msrp",
    "material",
    "gender",
    "in_stock",
    "stock_status",
    "validation_reason",
)


def resolve_data_source(item) -> str:
    if item.data_source:
        return item.data_source
    if item.api_verified:
        return "api"
    if item.enrichment_source == "web_scrape":
        return "web_scrape"
    return "email_parse"


def _entry_values(vendor_id: int, vendor_name: str, item) -> dict:
    confidence = item.confidence_score or (100 if item.api_verified else 0)
    return {
        "vendor_id": vendor_id,
        "vendor_name": vendor_name,
        "brand": item.brand or "",
        "collection": item.collection,
        "model": item.model or "",
        "color": item.color or "",
        "color_code": item.color_code,
        "color_name": item.color_name,
        "eye_size": eye_key(item),
        "bridge": item.bridge,
        "temple": item.temple,
        "full_size": item.full_size,
        "upc": item.upc,
        "ean": item.ean,
        "sku": item.sku,
        "wholesale_cost": item.wholesale_price,
        "msrp": item.msrp,
        "material": item.material,
        "gender": item.gender,
        "in_stock": item.in_stock,
        "stock_status": item.stock_status,
        "api_verified": bool(item.api_verified),
        "confidence_score": max(0, min(100, int(confidence))),
        "validation_reason": item.validation_reason,
        "data_source": resolve_data_source(item),
        "times_ordered": 1,
    }


def upsert_catalog_entry(session: Session, vendor_id: int, vendor_name: str, item) -> tuple[int, int]:
    """
    Insert or bump one entry on (vendor_id, model, color, eye_size).

    Returns (entry_id, times_ordered). times_ordered == 1 means a new row.
    """
    insert = dialect_insert(session)
    stmt = insert(CatalogEntry).values(**_entry_values(vendor_id, vendor_name, item))
    excluded = stmt.excluded

    set_ = {
        col: func.coalesce(getattr(excluded, col), getattr(CatalogEntry, col))
        for col in REFRESHABLE
    }
    for col in ("vendor_name", "brand"):
        set_[col] = func.coalesce(func.nullif(getattr(excluded, col), ""), getattr(CatalogEntry, col))
    set_.update(
        {
            "times_ordered": CatalogEntry.times_ordered + 1,
            "last_updated": func.now(),
            "api_verified": or_(CatalogEntry.api_verified, excluded.api_verified),
            "confidence_score": case(
                (excluded.confidence_score > CatalogEntry.confidence_score, excluded.confidence_score),
                else_=CatalogEntry.confidence_score,
            ),
            # Never downgrade an API-verified entry's provenance
            "data_source": case(
                (CatalogEntry.api_verified == true(), CatalogEntry.data_source),
                else_=excluded.data_source,
            ),
        }
    )

    stmt = stmt.on_conflict_do_update(
        index_elements=["vendor_id", "model", "color", "eye_size"],
        set_=set_,
    ).returning(CatalogEntry.id, CatalogEntry.times_ordered)

    row = session.execute(stmt).one()
    return row.id, row.times_ordered


def refresh_catalog_entry(session: Session, entry_id: int, vendor_name: str, item) -> bool:
    """Write freshly enriched attributes onto an existing entry (no count bump)."""
    entry = session.get(CatalogEntry, entry_id)
    if entry is None:
        return False
    values = _entry_values(entry.vendor_id, vendor_name, item)
    for col in REFRESHABLE:
        if values[col] not in (None, ""):
            setattr(entry, col, values[col])
    if values["api_verified"]:
        entry.api_verified = True
        entry.data_source = values["data_source"]
    entry.confidence_score = max(entry.confidence_score or 0, values["confidence_score"])
    entry.last_updated = func.now()
    return True


def cache_catalog_items(vendor_id: Optional[int], vendor_name: str, items: list) -> dict:
    """
    Write parsed/enriched items back into the shared catalog.

    - Items already served from the catalog are skipped unless enrichment
      produced new data for them this run.
    - Items with neither brand nor model are skipped.
    - Without a vendor id nothing is written.

    Args:
        vendor_id: vendors.id of the detected vendor
        vendor_name: Display name stored alongside the entry
        items: ParsedLineItem list (annotated by reconciliation/enrichment)

    Returns:
        {'cached': new rows, 'updated': existing rows bumped, 'skipped': n}
    """
    stats = {"cached": 0, "updated": 0, "skipped": 0}
    if vendor_id is None:
        stats["skipped"] = len(items)
        logger.warning("Catalog write skipped: vendor id missing")
        return stats

    with get_session() as session:
        for item in items:
            if not (item.brand or item.model):
                stats["skipped"] += 1
                continue

            if item.cached:
                if item.enriched and item.match_tier != "fuzzy" and item.catalog_id:
                    if refresh_catalog_entry(session, item.catalog_id, vendor_name, item):
                        stats["updated"] += 1
                        continue
                if not (item.enriched and item.match_tier == "fuzzy"):
                    stats["skipped"] += 1
                    continue

            entry_id, times_ordered = upsert_catalog_entry(session, vendor_id, vendor_name, item)
            item.catalog_id = entry_id
            if times_ordered == 1:
                stats["cached"] += 1
            else:
                stats["updated"] += 1

        session.commit()

    logger.info(
        f"Catalog write for vendor {vendor_id}: {stats['cached']} new, "
        f"{stats['updated']} updated, {stats['skipped']} skipped"
    )
    return stats


# ============================================================================
# LOOKUPS AND STATISTICS
# ============================================================================


def get_catalog_entry(entry_id: int) -> Optional[dict]:
    with get_session() as session:
        entry = session.get(CatalogEntry, entry_id)
        return catalog_entry_to_dict(entry) if entry else None


def get_catalog_entries(vendor_id: int = None, brand: str = None, limit: int = 100) -> list:
    with get_session() as session:
        query = session.query(CatalogEntry)
        if vendor_id is not None:
            query = query.filter(CatalogEntry.vendor_id == vendor_id)
        if brand:
            query = query.filter(func.lower(CatalogEntry.brand) == brand.lower())
        entries = (
            query.order_by(CatalogEntry.times_ordered.desc(), CatalogEntry.id)
            .limit(limit)
            .all()
        )
        return [catalog_entry_to_dict(e) for e in entries]


def get_catalog_stats() -> dict:
    """Catalog-wide totals plus a per-brand breakdown."""
    with get_session() as session:
        totals = session.query(
            func.count(CatalogEntry.id).label("total_items"),
            func.count(distinct(CatalogEntry.vendor_id)).label("total_vendors"),
            func.count(distinct(CatalogEntry.brand)).label("total_brands"),
            func.coalesce(func.sum(CatalogEntry.times_ordered), 0).label("total_orders"),
            func.sum(case((CatalogEntry.api_verified == true(), 1), else_=0)).label("verified"),
        ).one()

        rows = (
            session.query(
                CatalogEntry.brand,
                func.count(CatalogEntry.id).label("unique_items"),
                func.coalesce(func.sum(CatalogEntry.times_ordered), 0).label("total_orders"),
            )
            .group_by(CatalogEntry.brand)
            .order_by(func.sum(CatalogEntry.times_ordered).desc(), CatalogEntry.brand)
            .all()
        )

        return {
            "totalItems": int(totals.total_items or 0),
            "totalVendors": int(totals.total_vendors or 0),
            "totalBrands": int(totals.total_brands or 0),
            "totalOrders": int(totals.total_orders or 0),
            "verifiedItems": int(totals.verified or 0),
            "brands": [
                {
                    "brand": row.brand,
                    "uniqueItems": int(row.unique_items),
                    "totalOrders": int(row.total_orders),
                    "avgOrdersPerItem": round(int(row.total_orders) / int(row.unique_items), 2)
                    if row.unique_items
                    else 0,
                }
                for row in rows
            ],
        }


def _money(value) -> Optional[float]:
    return round(float(value), 2) if value is not None else None


def get_vendor_analytics(vendor_id: int) -> Optional[dict]:
    """Per-brand pricing, stock and popularity figures for one vendor."""
    with get_session() as session:
        vendor = session.get(Vendor, vendor_id)
        if vendor is None:
            return None

        rows = (
            session.query(
                CatalogEntry.brand,
                func.count(CatalogEntry.id).label("product_count"),
                func.count(distinct(CatalogEntry.model)).label("model_count"),
                func.coalesce(func.sum(CatalogEntry.times_ordered), 0).label("total_orders"),
                func.avg(CatalogEntry.wholesale_cost).label("avg_wholesale"),
                func.min(CatalogEntry.wholesale_cost).label("min_wholesale"),
                func.max(CatalogEntry.wholesale_cost).label("max_wholesale"),
                func.avg(CatalogEntry.msrp).label("avg_msrp"),
                func.sum(case((CatalogEntry.in_stock == true(), 1), else_=0)).label("in_stock"),
            )
            .filter(CatalogEntry.vendor_id == vendor_id)
            .group_by(CatalogEntry.brand)
            .order_by(CatalogEntry.brand)
            .all()
        )

        overall = (
            session.query(func.avg(CatalogEntry.wholesale_cost))
            .filter(CatalogEntry.vendor_id == vendor_id)
            .scalar()
        )

        brands = []
        for row in rows:
            in_stock = int(row.in_stock or 0)
            brands.append(
                {
                    "brand": row.brand,
                    "productCount": int(row.product_count),
                    "modelCount": int(row.model_count),
                    "totalOrders": int(row.total_orders),
                    "avgWholesale": _money(row.avg_wholesale),
                    "minWholesale": _money(row.min_wholesale),
                    "maxWholesale": _money(row.max_wholesale),
                    "avgMsrp": _money(row.avg_msrp),
                    "inStockCount": in_stock,
                    "inStockPercentage": round(in_stock * 100 / int(row.product_count))
                    if row.product_count
                    else 0,
                }
            )

        return {
            "vendorId": vendor.id,
            "vendorName": vendor.name,
            "totalProducts": sum(b["productCount"] for b in brands),
            "totalBrands": len(brands),
            "totalOrders": sum(b["totalOrders"] for b in brands),
            "avgWholesaleCost": _money(overall),
            "brands": brands,
        }
