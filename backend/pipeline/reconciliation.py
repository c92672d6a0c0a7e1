"""
Catalog Reconciliation

Decides per line item whether the shared catalog already knows the frame.
Hits are merged into the item (cache-first); misses are left for enrichment.

Matching runs the ordered matcher chain from database.catalog:
exact -> eye_prefix -> upc -> fuzzy. Fuzzy hits may be another size variant
of the same frame, so they are marked incomplete with a capped confidence.
"""

from dataclasses import dataclass, field
from typing import Optional

from database.base import get_session
from database.catalog import CATALOG_MATCHERS, find_catalog_entry, record_catalog_hit
from pipeline.logging_config import get_logger
from pipeline.types import ParsedLineItem

logger = get_logger(__name__)

FUZZY_CONFIDENCE_CAP = 60


@dataclass
class CatalogCheckResult:
    items: list[ParsedLineItem] = field(default_factory=list)
    cache_hits: int = 0
    cache_misses: int = 0
    vendor_id_missing: bool = False

    @property
    def hit_rate(self) -> float:
        total = self.cache_hits + self.cache_misses
        return round(self.cache_hits / total * 100, 1) if total else 0.0

    def to_dict(self) -> dict:
        return {
            "items": [item.to_record() for item in self.items],
            "cacheHits": self.cache_hits,
            "cacheMisses": self.cache_misses,
            "hitRate": self.hit_rate,
            "vendorIdMissing": self.vendor_id_missing,
        }


def _as_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def merge_catalog_entry(item: ParsedLineItem, entry, tier: str) -> None:
    """Copy cached attributes onto the item and mark it as a hit."""
    for attr, value in (
        ("upc", entry.upc),
        ("ean", entry.ean),
        ("wholesale_price", _as_float(entry.wholesale_cost)),
        ("msrp", _as_float(entry.msrp)),
        ("material", entry.material),
        ("in_stock", entry.in_stock),
        ("validation_reason", entry.validation_reason),
    ):
        if value is not None:
            setattr(item, attr, value)

    item.api_verified = bool(entry.api_verified)
    item.confidence_score = entry.confidence_score or 0
    item.cached = True
    item.catalog_id = entry.id
    item.match_tier = tier
    item.cache_incomplete = not entry.upc or entry.wholesale_cost is None

    if tier == "fuzzy":
        item.cache_incomplete = True
        item.confidence_score = min(item.confidence_score, FUZZY_CONFIDENCE_CAP)

    item.needs_enrichment = item.cache_incomplete


def _mark_miss(item: ParsedLineItem) -> None:
    item.cached = False
    item.needs_enrichment = True
    item.catalog_id = None
    item.match_tier = None


def check_catalog(vendor_id: Optional[int], items: list[ParsedLineItem], matchers=None) -> CatalogCheckResult:
    """
    Look up each item in the shared catalog.

    Hits bump the entry's times_ordered in the same transaction. Without a
    vendor id every item is a miss.

    Args:
        vendor_id: vendors.id of the detected vendor (None when unknown)
        items: Parsed line items, annotated in place
        matchers: Optional override of the matcher chain

    Returns:
        CatalogCheckResult where cache_hits + cache_misses == len(items)
    """
    result = CatalogCheckResult(items=items)

    if vendor_id is None:
        for item in items:
            _mark_miss(item)
        result.cache_misses = len(items)
        result.vendor_id_missing = True
        logger.warning(
            "Catalog check without vendor id: all items treated as misses",
            extra={"stage": "reconcile"},
        )
        return result

    with get_session() as session:
        for item in items:
            entry, tier = find_catalog_entry(session, vendor_id, item, matchers or CATALOG_MATCHERS)
            if entry is None:
                _mark_miss(item)
                result.cache_misses += 1
                continue

            merge_catalog_entry(item, entry, tier)
            record_catalog_hit(session, entry)
            result.cache_hits += 1
            logger.debug(
                f"Catalog {tier} hit for {item.brand} {item.model} {item.color} -> entry {entry.id}",
                extra={"stage": "reconcile"},
            )
        session.commit()

    logger.info(
        f"Catalog check: {result.cache_hits} hits, {result.cache_misses} misses "
        f"({result.hit_rate}%)",
        extra={"stage": "reconcile"},
    )
    return result
