"""
Catalog Service - Business Logic

Exposes the shared vendor catalog:
- Cache-first lookup of parsed items (check_items)
- Write-back of enriched items (cache_items)
- Aggregates with a short Redis cache (get_stats, get_vendor_analytics)

Separates business logic from HTTP routing concerns.
"""

import logging

import cache_manager
import database
from pipeline.reconciliation import check_catalog
from pipeline.types import ParsedLineItem

logger = logging.getLogger(__name__)


def _items_from_payload(items) -> list[ParsedLineItem]:
    if not isinstance(items, list):
        raise ValueError("items must be a list")
    return [ParsedLineItem.from_dict(item) for item in items if isinstance(item, dict)]


def _vendor_id(value):
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError("vendorId must be an integer") from None


def check_items(vendor_id, items) -> dict:
    """
    Look up parsed items in the catalog.

    Returns:
        {items, cacheHits, cacheMisses, hitRate, vendorIdMissing}
    """
    result = check_catalog(_vendor_id(vendor_id), _items_from_payload(items))
    if result.cache_hits:
        # Hits bump times_ordered, which the cached aggregates report
        cache_manager.cache_invalidate_catalog()
    data = result.to_dict()
    data["items"] = [
        {
            **item.to_record(),
            "cached": item.cached,
            "needs_enrichment": item.needs_enrichment,
            "cache_incomplete": item.cache_incomplete,
            "catalog_id": item.catalog_id,
            "match_tier": item.match_tier,
        }
        for item in result.items
    ]
    return data


def cache_items(vendor_id, vendor_name: str, items) -> dict:
    """
    Write items into the catalog.

    Returns:
        {cached, updated, skipped}
    """
    stats = database.cache_catalog_items(
        _vendor_id(vendor_id), vendor_name or "", _items_from_payload(items)
    )
    if stats["cached"] or stats["updated"]:
        cache_manager.cache_invalidate_catalog()
    return stats


@cache_manager.cached("catalog:stats")
def get_stats() -> dict:
    return database.get_catalog_stats()


@cache_manager.cached(
    "catalog:vendor", key_func=lambda vendor_id: f"catalog:vendor:{vendor_id}"
)
def get_vendor_analytics(vendor_id: int):
    """Per-vendor brand analytics, or None for an unknown vendor."""
    return database.get_vendor_analytics(vendor_id)


def get_entries(vendor_id: int = None, brand: str = None, limit: int = 100) -> list:
    limit = max(1, min(int(limit), 500))
    return database.get_catalog_entries(vendor_id=vendor_id, brand=brand, limit=limit)
