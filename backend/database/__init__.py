"""
Database Layer - Public API

This module provides the public interface for all database operations.
It imports and re-exports functions from domain-specific modules.

Usage:
    from database import get_session, cache_catalog_items, confirm_order
    # or
    import database

Organization:
    - base.py: Engine, session factory and dialect helpers
    - vendors.py: Vendor identities and detection pattern seeding
    - catalog.py: Shared vendor catalog (matcher chain, writer, statistics)
    - inventory.py: Tenant inventory lifecycle and email run log
"""

# Core connection utilities (always available)
from .base import Base, SessionLocal, dialect_insert, engine, get_session, init_db

# Shared vendor catalog
from .catalog import (
    CATALOG_MATCHERS,
    cache_catalog_items,
    catalog_entry_to_dict,
    find_catalog_entry,
    get_catalog_entries,
    get_catalog_entry,
    get_catalog_stats,
    get_vendor_analytics,
    record_catalog_hit,
    upsert_catalog_entry,
)

# Inventory lifecycle
from .inventory import (
    archive_item,
    confirm_order,
    get_inventory,
    get_order_receipt_status,
    get_orders,
    get_processed_emails,
    get_unreceived_items,
    log_processed_email,
    mark_item_sold,
    mark_items_received,
    restore_item,
    save_parsed_order,
)

# Vendors
from .vendors import (
    get_vendor_by_code,
    get_vendor_id,
    get_vendor_identities,
    get_vendors,
    seed_vendor_patterns,
)

__all__ = [
    # Core
    "Base",
    "SessionLocal",
    "engine",
    "get_session",
    "init_db",
    "dialect_insert",
    # Catalog
    "CATALOG_MATCHERS",
    "cache_catalog_items",
    "catalog_entry_to_dict",
    "find_catalog_entry",
    "get_catalog_entries",
    "get_catalog_entry",
    "get_catalog_stats",
    "get_vendor_analytics",
    "record_catalog_hit",
    "upsert_catalog_entry",
    # Inventory
    "archive_item",
    "confirm_order",
    "get_inventory",
    "get_order_receipt_status",
    "get_orders",
    "get_processed_emails",
    "get_unreceived_items",
    "log_processed_email",
    "mark_item_sold",
    "mark_items_received",
    "restore_item",
    "save_parsed_order",
    # Vendors
    "get_vendor_by_code",
    "get_vendor_id",
    "get_vendor_identities",
    "get_vendors",
    "seed_vendor_patterns",
]
