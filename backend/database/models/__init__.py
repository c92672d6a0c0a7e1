# backend/database/models/__init__.py
"""SQLAlchemy models for all database tables."""

from .catalog import CatalogEntry
from .inventory import InventoryItem, InventoryOrder, ProcessedEmail
from .vendor import Vendor

__all__ = [
    "Vendor",
    "CatalogEntry",
    "InventoryOrder",
    "InventoryItem",
    "ProcessedEmail",
]
