"""Routes package for API endpoints."""

from routes.catalog import catalog_bp
from routes.emails import emails_bp
from routes.health import health_bp
from routes.inventory import inventory_bp

__all__ = [
    "emails_bp",
    "catalog_bp",
    "inventory_bp",
    "health_bp",
]
