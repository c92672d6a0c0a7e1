"""
Services Package - Business Logic Layer

This package contains service modules that encapsulate business logic,
separating it from HTTP routing concerns.

Services can be called from:
- Flask routes (HTTP requests)
- Background tasks (Celery)
- Tests

Available services:
- email_service: Pipeline runs, background jobs, vendor detection
- catalog_service: Shared vendor catalog lookups, write-back and analytics
- inventory_service: Per-account order confirmation and frame lifecycle
"""

from . import catalog_service, email_service, inventory_service

__all__ = [
    'email_service',
    'catalog_service',
    'inventory_service',
]
