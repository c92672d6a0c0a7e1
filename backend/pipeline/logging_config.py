"""Centralized logging configuration for the vendor email pipeline.

This module provides structured logging with context fields for pipeline runs.
Logs are written to both console (for Docker logs) and rotating files.

Usage:
    from pipeline.logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("Parsed order", extra={'vendor': 'modern_optical', 'order_number': '123'})
"""

import logging
import os
from logging.handlers import RotatingFileHandler

# Log directory from environment or default
# In Docker: /app/logs (mounted volume)
LOG_DIR = os.getenv("LOG_DIR", "/app/logs")


class StructuredFormatter(logging.Formatter):
    """Custom formatter that adds context fields to log records.

    Supports the following context fields via extra={} parameter:
    - email_id: Processed email log ID
    - vendor: Detected vendor code
    - stage: Pipeline stage (detect, parse, reconcile, enrich, cache, persist)
    - order_number: Vendor order number
    """

    def format(self, record):
        """Format log record with context fields."""
        record.email_id = getattr(record, "email_id", None)
        record.vendor = getattr(record, "vendor", None)
        record.stage = getattr(record, "stage", None)
        record.order_number = getattr(record, "order_number", None)

        return super().format(record)


def get_logger(name: str) -> logging.Logger:
    """Get configured logger for pipeline operations.

    Creates a logger with:
    - Console handler for Docker logs (INFO level)
    - Rotating file handler for all logs (DEBUG level)
    - Separate error file handler (ERROR level)

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logging.Logger instance
    """
    logger = logging.getLogger(name)

    # Skip if already configured (prevents duplicate handlers)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    os.makedirs(LOG_DIR, exist_ok=True)

    # ========================================
    # Console Handler (for Docker logs)
    # ========================================
    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(
        StructuredFormatter("[%(levelname)s] [vendor:%(vendor)s] %(message)s")
    )
    logger.addHandler(console)

    # ========================================
    # File Handler (rotating, all levels)
    # ========================================
    file_handler = RotatingFileHandler(
        os.path.join(LOG_DIR, "pipeline.log"),
        maxBytes=10 * 1024 * 1024,  # 10MB per file
        backupCount=30,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        StructuredFormatter(
            "[%(asctime)s] [%(levelname)s] [%(name)s] "
            "[vendor:%(vendor)s stage:%(stage)s order:%(order_number)s] %(message)s"
        )
    )
    logger.addHandler(file_handler)

    # ========================================
    # Error File Handler (errors only)
    # ========================================
    error_handler = RotatingFileHandler(
        os.path.join(LOG_DIR, "pipeline_errors.log"),
        maxBytes=10 * 1024 * 1024,
        backupCount=30,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(
        StructuredFormatter(
            "[%(asctime)s] [%(levelname)s] [%(name)s] "
            "[email:%(email_id)s vendor:%(vendor)s stage:%(stage)s] %(message)s"
        )
    )
    logger.addHandler(error_handler)

    return logger

