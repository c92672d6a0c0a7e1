"""Core test fixtures.

Provides reusable fixtures for the Flask test client, a per-test database,
seeded vendor rows, HTTP mocking and sample email loading.

CRITICAL: Environment is configured BEFORE any application module is
imported. Tests run against an in-memory SQLite database, never PostgreSQL.
"""

import os
import tempfile
from pathlib import Path

import pytest
import responses
from flask import Flask

# CRITICAL: Set test mode BEFORE importing database modules
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["ENRICHMENT_ENABLED"] = "false"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="pipeline-logs-")
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"

from config import PipelineConfig  # noqa: E402
from database.base import Base, engine  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def fresh_schema():
    """Fresh schema for every test.

    Tables are created before and dropped after each test so no catalog or
    inventory rows leak between tests.
    """
    from database import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def vendor_ids():
    """Seed the default vendor patterns.

    Returns:
        dict: vendor code -> vendors.id
    """
    from database import get_vendors, seed_vendor_patterns

    seed_vendor_patterns()
    return {v["code"]: v["id"] for v in get_vendors(active_only=False)}


# ============================================================================
# PIPELINE FIXTURES
# ============================================================================


@pytest.fixture
def pipeline_config():
    """Pipeline config with no sleeps between retries or batches."""
    return PipelineConfig(retry_delay=0, batch_delay=0, max_retries=3)


# ============================================================================
# FLASK TEST CLIENT FIXTURES
# ============================================================================


@pytest.fixture(scope="session")
def app() -> Flask:
    """Flask app with test configuration."""
    from app import app as flask_app

    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app: Flask):
    """Flask test client for making HTTP requests.

    Example:
        def test_health_endpoint(client):
            response = client.get('/api/health')
            assert response.status_code == 200
    """
    return app.test_client()


# ============================================================================
# API MOCKING FIXTURES
# ============================================================================


@pytest.fixture
def mock_responses():
    """Enable HTTP request mocking.

    Provides a responses.RequestsMock context manager that intercepts
    all HTTP requests made with the requests library.

    Yields:
        RequestsMock: HTTP request mocking context manager
    """
    with responses.RequestsMock() as rsps:
        yield rsps


# ============================================================================
# TEST DATA HELPERS
# ============================================================================


def load_email_fixture(fixture_name: str) -> str:
    """Load email HTML fixture from the sample_emails directory.

    Args:
        fixture_name: Name of email fixture file (e.g., 'kenmark_order.html')

    Returns:
        str: HTML content of email fixture
    """
    file_path = FIXTURES_DIR / "sample_emails" / fixture_name

    if not file_path.exists():
        raise FileNotFoundError(f"Email fixture not found: {file_path}")

    with open(file_path, encoding="utf-8") as f:
        return f.read()


@pytest.fixture
def sample_email():
    """Loader for sample email fixtures (see load_email_fixture)."""
    return load_email_fixture
