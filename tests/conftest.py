"""Shared test fixtures for the ledger webhook test suite."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton so no test inherits cached secrets
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from utils.company_context import clear_current_company_id


SCHEMA_PATH = Path(__file__).parent.parent / "db" / "schema.sql"

# Primary test company - use for single-tenant tests
TEST_COMPANY_ID = 1

# Secondary test company - use for tenant isolation tests
TEST_COMPANY_B_ID = 2


# =============================================================================
# COMPANY CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_company_context():
    """Ensure clean company context before and after each test."""
    clear_current_company_id()
    yield
    clear_current_company_id()


@pytest.fixture
def test_company_id() -> int:
    return TEST_COMPANY_ID


@pytest.fixture
def test_company_b_id() -> int:
    return TEST_COMPANY_B_ID


# =============================================================================
# DATABASE FIXTURES (integration tests only)
# =============================================================================


@pytest.fixture(scope="session")
def db_url():
    """PostgreSQL URL for integration tests. Skips when not configured."""
    url = os.getenv("TEST_DATABASE_URL")
    if not url:
        pytest.skip("TEST_DATABASE_URL not set - skipping PostgreSQL integration tests")
    return url


@pytest.fixture(scope="session")
def db(db_url):
    """Session-scoped PostgresClient with the schema applied."""
    from clients.postgres_client import PostgresClient

    client = PostgresClient(db_url)
    client.execute(SCHEMA_PATH.read_text())
    yield client
    client.close()


@pytest.fixture
def clean_db(db):
    """Empty every pipeline table before the test."""
    db.execute("""
        TRUNCATE audit_log, payments, transactions, accounts, invoices
        RESTART IDENTITY CASCADE
    """)
    yield db
