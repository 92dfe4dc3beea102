"""Application factory for the payment reconciliation service."""

import logging

from fastapi import FastAPI

from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from core.event_bus import EventBus
from payments.api import create_xendit_router
from payments.config import XenditConfig
from payments.service import WebhookService
from payments.store import LedgerStore

logger = logging.getLogger(__name__)


def create_app(config: XenditConfig, store: LedgerStore, event_bus: EventBus | None = None) -> FastAPI:
    """
    Build the FastAPI app with every dependency injected.

    Tests pass an in-memory store and a throwaway config; production passes
    PostgresLedgerStore and XenditConfig.from_vault().
    """
    service = WebhookService(store, config, event_bus)

    app = FastAPI(title="Ledger payment webhooks")
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)
    app.include_router(create_xendit_router(service), prefix="/api/webhooks")

    return app


def create_production_app() -> FastAPI:
    """Wire Vault-backed configuration and the PostgreSQL store (ASGI app factory)."""
    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url
    from core.services.ledger_repository import PostgresLedgerStore

    config = XenditConfig.from_vault()
    store = PostgresLedgerStore(PostgresClient(get_database_url()))
    logger.info("Payment webhook service configured (company filter=%s)", config.company_id)
    return create_app(config, store)
