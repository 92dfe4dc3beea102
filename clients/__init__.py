# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    get_database_url,
    get_xendit_config,
)
from clients.postgres_client import PostgresClient, PostgresTransaction
