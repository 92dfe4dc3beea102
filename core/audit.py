"""
Audit trail for ledger-affecting changes.

Every payment, invoice status change, ledger transaction and balance change
made by the reconciliation pipeline is logged here. The audit log is:
- Append-only (entries never modified or deleted)
- Company-attributed (which tenant the change belongs to)
- Detailed (captures old and new values)

Entries are written through whatever executor the logger is bound to. Bound
to a PostgresTransaction, they commit or roll back together with the change
they describe.
"""

from enum import Enum
from typing import Any
from uuid import uuid4

from psycopg2.extras import Json

from utils.company_context import get_current_company_id
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
    """
    exclude = exclude_fields or {"updated_at"}
    changes = {}

    for key in set(old.keys()) | set(new.keys()):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Audit writer bound to a PostgresClient or PostgresTransaction.

    Always pass model_dump(mode="json") output so decimals and datetimes are
    stored as JSON-compatible strings.

    Usage:
        with db.transaction() as tx:
            audit = AuditLogger(tx)
            audit.log_change(
                entity_type="payment",
                entity_id=payment.id,
                action=AuditAction.CREATE,
                changes={"created": payment.model_dump(mode="json")},
            )
    """

    def __init__(self, executor):
        self.executor = executor

    def log_change(
        self,
        entity_type: str,
        entity_id: int,
        action: AuditAction,
        changes: dict[str, Any],
        company_id: int | None = None
    ) -> None:
        """
        Log an entity change.

        Args:
            entity_type: "invoice", "payment", "transaction" or "account"
            entity_id: ID of the entity
            action: The action performed
            changes: The changes made (format depends on action)
            company_id: Owning company (defaults to current context)

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {full entity data at deletion}}
        """
        if company_id is None:
            company_id = get_current_company_id()

        self.executor.execute(
            """
            INSERT INTO audit_log (id, company_id, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                uuid4(),
                company_id,
                entity_type,
                entity_id,
                action.value,
                Json(changes),
                now_utc()
            )
        )

    def get_entity_history(self, entity_type: str, entity_id: int) -> list[dict[str, Any]]:
        """Full audit history for an entity, newest first."""
        return self.executor.execute(
            """
            SELECT id, company_id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (entity_type, entity_id)
        )
