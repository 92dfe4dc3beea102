"""
Payload interpretation for Xendit callbacks.

Xendit reaches us with two body shapes:

- status-shaped (invoice callback, also what the notification relay
  forwards): {"status": "PAID", "description": "Payment for Invoice #...",
  "external_id": "...", "amount": ..., "paid_at": ...}
- event-shaped: {"event": "invoice.paid", "data": {"id": ..., "external_id":
  ..., "amount": ..., "paid_at": ..., "currency": ...}}

Which internal invoice a callback means is decided by a fixed, ordered list
of adapters. Each one recognises a single field convention and either
returns an InvoiceReference or None; the first hit wins.
"""

import logging
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError

from payments.exceptions import MalformedPayload, UnsupportedEvent
from payments.types import (
    InterpretedCallback,
    MAX_INVOICE_ID,
    InvoiceReference,
    PaymentEvent,
    ReferenceSource,
)
from utils.timezone import now_utc, parse_iso

logger = logging.getLogger(__name__)

PAID_STATUS = "PAID"
PAID_EVENT = "invoice.paid"

DESCRIPTION_MARKER = "Payment for Invoice #"
_EXTERNAL_ID_PATTERN = re.compile(r"^inv-(\d+)-(.*)$", re.DOTALL)
_COMPACT_INVOICE_NUMBER = re.compile(r"^(INV)(\d{8})(\d+)$")


def _body(payload: dict[str, Any]) -> dict[str, Any]:
    """Fields of the payment itself: data{} for event-shaped callbacks, else the top level."""
    data = payload.get("data")
    if "event" in payload and isinstance(data, dict):
        return data
    return payload


def _field(payload: dict[str, Any], name: str) -> Any:
    """Look a field up at the top level first, then under data{}."""
    if payload.get(name) is not None:
        return payload[name]
    data = payload.get("data")
    if isinstance(data, dict):
        return data.get(name)
    return None


def is_completed_payment(payload: dict[str, Any]) -> bool:
    """Only PAID / invoice.paid callbacks move money. PENDING, EXPIRED, SETTLED, ... do not."""
    return payload.get("status") == PAID_STATUS or payload.get("event") == PAID_EVENT


def recover_invoice_number(compact: str) -> str | None:
    """
    Turn the alphanumeric tail of an external_id back into an invoice number.

    INV20250506523 -> INV-20250506-523. Anything else is returned unchanged;
    an empty tail yields None.
    """
    if not compact:
        return None
    return _COMPACT_INVOICE_NUMBER.sub(r"\1-\2-\3", compact)


def build_external_id(invoice_id: int, invoice_number: str) -> str:
    """
    external_id sent to Xendit when a payment link is created.

    Must stay in sync with ExternalIdAdapter: inv-{id}-{number without
    punctuation}.
    """
    compact = re.sub(r"[^a-zA-Z0-9]", "", invoice_number)
    return f"inv-{invoice_id}-{compact}"


class DescriptionAdapter:
    """'Payment for Invoice #INV-20250506-523' -> invoice number INV-20250506-523."""

    source = ReferenceSource.DESCRIPTION

    def try_extract(self, payload: dict[str, Any]) -> InvoiceReference | None:
        description = _field(payload, "description")
        if not isinstance(description, str) or DESCRIPTION_MARKER not in description:
            return None

        invoice_number = description.split(DESCRIPTION_MARKER, 1)[1].strip()
        if not invoice_number:
            return None

        return InvoiceReference(source=self.source, invoice_number=invoice_number)


class ExternalIdAdapter:
    """'inv-32-INV20250506523' -> invoice id 32 (number INV-20250506-523 for display)."""

    source = ReferenceSource.EXTERNAL_ID

    def try_extract(self, payload: dict[str, Any]) -> InvoiceReference | None:
        external_id = _field(payload, "external_id")
        if not isinstance(external_id, str):
            return None

        match = _EXTERNAL_ID_PATTERN.match(external_id)
        if match is None:
            return None

        invoice_id = int(match.group(1))
        if not 1 <= invoice_id <= MAX_INVOICE_ID:
            return None

        return InvoiceReference(
            source=self.source,
            invoice_id=invoice_id,
            invoice_number=recover_invoice_number(match.group(2)),
        )


# Priority order matters: description first, external_id second.
ADAPTERS = (DescriptionAdapter(), ExternalIdAdapter())


def extract_invoice_reference(payload: dict[str, Any], adapters=ADAPTERS) -> InvoiceReference:
    """
    Run adapters in order and return the first reference found.

    Raises:
        MalformedPayload: No adapter recognised the payload
    """
    for adapter in adapters:
        reference = adapter.try_extract(payload)
        if reference is not None:
            return reference

    raise MalformedPayload("Could not extract invoice reference from description or external_id")


def _parse_amount(body: dict[str, Any]) -> Decimal:
    raw = body.get("paid_amount")
    if raw is None:
        raw = body.get("amount")
    if raw is None or isinstance(raw, bool):
        raise MalformedPayload("Payment amount missing")

    # str() first so 250.5 becomes Decimal("250.5"), not its binary expansion
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation:
        raise MalformedPayload(f"Payment amount is not a number: {raw!r}")

    if not amount.is_finite() or amount <= 0:
        raise MalformedPayload(f"Payment amount must be positive: {raw!r}")
    return amount


def _parse_paid_at(body: dict[str, Any]) -> datetime | None:
    """Processor timestamp from the body, or None when the callback has none."""
    raw = body.get("paid_at") or body.get("updated")
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise MalformedPayload(f"paid_at is not a timestamp: {raw!r}")

    try:
        return parse_iso(raw)
    except ValueError as e:
        raise MalformedPayload(f"paid_at is not a valid ISO 8601 timestamp: {raw!r}") from e


def _processor_reference(
    payload: dict[str, Any],
    reference: InvoiceReference,
    amount: Decimal,
    body_paid_at: datetime | None,
) -> str:
    """
    Idempotency key for this payment occurrence.

    Event-shaped: data.id. Status-shaped: payment_id, else the Xendit invoice
    id, else external_id. If the callback carries none of these, a key is
    derived from the invoice reference, the body's own timestamp (when it has
    one) and the amount, so redeliveries of the same body collapse onto one
    payment. The receipt time never takes part in the key.
    """
    body = _body(payload)
    for name in ("payment_id", "id", "external_id"):
        value = body.get(name)
        if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value).strip():
            return str(value).strip()

    parts = ["derived", reference.source.value, reference.describe()]
    if body_paid_at is not None:
        parts.append(body_paid_at.isoformat())
    parts.append(str(amount))
    return ":".join(parts)


def interpret_callback(payload: Any) -> InterpretedCallback:
    """
    Turn a raw callback body into an invoice reference and a payment event.

    Raises:
        MalformedPayload: Body is not an object, no invoice reference, or
            amount/timestamp unusable
        UnsupportedEvent: Not a completed-payment callback
    """
    if not isinstance(payload, dict):
        raise MalformedPayload("Callback body must be a JSON object")

    if not is_completed_payment(payload):
        raise UnsupportedEvent(payload.get("event") or payload.get("status"))

    reference = extract_invoice_reference(payload)

    body = _body(payload)
    amount = _parse_amount(body)
    body_paid_at = _parse_paid_at(body)
    currency = body.get("currency")

    paid_at = body_paid_at
    if paid_at is None:
        logger.warning("Callback has no paid_at/updated timestamp, using receipt time")
        paid_at = now_utc()

    try:
        event = PaymentEvent(
            processor_reference=_processor_reference(payload, reference, amount, body_paid_at),
            amount=amount,
            currency=currency if isinstance(currency, str) and currency else None,
            paid_at=paid_at,
            payment_method=body.get("payment_method") if isinstance(body.get("payment_method"), str) else None,
            payment_channel=body.get("payment_channel") if isinstance(body.get("payment_channel"), str) else None,
        )
    except ValidationError as e:
        raise MalformedPayload(f"Invalid payment data: {e.errors()[0]['msg']}") from e

    return InterpretedCallback(reference=reference, event=event)
