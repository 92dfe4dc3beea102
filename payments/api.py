"""HTTP routes for Xendit payment callbacks.

Status codes are chosen for the processor's retry policy:
- 200: handled, including events we deliberately ignore and duplicates
- 400: body we can never make sense of (do not retry)
- 401: bad or missing callback token
- 404: invoice not found (flag, do not retry forever)
- 500: reconciliation rolled back; redelivery is safe and expected
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.base import success_response, error_response, ErrorCodes
from payments.exceptions import (
    AuthenticationFailure,
    DuplicateEvent,
    InvoiceNotFound,
    MalformedPayload,
    PersistenceFailure,
    UnsupportedEvent,
    WebhookError,
)
from payments.service import WebhookService
from payments.types import ReconciliationResult
from payments.verification import CALLBACK_TOKEN_HEADER

logger = logging.getLogger(__name__)


def _error(status_code: int, code: str, message: str, request_id: str | None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, request_id).model_dump(mode="json"),
    )


def _ok(data: dict, request_id: str | None) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content=success_response(data, request_id).model_dump(mode="json"),
    )


def report_outcome(outcome: ReconciliationResult | WebhookError, request_id: str | None = None) -> JSONResponse:
    """Map a pipeline result or typed failure onto the HTTP response."""
    if isinstance(outcome, ReconciliationResult):
        return _ok({
            "message": "Payment processed successfully",
            "processed": True,
            "invoice_id": outcome.invoice_id,
            "invoice_number": outcome.invoice_number,
            "payment_id": outcome.payment_id,
            "transaction_id": outcome.transaction_id,
        }, request_id)

    if isinstance(outcome, AuthenticationFailure):
        logger.warning("Rejected callback with invalid token")
        return _error(401, ErrorCodes.INVALID_TOKEN, "Invalid callback token", request_id)

    if isinstance(outcome, UnsupportedEvent):
        logger.info("Ignoring callback: %s", outcome)
        return _ok({"message": str(outcome), "processed": False}, request_id)

    if isinstance(outcome, DuplicateEvent):
        return _ok({
            "message": "Payment already processed",
            "processed": False,
            "invoice_id": outcome.invoice_id,
        }, request_id)

    if isinstance(outcome, MalformedPayload):
        logger.warning("Rejected malformed callback: %s", outcome)
        return _error(400, ErrorCodes.INVALID_PAYLOAD, str(outcome), request_id)

    if isinstance(outcome, InvoiceNotFound):
        return _error(404, ErrorCodes.NOT_FOUND, str(outcome), request_id)

    if isinstance(outcome, PersistenceFailure):
        return _error(500, ErrorCodes.INTERNAL_ERROR, "Failed to process webhook", request_id)

    logger.error("Unmapped webhook outcome %s", type(outcome).__name__)
    return _error(500, ErrorCodes.INTERNAL_ERROR, "Failed to process webhook", request_id)


def create_xendit_router(service: WebhookService) -> APIRouter:
    """Create Xendit webhook router with injected service."""
    router = APIRouter(tags=["webhooks"])

    async def _handle(request: Request) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        token = request.headers.get(CALLBACK_TOKEN_HEADER)
        body = await request.body()

        try:
            result = await run_in_threadpool(service.handle_callback, token, body)
        except WebhookError as e:
            return report_outcome(e, request_id)

        return report_outcome(result, request_id)

    @router.post("/xendit")
    async def xendit_event_callback(request: Request):
        """Event-shaped callbacks ({"event": "invoice.paid", "data": {...}})."""
        return await _handle(request)

    @router.post("/xendit/payment")
    async def xendit_payment_callback(request: Request):
        """Status-shaped callbacks ({"status": "PAID", ...}), also used by the notification relay."""
        return await _handle(request)

    return router
