"""Propagate the owning company through the call stack using contextvars."""

from contextvars import ContextVar
from contextlib import contextmanager

_current_company_id: ContextVar[int | None] = ContextVar("current_company_id", default=None)


def get_current_company_id() -> int:
    """
    Get current company ID from context.

    Raises RuntimeError if no company context is set. Tenant-scoped writes
    (audit entries, ledger rows) must never be attributed to "nobody".
    """
    company_id = _current_company_id.get()
    if company_id is None:
        raise RuntimeError(
            "No company context set. Tenant-scoped code must run inside "
            "company_context() once the owning invoice has been resolved."
        )
    return company_id


def set_current_company_id(company_id: int) -> None:
    """Set current company ID in context."""
    _current_company_id.set(company_id)


def clear_current_company_id() -> None:
    """Clear company context."""
    _current_company_id.set(None)


@contextmanager
def company_context(company_id: int):
    """
    Context manager for temporarily setting company context.

    The webhook pipeline enters this after the invoice lookup, since the
    callback itself carries no tenant identity.
    """
    previous = _current_company_id.get()
    set_current_company_id(company_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_company_id()
        else:
            set_current_company_id(previous)
