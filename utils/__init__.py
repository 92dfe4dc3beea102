"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, parse_iso
from utils.company_context import (
    get_current_company_id,
    set_current_company_id,
    clear_current_company_id,
    company_context,
)
