"""Tests for utils/company_context.py - tenant propagation via contextvars."""

import pytest

from utils.company_context import (
    get_current_company_id,
    set_current_company_id,
    clear_current_company_id,
    company_context,
)


class TestGetCurrentCompanyId:

    def test_raises_without_set(self):
        clear_current_company_id()
        with pytest.raises(RuntimeError, match="No company context"):
            get_current_company_id()


class TestSetAndClear:

    def test_set_then_get(self):
        set_current_company_id(7)
        assert get_current_company_id() == 7
        clear_current_company_id()

    def test_clear_then_get_raises(self):
        set_current_company_id(7)
        clear_current_company_id()
        with pytest.raises(RuntimeError):
            get_current_company_id()


class TestCompanyContextManager:

    def test_sets_and_clears(self):
        clear_current_company_id()

        with company_context(3):
            assert get_current_company_id() == 3

        with pytest.raises(RuntimeError):
            get_current_company_id()

    def test_restores_previous(self):
        with company_context(1):
            with company_context(2):
                assert get_current_company_id() == 2
            assert get_current_company_id() == 1

    def test_clears_on_exception(self):
        """A failed reconciliation must not leak its tenant into the next request."""
        clear_current_company_id()

        with pytest.raises(ValueError):
            with company_context(5):
                raise ValueError("boom")

        with pytest.raises(RuntimeError):
            get_current_company_id()
