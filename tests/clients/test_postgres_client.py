"""Tests for PostgresClient - needs TEST_DATABASE_URL."""

import psycopg2
import pytest

from utils.company_context import company_context


class TestPostgresClientInit:
    """Connection pool initialization."""

    def test_creates_pool_with_valid_url(self, db):
        assert db.execute_scalar("SELECT 1") == 1


class TestCompanySetting:
    """app.current_company_id follows the contextvar."""

    def test_sets_company_from_contextvar(self, db, test_company_id):
        with company_context(test_company_id):
            result = db.execute_scalar("SELECT current_setting('app.current_company_id', true)")
        assert result == str(test_company_id)

    def test_empty_without_company(self, db):
        result = db.execute_scalar("SELECT current_setting('app.current_company_id', true)")
        assert result == ""


class TestExecuteMethods:
    """Query execution methods."""

    def test_execute_returns_list_of_dicts(self, db):
        assert db.execute("SELECT 1 as num, 'hello' as word") == [{"num": 1, "word": "hello"}]

    def test_execute_empty_returns_empty_list(self, db):
        assert db.execute("SELECT 1 WHERE false") == []

    def test_execute_single_no_rows_returns_none(self, db):
        assert db.execute_single("SELECT 1 WHERE false") is None

    def test_execute_scalar_no_rows_returns_none(self, db):
        assert db.execute_scalar("SELECT 1 WHERE false") is None


class TestTransaction:
    """Multi-statement transactions."""

    def _insert_account(self, executor, name):
        return executor.execute(
            "INSERT INTO accounts (company_id, name, type, current_balance) "
            "VALUES (1, %s, 'bank', 0) RETURNING id",
            (name,),
        )[0]["id"]

    def test_commits_on_clean_exit(self, clean_db):
        with clean_db.transaction() as tx:
            self._insert_account(tx, "A")
            self._insert_account(tx, "B")

        assert clean_db.execute_scalar("SELECT count(*) FROM accounts") == 2

    def test_rolls_back_on_error(self, clean_db):
        with pytest.raises(RuntimeError):
            with clean_db.transaction() as tx:
                self._insert_account(tx, "A")
                raise RuntimeError("abort")

        assert clean_db.execute_scalar("SELECT count(*) FROM accounts") == 0

    def test_statement_timeout_applies(self, clean_db):
        with pytest.raises(psycopg2.errors.QueryCanceled):
            with clean_db.transaction(timeout_ms=100) as tx:
                tx.execute("SELECT pg_sleep(1)")
