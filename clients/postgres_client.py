"""
PostgreSQL client with connection pooling and multi-statement transactions.

Uses psycopg2 with ThreadedConnectionPool. The owning company is read from
the utils.company_context contextvar and pushed to app.current_company_id on
each connection so tenant-aware policies and triggers can see it.

Single-statement helpers (execute, execute_single, ...) commit per call.
Anything that must be all-or-nothing goes through transaction(), which keeps
one connection for the whole block and commits or rolls back at the end.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

from utils.company_context import _current_company_id

logger = logging.getLogger(__name__)

# Global JSONB registration flag
_jsonb_registered = False


def _convert_params(params: Tuple | Dict | None) -> Tuple | Dict | None:
    """Convert UUID objects to strings."""
    if params is None:
        return None

    def convert(value: Any) -> Any:
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, list):
            return [convert(v) for v in value]
        if isinstance(value, tuple):
            return tuple(convert(v) for v in value)
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        return value

    return convert(params)


class PostgresTransaction:
    """
    A group of statements sharing one connection and one commit.

    Obtained from PostgresClient.transaction(); never constructed directly.
    Exposes the same execute* surface as PostgresClient so code written
    against the client (AuditLogger, repositories) can run inside it unchanged.
    """

    def __init__(self, conn):
        self._conn = conn

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(query, _convert_params(params))
            if cur.description:
                return [dict(row) for row in cur.fetchall()]
            return []

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_returning(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute INSERT/UPDATE with RETURNING, return results (no commit)."""
        return self.execute(query, params)


class PostgresClient:
    """
    PostgreSQL client with company context from contextvar.

    Usage:
        db = PostgresClient(database_url)

        row = db.execute_single("SELECT * FROM invoices WHERE id = %s", (32,))

        with db.transaction(timeout_ms=5000) as tx:
            tx.execute("UPDATE invoices SET status = 'paid' ... ")
            tx.execute("INSERT INTO payments ... ")
        # committed here, or rolled back if the block raised
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str):
        self._database_url = database_url
        self._ensure_connection_pool()

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=2,
                    maxconn=20,
                    dsn=self._database_url,
                    connect_timeout=30,
                )

                global _jsonb_registered
                if not _jsonb_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    _jsonb_registered = True

                self._connection_pools[self._database_url] = pool
                logger.info("Connection pool created")

    @contextmanager
    def get_connection(self):
        """Get connection with company context from contextvar."""
        if self._database_url not in self._connection_pools:
            self._ensure_connection_pool()

        pool = self._connection_pools[self._database_url]
        conn = None

        try:
            conn = pool.getconn()
            if conn is None:
                raise RuntimeError("Could not get connection from pool")

            company_id = _current_company_id.get()

            with conn.cursor() as cur:
                if company_id is not None:
                    cur.execute("SET app.current_company_id = %s", (str(company_id),))
                else:
                    cur.execute("SET app.current_company_id = ''")

            yield conn

        finally:
            if conn:
                pool.putconn(conn)

    @contextmanager
    def transaction(self, timeout_ms: int | None = None) -> Iterator[PostgresTransaction]:
        """
        Run a block of statements atomically.

        Commits when the block exits cleanly; rolls back and re-raises on any
        exception. timeout_ms bounds every statement in the block via
        SET LOCAL statement_timeout, so a stuck lock surfaces as
        psycopg2.errors.QueryCanceled instead of hanging the request.
        """
        with self.get_connection() as conn:
            # Discard anything the SET in get_connection left open
            conn.commit()
            try:
                if timeout_ms is not None:
                    with conn.cursor() as cur:
                        cur.execute("SET LOCAL statement_timeout = %s", (int(timeout_ms),))
                yield PostgresTransaction(conn)
                conn.commit()
            except BaseException:
                conn.rollback()
                raise

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        params = _convert_params(params)
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                if cur.description:
                    rows = [dict(row) for row in cur.fetchall()]
                    conn.commit()
                    return rows
                conn.commit()
                return []

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_scalar(self, query: str, params: Tuple | Dict | None = None) -> Any:
        """Execute query, return first value of first row or None."""
        params = _convert_params(params)
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                result = cur.fetchone()
                conn.commit()
                return result[0] if result else None

    def execute_returning(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute INSERT/UPDATE with RETURNING, return results."""
        params = _convert_params(params)
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                conn.commit()
                return [dict(row) for row in cur.fetchall()]

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]

    @classmethod
    def close_all_pools(cls) -> None:
        """Close all connection pools."""
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()
