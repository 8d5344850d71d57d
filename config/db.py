"""
Direct PostgreSQL Database Module

Connection pooling for the tender store and the query catalog, built on
psycopg2's ThreadedConnectionPool so the API threads and the background loops
can share one pool.

Usage:
    from config.db import DatabasePool

    pool = DatabasePool(DATABASE_URL)
    with pool.transaction() as cur:
        cur.execute("SELECT id, keyword FROM search_queries")
        rows = cur.fetchall()
"""

from contextlib import contextmanager
from typing import Iterator, Optional
from urllib.parse import urlparse

import psycopg2
from psycopg2 import pool, extras
from psycopg2.extensions import connection as PgConnection

from config.settings import (
    DATABASE_URL,
    DB_POOL_MAX_CONNECTIONS,
    DB_POOL_MIN_CONNECTIONS,
    DB_SSLMODE,
)
from utils.logging_config import get_logger

logger = get_logger(__name__, "app")


class DatabasePool:
    """Lazily initialised psycopg2 connection pool"""

    def __init__(self, database_url: Optional[str] = None, minconn: int = DB_POOL_MIN_CONNECTIONS,
                 maxconn: int = DB_POOL_MAX_CONNECTIONS, sslmode: Optional[str] = DB_SSLMODE):
        self.database_url = database_url or DATABASE_URL
        self.minconn = minconn
        self.maxconn = maxconn
        self.sslmode = sslmode
        self._pool: pool.ThreadedConnectionPool | None = None

    @property
    def initialized(self) -> bool:
        return self._pool is not None

    def initialize(self):
        """Initialize the database connection pool"""
        if self._pool is not None:
            return

        if not self.database_url:
            raise ValueError("Database not configured. Set the DATABASE_URL environment variable.")

        parsed = urlparse(self.database_url)
        connection_params = {
            "minconn": self.minconn,
            "maxconn": self.maxconn,
            "user": parsed.username or "postgres",
            "password": parsed.password or "",
            "host": parsed.hostname or "localhost",
            "port": str(parsed.port or 5432),
            "dbname": parsed.path.lstrip("/") if parsed.path else "postgres",
            "connect_timeout": 10,
            "keepalives": 1,
            "keepalives_idle": 60,
            "keepalives_interval": 10,
            "keepalives_count": 5,
            "options": "-c statement_timeout=60000 -c timezone=UTC",
        }
        if self.sslmode:
            connection_params["sslmode"] = self.sslmode

        try:
            self._pool = pool.ThreadedConnectionPool(**connection_params)
        except psycopg2.Error as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise
        logger.info(
            f"Database connection pool initialized (host: {connection_params['host']}, "
            f"pool: {self.minconn}-{self.maxconn} connections)"
        )

    def get_connection(self) -> PgConnection:
        """Get a connection from the pool with a health check"""
        if self._pool is None:
            self.initialize()

        conn = self._pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
            conn.rollback()
        except (psycopg2.OperationalError, psycopg2.InterfaceError):
            logger.warning("Stale connection detected, replacing...")
            self._pool.putconn(conn, close=True)
            conn = self._pool.getconn()
        return conn

    def release_connection(self, conn: PgConnection, error: bool = False):
        """Return a connection to the pool"""
        if self._pool is not None and conn is not None:
            try:
                self._pool.putconn(conn, close=error)
            except pool.PoolError as e:
                logger.warning(f"Failed to return connection to pool: {e}")

    @contextmanager
    def transaction(self) -> Iterator[extras.RealDictCursor]:
        """
        Yield a dict cursor inside one transaction.

        Commits when the block exits normally and rolls back on any exception,
        which is re-raised.
        """
        conn = self.get_connection()
        broken = False
        try:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                yield cur
            conn.commit()
        except Exception as e:
            broken = isinstance(e, (psycopg2.OperationalError, psycopg2.InterfaceError))
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            self.release_connection(conn, error=broken)

    def test_connection(self) -> bool:
        """Test if the database connection is working"""
        try:
            with self.transaction() as cur:
                cur.execute("SELECT 1 AS ok")
                return cur.fetchone()["ok"] == 1
        except (psycopg2.Error, ValueError) as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    def close_all(self):
        """Close all connections in the pool"""
        if self._pool is not None:
            try:
                self._pool.closeall()
                logger.info("Closed all database connections")
            except pool.PoolError as e:
                logger.warning(f"Error closing connection pool: {e}")
            finally:
                self._pool = None
