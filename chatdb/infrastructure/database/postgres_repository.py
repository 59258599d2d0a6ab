import asyncio
import threading
from contextlib import contextmanager
from typing import List, Dict, Any, Optional, Sequence
import logging

import psycopg2
from psycopg2 import pool as pg_pool
from psycopg2.extras import RealDictCursor

from chatdb.domain.interfaces import IDatabaseAdapter
from chatdb.domain.entities import RawQueryResult, TableColumnInfo
from chatdb.domain.errors import DatabaseError
from chatdb.domain.schema_text import build_schema_text
from chatdb.infrastructure.database.common import sanitize_schema_name, serialize_rows

logger = logging.getLogger(__name__)


class PostgresAdapter(IDatabaseAdapter):
    """
    Adapter for PostgreSQL databases.

    Connections come from a lazily created ``ThreadedConnectionPool``; every
    connection carries a ``statement_timeout`` so runaway queries are
    cancelled server-side.
    """

    dialect = "postgresql"
    default_schema = "public"

    def __init__(self, connection_string: str, pool_size: int = 5, timeout: float = 10.0):
        self.connection_string = connection_string
        self.pool_size = pool_size
        self.timeout = timeout
        self._pool: Optional[pg_pool.ThreadedConnectionPool] = None
        self._pool_lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(pool_size)

    def _get_pool(self) -> pg_pool.ThreadedConnectionPool:
        """Create the pool on first use"""
        if self._pool is None:
            with self._pool_lock:
                if self._pool is None:
                    logger.info(f"Creating PostgreSQL pool (max {self.pool_size} connections)")
                    try:
                        self._pool = pg_pool.ThreadedConnectionPool(
                            1,
                            self.pool_size,
                            self.connection_string,
                            options=f"-c statement_timeout={int(self.timeout * 1000)}",
                        )
                    except psycopg2.Error as e:
                        raise DatabaseError(str(e).strip(), self.dialect) from e
        return self._pool

    @contextmanager
    def get_connection(self):
        """Borrow a pooled connection; callers beyond the pool size wait for a slot"""
        pool = self._get_pool()
        with self._slots:
            conn = pool.getconn()
            try:
                conn.autocommit = True
                yield conn
            finally:
                pool.putconn(conn)

    def _execute_sync(self, sql: str, schema: str) -> RawQueryResult:
        safe_name = sanitize_schema_name(schema)
        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(f'SET search_path TO "{safe_name}", public')
                    cur.execute(sql)
                    if cur.description is None:
                        return RawQueryResult(columns=[], rows=[], row_count=max(cur.rowcount, 0))
                    columns = [desc[0] for desc in cur.description]
                    rows = serialize_rows([dict(row) for row in cur.fetchall()])
                    return RawQueryResult(columns=columns, rows=rows, row_count=len(rows))
        except psycopg2.Error as e:
            logger.error(f"Database error: {e}")
            raise DatabaseError(str(e).strip(), self.dialect) from e

    async def execute(self, sql: str, schema: Optional[str] = None) -> RawQueryResult:
        """Run ``sql`` with ``search_path`` pointed at ``schema``"""
        return await asyncio.to_thread(self._execute_sync, sql, schema or self.default_schema)

    def _raw_query_sync(self, sql: str, params: Optional[Sequence[Any]]) -> List[Dict[str, Any]]:
        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(sql, tuple(params) if params else None)
                    return [dict(row) for row in cur.fetchall()]
        except psycopg2.Error as e:
            logger.error(f"Database error: {e}")
            raise DatabaseError(str(e).strip(), self.dialect) from e

    async def raw_query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._raw_query_sync, sql, params)

    async def get_columns(self, schema: Optional[str] = None) -> List[TableColumnInfo]:
        """Get columns of every base table in a schema"""
        query = """
            SELECT t.table_name, c.column_name, c.data_type
            FROM information_schema.tables t
            JOIN information_schema.columns c
                ON t.table_name = c.table_name AND t.table_schema = c.table_schema
            WHERE t.table_schema = %s AND t.table_type = 'BASE TABLE'
            ORDER BY t.table_name, c.ordinal_position;
        """
        rows = await self.raw_query(query, (schema or self.default_schema,))
        return [
            TableColumnInfo(
                table_name=row["table_name"],
                column_name=row["column_name"],
                data_type=row["data_type"],
            )
            for row in rows
        ]

    async def list_schemas(self) -> List[str]:
        """Get all available schemas"""
        query = """
            SELECT schema_name
            FROM information_schema.schemata
            WHERE schema_name NOT IN ('information_schema', 'pg_catalog', 'pg_toast')
            ORDER BY schema_name;
        """
        rows = await self.raw_query(query)
        return [row["schema_name"] for row in rows]

    async def list_tables(self, schema: Optional[str] = None) -> List[str]:
        """Get all tables in a schema"""
        query = """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = %s AND table_type = 'BASE TABLE'
            ORDER BY table_name;
        """
        rows = await self.raw_query(query, (schema or self.default_schema,))
        return [row["table_name"] for row in rows]

    async def get_schema_text(self, schema: Optional[str] = None) -> str:
        return await build_schema_text(self, schema)

    async def close(self) -> None:
        with self._pool_lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
                logger.info("PostgreSQL pool closed")
