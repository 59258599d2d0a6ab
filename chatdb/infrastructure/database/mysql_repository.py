import asyncio
import re
import threading
from typing import List, Dict, Any, Optional, Sequence
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from chatdb.domain.interfaces import IDatabaseAdapter
from chatdb.domain.entities import RawQueryResult, TableColumnInfo
from chatdb.domain.errors import DatabaseError
from chatdb.domain.schema_text import build_schema_text
from chatdb.infrastructure.database.common import sanitize_schema_name, serialize_rows

logger = logging.getLogger(__name__)

SYSTEM_DATABASES = ("information_schema", "mysql", "performance_schema", "sys")

_DATABASE_NAME = re.compile(r"://[^/]*/([^/?]+)")


def to_sqlalchemy_url(connection_string: str) -> str:
    """Point a plain ``mysql://`` URL at the PyMySQL driver"""
    if connection_string.startswith("mysql://"):
        return "mysql+pymysql://" + connection_string[len("mysql://"):]
    return connection_string


class MySQLAdapter(IDatabaseAdapter):
    """
    Adapter for MySQL databases, pooled through a SQLAlchemy engine over PyMySQL.

    The default schema is the database named in the connection string.
    """

    dialect = "mysql"

    def __init__(self, connection_string: str, pool_size: int = 5, timeout: float = 10.0):
        self.connection_string = connection_string
        self.pool_size = pool_size
        self.timeout = timeout
        match = _DATABASE_NAME.search(connection_string)
        self.default_schema = match.group(1) if match else "mysql"
        self._engine: Optional[Engine] = None
        self._engine_lock = threading.Lock()

    def _get_engine(self) -> Engine:
        """Create the engine (and its pool) on first use"""
        if self._engine is None:
            with self._engine_lock:
                if self._engine is None:
                    logger.info(f"Creating MySQL pool (max {self.pool_size} connections)")
                    timeout = max(int(self.timeout), 1)
                    self._engine = create_engine(
                        to_sqlalchemy_url(self.connection_string),
                        pool_size=self.pool_size,
                        max_overflow=0,
                        pool_pre_ping=True,
                        connect_args={"connect_timeout": timeout, "read_timeout": timeout},
                    )
        return self._engine

    def _execute_sync(self, sql: str, schema: Optional[str]) -> RawQueryResult:
        try:
            with self._get_engine().connect() as conn:
                if schema:
                    conn.exec_driver_sql(f"USE `{sanitize_schema_name(schema)}`")
                result = conn.execution_options(no_parameters=True).exec_driver_sql(sql)
                if not result.returns_rows:
                    conn.commit()
                    return RawQueryResult(columns=[], rows=[], row_count=max(result.rowcount, 0))
                columns = list(result.keys())
                rows = serialize_rows([dict(row._mapping) for row in result])
                return RawQueryResult(columns=columns, rows=rows, row_count=len(rows))
        except SQLAlchemyError as e:
            logger.error(f"Database error: {e}")
            raise DatabaseError(str(getattr(e, "orig", None) or e), self.dialect) from e

    async def execute(self, sql: str, schema: Optional[str] = None) -> RawQueryResult:
        """Run ``sql`` after switching the session to ``schema``"""
        return await asyncio.to_thread(self._execute_sync, sql, schema)

    def _raw_query_sync(self, sql: str, params: Optional[Sequence[Any]]) -> List[Dict[str, Any]]:
        try:
            with self._get_engine().connect() as conn:
                if params:
                    result = conn.exec_driver_sql(sql, tuple(params))
                else:
                    result = conn.execution_options(no_parameters=True).exec_driver_sql(sql)
                return [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            logger.error(f"Database error: {e}")
            raise DatabaseError(str(getattr(e, "orig", None) or e), self.dialect) from e

    async def raw_query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._raw_query_sync, sql, params)

    async def get_columns(self, schema: Optional[str] = None) -> List[TableColumnInfo]:
        query = """
            SELECT TABLE_NAME, COLUMN_NAME, DATA_TYPE
            FROM information_schema.COLUMNS
            WHERE TABLE_SCHEMA = %s
            ORDER BY TABLE_NAME, ORDINAL_POSITION
        """
        rows = await self.raw_query(query, (schema or self.default_schema,))
        return [
            TableColumnInfo(
                table_name=row["TABLE_NAME"],
                column_name=row["COLUMN_NAME"],
                data_type=row["DATA_TYPE"],
            )
            for row in rows
        ]

    async def list_schemas(self) -> List[str]:
        rows = await self.raw_query("SHOW DATABASES")
        return [row["Database"] for row in rows if row["Database"] not in SYSTEM_DATABASES]

    async def list_tables(self, schema: Optional[str] = None) -> List[str]:
        query = """
            SELECT TABLE_NAME FROM information_schema.TABLES
            WHERE TABLE_SCHEMA = %s AND TABLE_TYPE = 'BASE TABLE'
            ORDER BY TABLE_NAME
        """
        rows = await self.raw_query(query, (schema or self.default_schema,))
        return [row["TABLE_NAME"] for row in rows]

    async def get_schema_text(self, schema: Optional[str] = None) -> str:
        return await build_schema_text(self, schema)

    async def close(self) -> None:
        with self._engine_lock:
            if self._engine is not None:
                self._engine.dispose()
                self._engine = None
                logger.info("MySQL pool closed")
