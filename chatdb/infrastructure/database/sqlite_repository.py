import asyncio
import sqlite3
import threading
import time
from pathlib import Path
from typing import List, Dict, Any, Optional, Sequence, Tuple
import logging

from chatdb.domain.interfaces import IDatabaseAdapter
from chatdb.domain.entities import RawQueryResult, TableColumnInfo
from chatdb.domain.errors import DatabaseError
from chatdb.domain.schema_text import build_schema_text
from chatdb.infrastructure.database.common import serialize_rows

logger = logging.getLogger(__name__)


class SQLiteAdapter(IDatabaseAdapter):
    """
    Adapter for SQLite database files.

    A single connection is opened lazily (read-only by default) and shared
    across worker threads; statements are serialized through a lock.
    """

    dialect = "sqlite"
    default_schema = "main"

    def __init__(self, file_path: str, timeout: float = 10.0, readonly: bool = True):
        self.file_path = file_path
        self.timeout = timeout
        self.readonly = readonly
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def _connect(self) -> sqlite3.Connection:
        if self.readonly and self.file_path != ":memory:":
            uri = Path(self.file_path).resolve().as_uri() + "?mode=ro"
            conn = sqlite3.connect(uri, uri=True, timeout=self.timeout, check_same_thread=False)
        else:
            conn = sqlite3.connect(self.file_path, timeout=self.timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _get_connection(self) -> sqlite3.Connection:
        """Open the database on first use; caller must hold ``_lock``"""
        if self._conn is None:
            logger.info(f"Opening SQLite database: {self.file_path}")
            try:
                self._conn = self._connect()
            except sqlite3.Error as e:
                raise DatabaseError(str(e), self.dialect) from e
        return self._conn

    def _run(self, sql: str, params: Optional[Sequence[Any]] = None) -> Tuple[Any, List[sqlite3.Row], int]:
        """Execute and fetch one statement, interrupting it once the timeout elapses"""
        conn = self._get_connection()
        deadline = time.monotonic() + self.timeout
        conn.set_progress_handler(lambda: int(time.monotonic() > deadline), 10_000)
        try:
            cur = conn.execute(sql, tuple(params) if params else ())
            return cur.description, cur.fetchall(), cur.rowcount
        finally:
            conn.set_progress_handler(None, 0)

    def _execute_sync(self, sql: str) -> RawQueryResult:
        with self._lock:
            try:
                description, fetched, rowcount = self._run(sql)
                if description is None:
                    self._conn.commit()
                    return RawQueryResult(columns=[], rows=[], row_count=max(rowcount, 0))
                columns = [desc[0] for desc in description]
                rows = serialize_rows([dict(row) for row in fetched])
                return RawQueryResult(columns=columns, rows=rows, row_count=len(rows))
            except sqlite3.Error as e:
                logger.error(f"Database error: {e}")
                raise DatabaseError(str(e), self.dialect) from e

    async def execute(self, sql: str, schema: Optional[str] = None) -> RawQueryResult:
        """Run ``sql``; SQLite has a single ``main`` schema so ``schema`` is ignored"""
        return await asyncio.to_thread(self._execute_sync, sql)

    def _raw_query_sync(self, sql: str, params: Optional[Sequence[Any]]) -> List[Dict[str, Any]]:
        with self._lock:
            try:
                _, fetched, _ = self._run(sql, params)
                return [dict(row) for row in fetched]
            except sqlite3.Error as e:
                logger.error(f"Database error: {e}")
                raise DatabaseError(str(e), self.dialect) from e

    async def raw_query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._raw_query_sync, sql, params)

    async def get_columns(self, schema: Optional[str] = None) -> List[TableColumnInfo]:
        columns = []
        for table in await self.list_tables():
            quoted = table.replace('"', '""')
            for row in await self.raw_query(f'PRAGMA table_info("{quoted}")'):
                columns.append(TableColumnInfo(
                    table_name=table,
                    column_name=row["name"],
                    data_type=row["type"] or "TEXT",
                ))
        return columns

    async def list_schemas(self) -> List[str]:
        return ["main"]

    async def list_tables(self, schema: Optional[str] = None) -> List[str]:
        rows = await self.raw_query(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row["name"] for row in rows]

    async def get_schema_text(self, schema: Optional[str] = None) -> str:
        return await build_schema_text(self, schema)

    async def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("SQLite database closed")
