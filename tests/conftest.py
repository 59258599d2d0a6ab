import json
import sqlite3
from typing import Any, Dict, List, Optional, Sequence

import pytest
import pytest_asyncio

from chatdb.application.services.orchestrator_service import ChatDB
from chatdb.domain.entities import (
    ChatDBConfig,
    GenerateResult,
    LLMMessage,
    RawQueryResult,
    TableColumnInfo,
)
from chatdb.domain.interfaces import IDatabaseAdapter, ILLMProvider
from chatdb.domain.schema_text import build_schema_text


class FakeDatabaseAdapter(IDatabaseAdapter):
    """In-memory adapter recording every call"""

    dialect = "postgresql"
    default_schema = "public"

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        self.rows = rows if rows is not None else [{"id": 1, "name": "Alice"}]
        self.columns = [
            TableColumnInfo("users", "id", "integer"),
            TableColumnInfo("users", "name", "text"),
            TableColumnInfo("orders", "id", "integer"),
            TableColumnInfo("orders", "total", "numeric"),
        ]
        self.executed: List[tuple] = []
        self.schema_text_calls: List[Optional[str]] = []
        self.closed = 0

    async def execute(self, sql: str, schema: Optional[str] = None) -> RawQueryResult:
        self.executed.append((sql, schema))
        columns = list(self.rows[0].keys()) if self.rows else []
        return RawQueryResult(columns=columns, rows=list(self.rows), row_count=len(self.rows))

    async def raw_query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        return []

    async def list_schemas(self) -> List[str]:
        return ["public", "sales"]

    async def list_tables(self, schema: Optional[str] = None) -> List[str]:
        return ["orders", "users"]

    async def get_columns(self, schema: Optional[str] = None) -> List[TableColumnInfo]:
        return list(self.columns)

    async def get_schema_text(self, schema: Optional[str] = None) -> str:
        self.schema_text_calls.append(schema)
        return await build_schema_text(self, schema)

    async def close(self) -> None:
        self.closed += 1


class FakeLLMProvider(ILLMProvider):
    """Provider replaying queued responses and recording the prompts it saw"""

    name = "fake"

    def __init__(self, responses: Optional[List[str]] = None, context_length: int = 8192):
        self.responses = list(responses or [])
        self.context_length = context_length
        self.calls: List[List[LLMMessage]] = []
        self.max_tokens: List[Optional[int]] = []

    def queue(self, sql: str, explanation: str = "Here are the results", chart_type: str = "table") -> None:
        self.responses.append(json.dumps({"sql": sql, "explanation": explanation, "chartType": chart_type}))

    async def generate(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> GenerateResult:
        self.calls.append(list(messages))
        self.max_tokens.append(max_tokens)
        if self.responses:
            content = self.responses.pop(0)
        else:
            content = json.dumps({"sql": "SELECT * FROM users", "explanation": "All users", "chartType": "table"})
        return GenerateResult(content=content, model="fake-model")

    async def get_context_length(self) -> int:
        return self.context_length

    async def get_model_id(self) -> str:
        return "fake-model"


@pytest.fixture
def fake_db() -> FakeDatabaseAdapter:
    return FakeDatabaseAdapter()


@pytest.fixture
def fake_llm() -> FakeLLMProvider:
    return FakeLLMProvider()


@pytest.fixture
def make_chatdb(fake_db, fake_llm):
    """Factory building a ChatDB around the fakes with config overrides"""
    def _make(**overrides) -> ChatDB:
        return ChatDB(ChatDBConfig(database=fake_db, llm=fake_llm, **overrides))
    return _make


@pytest_asyncio.fixture
async def chatdb(make_chatdb):
    db = make_chatdb()
    yield db
    await db.close()


@pytest.fixture
def sqlite_file(tmp_path) -> str:
    """SQLite database with a small sales dataset"""
    path = tmp_path / "sales.db"
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE customers (id INTEGER PRIMARY KEY, name TEXT NOT NULL, country);
        CREATE TABLE orders (id INTEGER PRIMARY KEY, customer_id INTEGER, total REAL, created_at TEXT);
        INSERT INTO customers (id, name, country) VALUES (1, 'Alice', 'AR'), (2, 'Bob', 'US');
        INSERT INTO orders (id, customer_id, total, created_at) VALUES
            (1, 1, 10.5, '2024-01-03'), (2, 1, 20.0, '2024-02-10'), (3, 2, 7.25, '2024-02-11');
        """
    )
    conn.commit()
    conn.close()
    return str(path)
