import json

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from main import app
from chatdb.presentation.api.dependencies import get_orchestrator
from chatdb.domain.errors import ContextOverflowError, DatabaseError


@pytest_asyncio.fixture
async def api_chatdb(make_chatdb):
    db = make_chatdb(debug=True)
    yield db
    await db.close()


@pytest_asyncio.fixture
async def client(api_chatdb):
    app.dependency_overrides[get_orchestrator] = lambda: api_chatdb

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_chat_returns_result_and_logs(client, fake_llm):
    """Successful question returns explanation, data and a pipeline trace"""
    fake_llm.queue("SELECT id, name FROM users", "All users", "table")
    response = await client.post("/api/chat", json={"message": "show users"})

    assert response.status_code == 200
    body = response.json()
    assert body["text"] == "All users"
    assert body["data"] == {
        "sql": "SELECT id, name FROM users LIMIT 1000",
        "explanation": "All users",
        "chartType": "table",
        "columns": ["id", "name"],
        "rows": [{"id": 1, "name": "Alice"}],
        "rowCount": 1,
    }
    assert "contextOverflow" not in body
    assert "Schema: public" in body["logs"]
    assert "Model: fake-model" in body["logs"]
    assert "Validation: passed" in body["logs"]


@pytest.mark.asyncio
async def test_chat_forwards_history_and_schema(client, fake_db, fake_llm):
    payload = {
        "message": "and their orders?",
        "schemaName": "sales",
        "history": [
            {"role": "user", "content": "show users"},
            {
                "role": "assistant",
                "content": "All users",
                "data": {"sql": "SELECT * FROM users", "chartType": "bar", "rowCount": 1},
            },
        ],
    }
    response = await client.post("/api/chat", json=payload)

    assert response.status_code == 200
    assert fake_db.executed[0][1] == "sales"
    sent = fake_llm.calls[0]
    assert [m.role for m in sent] == ["system", "user", "assistant", "user"]
    assert json.loads(sent[2].content) == {"sql": "SELECT * FROM users", "explanation": "All users", "chartType": "bar"}


@pytest.mark.asyncio
async def test_chat_empty_message_is_bad_request(client):
    response = await client.post("/api/chat", json={"message": "   "})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_chat_blocked_sql(client, fake_db, fake_llm):
    fake_llm.queue("DROP TABLE users")
    response = await client.post("/api/chat", json={"message": "drop it"})

    assert response.status_code == 200
    body = response.json()
    assert body["data"] is None
    assert body["text"] == "I generated a query but it was blocked for safety: Only SELECT queries are allowed."
    assert "BLOCKED: Only SELECT queries are allowed." in body["logs"]
    assert fake_db.executed == []


@pytest.mark.asyncio
async def test_chat_context_overflow(client, fake_llm, monkeypatch):
    async def overflow(*args, **kwargs):
        raise ContextOverflowError("fake")

    monkeypatch.setattr(fake_llm, "generate", overflow)
    response = await client.post("/api/chat", json={"message": "hello"})

    assert response.status_code == 200
    body = response.json()
    assert body["contextOverflow"] is True
    assert body["data"] is None


@pytest.mark.asyncio
async def test_chat_other_errors_are_server_errors(client, fake_db, monkeypatch):
    async def broken(sql, schema=None):
        raise DatabaseError("connection refused", "postgresql")

    monkeypatch.setattr(fake_db, "execute", broken)
    response = await client.post("/api/chat", json={"message": "users"})

    assert response.status_code == 500
    body = response.json()
    assert body["text"] == "Sorry, something went wrong: connection refused"
    assert body["data"] is None
    assert "ERROR: connection refused" in body["logs"]


@pytest.mark.asyncio
async def test_schema_list(client):
    response = await client.get("/api/schema/list")
    assert response.status_code == 200
    assert response.json() == {"schemas": ["public", "sales"]}


@pytest.mark.asyncio
async def test_schema_tables(client):
    response = await client.get("/api/schema/tables", params={"name": "public"})
    assert response.status_code == 200
    assert response.json() == {"tables": ["orders", "users"]}


@pytest.mark.asyncio
async def test_schema_text(client):
    response = await client.get("/api/schema")
    assert response.status_code == 200
    assert response.json() == {"schema": "users(id integer, name text)\norders(id integer, total numeric)"}


@pytest.mark.asyncio
async def test_schema_refresh(client, fake_db):
    await client.post("/api/chat", json={"message": "a"})
    response = await client.post("/api/schema/refresh")
    await client.post("/api/chat", json={"message": "b"})

    assert response.status_code == 200
    assert response.json() == {"refreshed": True}
    assert fake_db.schema_text_calls == ["public", "public"]


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["checks"]["database"] == "ok"
    assert body["checks"]["dialect"] == "postgresql"
    assert "memory_percent" in body["metrics"]
