import psycopg2
import pytest
from sqlalchemy.exc import OperationalError

from chatdb.domain.errors import DatabaseError
from chatdb.infrastructure.database.mysql_repository import MySQLAdapter
from chatdb.infrastructure.database.postgres_repository import PostgresAdapter


# ---------------------------------------------------------------------------
# PostgreSQL with a stand-in connection pool
# ---------------------------------------------------------------------------

class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.description = None
        self.rowcount = -1
        self._rows = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.conn.statements.append(sql)
        if self.conn.fail_on and self.conn.fail_on in sql:
            raise psycopg2.Error('relation "missing" does not exist')
        if sql.startswith("SELECT"):
            self.description = [("id",), ("name",)]
            self._rows = [{"id": 1, "name": "Alice"}]

    def fetchall(self):
        return self._rows


class FakeConnection:
    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.statements = []
        self.autocommit = False

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)


class FakePool:
    def __init__(self, conn):
        self.conn = conn
        self.borrowed = 0
        self.returned = 0
        self.closed = False

    def getconn(self):
        self.borrowed += 1
        return self.conn

    def putconn(self, conn):
        self.returned += 1

    def closeall(self):
        self.closed = True


def make_postgres(fail_on=None):
    adapter = PostgresAdapter("postgresql://nobody@127.0.0.1:1/none")
    pool = FakePool(FakeConnection(fail_on))
    adapter._pool = pool
    return adapter, pool


@pytest.mark.asyncio
async def test_postgres_scopes_search_path_with_sanitized_name():
    adapter, pool = make_postgres()
    result = await adapter.execute("SELECT id, name FROM users", 'sa"les;--')

    assert pool.conn.statements == ['SET search_path TO "sales--", public', "SELECT id, name FROM users"]
    assert pool.conn.autocommit is True
    assert result.columns == ["id", "name"]
    assert result.rows == [{"id": 1, "name": "Alice"}]
    assert (pool.borrowed, pool.returned) == (1, 1)


@pytest.mark.asyncio
async def test_postgres_defaults_to_public_schema():
    adapter, pool = make_postgres()
    await adapter.execute("SELECT 1")
    assert pool.conn.statements[0] == 'SET search_path TO "public", public'


@pytest.mark.asyncio
async def test_postgres_driver_error_releases_connection():
    adapter, pool = make_postgres(fail_on="missing")

    with pytest.raises(DatabaseError) as exc_info:
        await adapter.execute("SELECT * FROM missing", "sales")

    assert exc_info.value.dialect == "postgresql"
    assert exc_info.value.message == 'relation "missing" does not exist'
    assert isinstance(exc_info.value.__cause__, psycopg2.Error)
    assert (pool.borrowed, pool.returned) == (1, 1)


@pytest.mark.asyncio
async def test_postgres_close_releases_pool():
    adapter, pool = make_postgres()
    await adapter.close()
    assert pool.closed is True
    assert adapter._pool is None


# ---------------------------------------------------------------------------
# MySQL with a stand-in SQLAlchemy engine
# ---------------------------------------------------------------------------

class FakeRow:
    def __init__(self, mapping):
        self._mapping = mapping


class FakeResult:
    def __init__(self, rows=None):
        self.returns_rows = rows is not None
        self.rowcount = 3
        self._rows = rows or []

    def keys(self):
        return list(self._rows[0].keys()) if self._rows else []

    def __iter__(self):
        return iter(FakeRow(row) for row in self._rows)


class FakeMySQLConnection:
    def __init__(self, engine):
        self.engine = engine
        self.options = {}

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.engine.released += 1
        return False

    def execution_options(self, **options):
        self.options.update(options)
        return self

    def exec_driver_sql(self, sql, params=None):
        self.engine.statements.append((sql, params, dict(self.options)))
        if self.engine.fail_on and self.engine.fail_on in sql:
            raise OperationalError(sql, params, Exception("Unknown database 'nowhere'"))
        if sql.startswith("SELECT"):
            return FakeResult([{"id": 1, "label": "100%"}])
        return FakeResult()

    def commit(self):
        self.engine.commits += 1


class FakeEngine:
    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.statements = []
        self.released = 0
        self.commits = 0
        self.disposed = False

    def connect(self):
        return FakeMySQLConnection(self)

    def dispose(self):
        self.disposed = True


def make_mysql(fail_on=None):
    adapter = MySQLAdapter("mysql://root@localhost:3306/shop")
    engine = FakeEngine(fail_on)
    adapter._engine = engine
    return adapter, engine


@pytest.mark.asyncio
async def test_mysql_switches_database_with_sanitized_name():
    adapter, engine = make_mysql()
    result = await adapter.execute("SELECT id, label FROM items WHERE label LIKE '%'", 'sa"les;--')

    assert [sql for sql, _, _ in engine.statements] == [
        "USE `sales--`",
        "SELECT id, label FROM items WHERE label LIKE '%'",
    ]
    assert engine.statements[1][2] == {"no_parameters": True}
    assert result.rows == [{"id": 1, "label": "100%"}]
    assert engine.released == 1


@pytest.mark.asyncio
async def test_mysql_write_statement_commits():
    adapter, engine = make_mysql()
    result = await adapter.execute("UPDATE items SET label = 'x'", "shop")
    assert result.row_count == 3
    assert engine.commits == 1


@pytest.mark.asyncio
async def test_mysql_driver_error_is_wrapped_and_connection_released():
    adapter, engine = make_mysql(fail_on="USE")

    with pytest.raises(DatabaseError) as exc_info:
        await adapter.execute("SELECT 1", "nowhere")

    assert exc_info.value.dialect == "mysql"
    assert exc_info.value.message == "Unknown database 'nowhere'"
    assert len(engine.statements) == 1
    assert engine.released == 1


@pytest.mark.asyncio
async def test_mysql_raw_query_passes_params():
    adapter, engine = make_mysql()
    await adapter.list_tables()
    sql, params, _ = engine.statements[0]
    assert "information_schema.TABLES" in sql
    assert params == ("shop",)


@pytest.mark.asyncio
async def test_mysql_close_disposes_engine():
    adapter, engine = make_mysql()
    await adapter.close()
    assert engine.disposed is True
    assert adapter._engine is None
