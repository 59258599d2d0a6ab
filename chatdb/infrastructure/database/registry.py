from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union
import logging

from chatdb.domain.entities import DatabaseConfig, DIALECT_NAMES
from chatdb.domain.errors import ConfigurationError
from chatdb.domain.interfaces import IDatabaseAdapter

logger = logging.getLogger(__name__)

DatabaseConfigInput = Union[str, DatabaseConfig, Dict[str, Any]]

# Checked in order; the first matching rule decides the dialect.
URL_PREFIX_RULES: Tuple[Tuple[str, str], ...] = (
    ("postgresql://", "postgresql"),
    ("postgres://", "postgresql"),
    ("mysql://", "mysql"),
    ("mysql+pymysql://", "mysql"),
    ("sqlite://", "sqlite"),
    ("./", "sqlite"),
    ("/", "sqlite"),
)
SQLITE_SUFFIXES = (".sqlite", ".sqlite3", ".db")


@dataclass(frozen=True)
class DatabaseTarget:
    """Classified database configuration"""
    dialect: str
    url: str
    pool_size: int = 5


def detect_dialect(url: str) -> str:
    """Infer the dialect from URL scheme, path prefix or file extension"""
    for prefix, dialect in URL_PREFIX_RULES:
        if url.startswith(prefix):
            return dialect
    if url.endswith(SQLITE_SUFFIXES):
        return "sqlite"
    raise ConfigurationError(
        f"Cannot detect database dialect from: {url}. Use {{url, dialect}} config object."
    )


def classify_database(config: DatabaseConfigInput) -> DatabaseTarget:
    """Turn a loose database configuration into a ``DatabaseTarget``"""
    if isinstance(config, str):
        config = DatabaseConfig(url=config)
    elif isinstance(config, dict):
        config = DatabaseConfig(
            url=config.get("url", ""),
            dialect=config.get("dialect"),
            pool_size=config.get("pool_size", config.get("poolSize", 5)),
        )
    elif not isinstance(config, DatabaseConfig):
        raise ConfigurationError(f"Unsupported database configuration: {config!r}")

    if not config.url:
        raise ConfigurationError("Database URL is required")

    dialect = config.dialect or detect_dialect(config.url)
    if dialect not in DIALECT_NAMES:
        raise ConfigurationError(f"Unsupported database dialect: {dialect}")

    return DatabaseTarget(dialect=dialect, url=config.url, pool_size=config.pool_size)


def resolve_database_adapter(config: DatabaseConfigInput, timeout: float = 10.0) -> IDatabaseAdapter:
    """Classify ``config`` and build the matching adapter"""
    target = classify_database(config)
    logger.debug(f"Resolved database dialect: {target.dialect}")

    if target.dialect == "postgresql":
        from chatdb.infrastructure.database.postgres_repository import PostgresAdapter
        return PostgresAdapter(target.url, target.pool_size, timeout)

    if target.dialect == "mysql":
        from chatdb.infrastructure.database.mysql_repository import MySQLAdapter
        return MySQLAdapter(target.url, target.pool_size, timeout)

    from chatdb.infrastructure.database.sqlite_repository import SQLiteAdapter
    path = target.url[len("sqlite://"):] if target.url.startswith("sqlite://") else target.url
    return SQLiteAdapter(path, timeout)
