import time
from typing import Dict
import logging

from chatdb.domain.interfaces import IDatabaseAdapter
from chatdb.domain.entities import SchemaCacheEntry

logger = logging.getLogger(__name__)


class SchemaService:
    """
    Application service caching LLM-facing schema text per schema name.

    Entries expire ``ttl`` seconds after capture. Concurrent refreshes of the
    same schema are last-write-wins.
    """

    def __init__(self, db_adapter: IDatabaseAdapter, ttl: float = 300.0):
        self.db_adapter = db_adapter
        self.ttl = ttl
        self._cache: Dict[str, SchemaCacheEntry] = {}

    async def get_schema_text(self, schema_name: str) -> str:
        """Return cached schema text, fetching it when missing or stale"""
        now = time.monotonic()
        cached = self._cache.get(schema_name)
        if cached and now - cached.captured_at < self.ttl:
            return cached.text

        logger.debug(f"Schema cache miss for '{schema_name}'")
        text = await self.db_adapter.get_schema_text(schema_name)
        self._cache[schema_name] = SchemaCacheEntry(text=text, captured_at=now)
        return text

    def invalidate(self) -> None:
        """Drop every cached schema"""
        self._cache.clear()
