from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Sequence

from .entities import RawQueryResult, TableColumnInfo, LLMMessage, GenerateResult


class IDatabaseAdapter(ABC):
    """Interface for database engines the orchestrator can query"""

    dialect: str
    default_schema: str

    @abstractmethod
    async def execute(self, sql: str, schema: Optional[str] = None) -> RawQueryResult:
        pass

    @abstractmethod
    async def raw_query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def list_schemas(self) -> List[str]:
        pass

    @abstractmethod
    async def list_tables(self, schema: Optional[str] = None) -> List[str]:
        pass

    @abstractmethod
    async def get_columns(self, schema: Optional[str] = None) -> List[TableColumnInfo]:
        pass

    @abstractmethod
    async def get_schema_text(self, schema: Optional[str] = None) -> str:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class ILLMProvider(ABC):
    """Interface for language model backends"""

    name: str

    @abstractmethod
    async def generate(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> GenerateResult:
        pass

    @abstractmethod
    async def get_context_length(self) -> int:
        pass

    @abstractmethod
    async def get_model_id(self) -> str:
        pass
