from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Union, Literal, TYPE_CHECKING

if TYPE_CHECKING:
    from .interfaces import IDatabaseAdapter, ILLMProvider

ChartType = Literal["bar", "line", "pie", "table", "number"]
DatabaseDialect = Literal["postgresql", "mysql", "sqlite"]
LLMProviderType = Literal["openai", "anthropic", "openai-compatible"]

CHART_TYPES = ("bar", "line", "pie", "table", "number")
DIALECT_NAMES = ("postgresql", "mysql", "sqlite")
PROVIDER_NAMES = ("openai", "anthropic", "openai-compatible")


@dataclass(frozen=True)
class DatabaseConfig:
    """Entity representing a database connection descriptor"""
    url: str
    dialect: Optional[str] = None
    pool_size: int = 5


@dataclass(frozen=True)
class LLMProviderConfig:
    """Entity representing a language model backend descriptor"""
    provider: Optional[str] = None
    url: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    context_length: Optional[int] = None
    temperature: Optional[float] = None


@dataclass(frozen=True)
class ChatDBConfig:
    """
    Orchestrator configuration.

    ``database`` and ``llm`` accept a loose value (string, config record or
    mapping) or an already resolved adapter/provider instance.
    Durations are in seconds.
    """
    database: Union[str, DatabaseConfig, Dict[str, Any], "IDatabaseAdapter"]
    llm: Union[str, LLMProviderConfig, Dict[str, Any], "ILLMProvider"]
    schema: Optional[str] = None
    max_rows: int = 1000
    query_timeout: float = 10.0
    schema_cache_ttl: float = 300.0
    allow_writes: bool = False
    debug: bool = False


@dataclass(frozen=True)
class TableColumnInfo:
    """Entity representing one column of one table"""
    table_name: str
    column_name: str
    data_type: str


@dataclass(frozen=True)
class RawQueryResult:
    """Entity representing rows returned by a database adapter"""
    columns: List[str]
    rows: List[Dict[str, Any]]
    row_count: int


@dataclass(frozen=True)
class LLMMessage:
    """Entity representing a chat message sent to a model"""
    role: Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class GenerateResult:
    """Entity representing a model completion"""
    content: str
    model: str


@dataclass(frozen=True)
class SchemaCacheEntry:
    """Entity representing cached schema text"""
    text: str
    captured_at: float


@dataclass(frozen=True)
class DebugInfo:
    """Token and timing telemetry for one orchestration call"""
    model: str
    context_length: int
    system_tokens: int
    user_tokens: int
    history_tokens: int
    history_messages: int
    schema_truncated: bool
    duration_ms: int
    dialect: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "contextLength": self.context_length,
            "systemTokens": self.system_tokens,
            "userTokens": self.user_tokens,
            "historyTokens": self.history_tokens,
            "historyMessages": self.history_messages,
            "schemaTruncated": self.schema_truncated,
            "durationMs": self.duration_ms,
            "dialect": self.dialect,
        }


@dataclass(frozen=True)
class QueryResult:
    """Entity representing the outcome of one question"""
    sql: str
    explanation: str
    chart_type: str
    columns: List[str]
    rows: List[Dict[str, Any]]
    row_count: int
    debug: Optional[DebugInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape used by the HTTP API and the CLI ``--json`` mode"""
        data = {
            "sql": self.sql,
            "explanation": self.explanation,
            "chartType": self.chart_type,
            "columns": list(self.columns),
            "rows": list(self.rows),
            "rowCount": self.row_count,
        }
        if self.debug is not None:
            data["debug"] = self.debug.to_dict()
        return data


@dataclass(frozen=True)
class ConversationMessage:
    """Entity representing one turn of a conversation"""
    role: Literal["user", "assistant"]
    content: str
    data: Optional[QueryResult] = None


@dataclass(frozen=True)
class PromptStats:
    """Token accounting produced while assembling a prompt"""
    system_tokens: int
    user_tokens: int
    history_tokens: int
    history_messages: int
    schema_truncated: bool


@dataclass
class BuiltPrompt:
    """Message sequence ready to send, with its accounting"""
    messages: List[LLMMessage] = field(default_factory=list)
    stats: Optional[PromptStats] = None
