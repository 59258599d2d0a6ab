from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Any, Optional, Literal

from chatdb.domain.entities import ConversationMessage, QueryResult


class QueryResultPayload(BaseModel):
    """Result attached to an assistant turn, in the camelCase wire shape"""
    model_config = ConfigDict(populate_by_name=True)

    sql: str = ""
    explanation: str = ""
    chart_type: str = Field(default="table", alias="chartType")
    columns: List[str] = Field(default_factory=list)
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    row_count: int = Field(default=0, alias="rowCount")

    def to_entity(self) -> QueryResult:
        return QueryResult(
            sql=self.sql,
            explanation=self.explanation,
            chart_type=self.chart_type,
            columns=self.columns,
            rows=self.rows,
            row_count=self.row_count,
        )


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    data: Optional[QueryResultPayload] = None

    def to_entity(self) -> ConversationMessage:
        return ConversationMessage(
            role=self.role,
            content=self.content,
            data=self.data.to_entity() if self.data else None,
        )


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(default="", description="User's question in natural language")
    history: List[HistoryMessage] = Field(default_factory=list, description="Earlier turns, oldest first")
    schema_name: Optional[str] = Field(default=None, alias="schemaName", description="Database schema to query")
