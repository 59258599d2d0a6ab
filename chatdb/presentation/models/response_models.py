from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Any, Optional


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(..., description="Explanation or error text shown to the user")
    data: Optional[Dict[str, Any]] = Field(default=None, description="Query result in wire shape")
    logs: List[str] = Field(default_factory=list, description="Pipeline trace for the log panel")
    context_overflow: Optional[bool] = Field(default=None, alias="contextOverflow")


class SchemaListResponse(BaseModel):
    schemas: List[str]


class TableListResponse(BaseModel):
    tables: List[str]


class SchemaTextResponse(BaseModel):
    schema_text: str = Field(..., alias="schema")


class RefreshResponse(BaseModel):
    refreshed: bool = True
