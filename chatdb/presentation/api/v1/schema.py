from fastapi import APIRouter, Depends, HTTPException
from typing import Optional

from chatdb.presentation.models.response_models import (
    SchemaListResponse,
    TableListResponse,
    SchemaTextResponse,
    RefreshResponse,
)
from chatdb.presentation.api.dependencies import get_orchestrator
from chatdb.application.services.orchestrator_service import ChatDB

router = APIRouter()


@router.get("/list", response_model=SchemaListResponse)
async def list_schemas(
    orchestrator: ChatDB = Depends(get_orchestrator)
):
    """
    Get all user schemas of the connected database
    """
    try:
        schemas = await orchestrator.list_schemas()
        return SchemaListResponse(schemas=schemas)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/tables", response_model=TableListResponse)
async def list_tables(
    name: Optional[str] = None,
    orchestrator: ChatDB = Depends(get_orchestrator)
):
    """
    Get the tables of a schema (default schema when ``name`` is omitted)
    """
    try:
        tables = await orchestrator.list_tables(name)
        return TableListResponse(tables=tables)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=SchemaTextResponse)
async def get_schema_text(
    name: Optional[str] = None,
    orchestrator: ChatDB = Depends(get_orchestrator)
):
    """
    Get the schema text exactly as the model sees it
    """
    try:
        text = await orchestrator.get_schema(name)
        return SchemaTextResponse(schema=text)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_schema(
    orchestrator: ChatDB = Depends(get_orchestrator)
):
    """
    Drop cached schema text so the next question re-reads the database
    """
    orchestrator.refresh_schema()
    return RefreshResponse(refreshed=True)
