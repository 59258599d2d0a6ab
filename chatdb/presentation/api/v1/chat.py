import time
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from chatdb.presentation.models.request_models import ChatRequest
from chatdb.presentation.models.response_models import ChatResponse
from chatdb.presentation.api.dependencies import get_orchestrator
from chatdb.application.services.orchestrator_service import ChatDB
from chatdb.domain.errors import ContextOverflowError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


def _reply(text: str, logs: List[str], data: Optional[dict] = None, status_code: int = 200,
           context_overflow: bool = False) -> JSONResponse:
    body = {"text": text, "data": data, "logs": logs}
    if context_overflow:
        body["contextOverflow"] = True
    return JSONResponse(status_code=status_code, content=body)


@router.post("", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    orchestrator: ChatDB = Depends(get_orchestrator)
):
    """
    Turn a natural language question into SQL, run it and return the rows
    """
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    logs: List[str] = []
    history = [msg.to_entity() for msg in request.history]
    start_time = time.monotonic()

    try:
        result = await orchestrator.query(request.message, schema=request.schema_name, history=history)
    except ValidationError as e:
        logs.append(f"Schema: {request.schema_name or orchestrator.default_schema}")
        logs.append(f"Generated SQL: {e.sql}")
        logs.append(f"BLOCKED: {e.message}")
        return _reply(f"I generated a query but it was blocked for safety: {e.message}", logs)
    except ContextOverflowError as e:
        logs.append(f"ERROR: {e.message}")
        return _reply(
            "The conversation is too long for this model's context window. Please start a new conversation.",
            logs,
            context_overflow=True,
        )
    except Exception as e:
        logger.error(f"Chat request failed: {e}")
        logs.append(f"ERROR: {e}")
        return _reply(f"Sorry, something went wrong: {e}", logs, status_code=500)

    logs.append(f"Schema: {request.schema_name or orchestrator.default_schema}")
    if result.debug:
        debug = result.debug
        logs.append(f"Model: {debug.model}")
        logs.append(f"Context: {debug.context_length} tokens")
        logs.append(
            f"System: {debug.system_tokens} | User: {debug.user_tokens} | "
            f"History: {debug.history_tokens} ({debug.history_messages} msgs)"
        )
        logs.append(f"Schema truncated: {debug.schema_truncated}")
    logs.append(f"Chart type: {result.chart_type}")
    logs.append(f"Generated SQL: {result.sql}")
    logs.append("Validation: passed")
    logs.append(f"Query: {int((time.monotonic() - start_time) * 1000)}ms, {result.row_count} rows")

    data = result.to_dict()
    data.pop("debug", None)
    return _reply(result.explanation, logs, data=data)
