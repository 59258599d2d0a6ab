from fastapi import APIRouter, Depends
from typing import Dict, Any
import psutil
import os

from chatdb.presentation.api.dependencies import get_orchestrator
from chatdb.application.services.orchestrator_service import ChatDB

router = APIRouter()


@router.get("")
async def health_check(
    orchestrator: ChatDB = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """
    Comprehensive health check
    """
    health_status = {
        "status": "ok",
        "version": os.getenv("APP_VERSION", "0.1.0"),
        "checks": {}
    }

    # Check database
    try:
        await orchestrator.list_schemas()
        health_status["checks"]["database"] = "ok"
        health_status["checks"]["dialect"] = orchestrator.dialect
    except Exception as e:
        health_status["checks"]["database"] = f"error: {str(e)}"
        health_status["status"] = "degraded"

    # System metrics
    health_status["metrics"] = {
        "cpu_percent": psutil.cpu_percent(),
        "memory_percent": psutil.virtual_memory().percent,
        "disk_percent": psutil.disk_usage('/').percent
    }

    return health_status


@router.get("/ready")
async def readiness_check():
    """
    Simple readiness check
    """
    return {"ready": True}
