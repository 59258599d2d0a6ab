from functools import lru_cache

from chatdb.application.services.orchestrator_service import ChatDB
from chatdb.presentation.config import resolve_config


# Cache instances for better performance
@lru_cache()
def get_orchestrator() -> ChatDB:
    """Get ChatDB orchestrator instance configured from the environment"""
    return ChatDB(resolve_config())
