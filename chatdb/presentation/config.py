import os
from typing import Any, Dict, Optional

from chatdb.domain.entities import ChatDBConfig, LLMProviderConfig
from chatdb.domain.errors import ConfigurationError


def env(primary: str, *fallbacks: str) -> Optional[str]:
    """First non-empty environment variable among ``primary`` and ``fallbacks``"""
    for name in (primary, *fallbacks):
        value = os.getenv(name)
        if value:
            return value
    return None


def _env_number(name: str, cast, default):
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")


def resolve_config(flags: Optional[Dict[str, Any]] = None) -> ChatDBConfig:
    """
    Build a ChatDBConfig from command-line flags with environment fallbacks.

    Flags win over environment variables. An API key selects a hosted
    provider; a bare URL selects an OpenAI-compatible server.
    """
    flags = flags or {}

    database = flags.get("database") or env("CHATDB_DATABASE_URL", "DATABASE_URL")
    if not database:
        raise ConfigurationError(
            "Database URL is required. Set CHATDB_DATABASE_URL or DATABASE_URL, or use --database."
        )

    api_key = flags.get("api_key") or env("CHATDB_LLM_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY")
    llm_url = flags.get("llm") or env("CHATDB_LLM_URL", "OLLAMA_URL")
    model = flags.get("model") or env("CHATDB_LLM_MODEL", "OLLAMA_MODEL")
    provider = flags.get("provider") or env("CHATDB_LLM_PROVIDER")

    if api_key:
        llm = LLMProviderConfig(provider=provider, url=llm_url, api_key=api_key, model=model)
    elif llm_url:
        llm = LLMProviderConfig(provider=provider or "openai-compatible", url=llm_url, model=model)
    else:
        raise ConfigurationError(
            "LLM configuration is required. Set CHATDB_LLM_API_KEY or CHATDB_LLM_URL, or use --api-key / --llm."
        )

    return ChatDBConfig(
        database=database,
        llm=llm,
        schema=flags.get("schema") or env("CHATDB_SCHEMA"),
        max_rows=_env_number("CHATDB_MAX_ROWS", int, 1000),
        query_timeout=_env_number("CHATDB_QUERY_TIMEOUT", float, 10.0),
        schema_cache_ttl=_env_number("CHATDB_SCHEMA_CACHE_TTL", float, 300.0),
        debug=True,
    )
