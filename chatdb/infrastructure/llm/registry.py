from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union
import logging

from chatdb.domain.entities import LLMProviderConfig, PROVIDER_NAMES
from chatdb.domain.errors import ConfigurationError
from chatdb.domain.interfaces import ILLMProvider

logger = logging.getLogger(__name__)

LLMConfigInput = Union[str, LLMProviderConfig, Dict[str, Any]]

# Most specific prefix first: "sk-ant-" keys also start with "sk-".
API_KEY_PREFIX_RULES: Tuple[Tuple[str, str], ...] = (
    ("sk-ant-", "anthropic"),
    ("sk-", "openai"),
)


@dataclass(frozen=True)
class ProviderTarget:
    """Classified model configuration"""
    provider: str
    config: LLMProviderConfig


def _provider_for_key(api_key: Optional[str]) -> Optional[str]:
    if not api_key:
        return None
    for prefix, provider in API_KEY_PREFIX_RULES:
        if api_key.startswith(prefix):
            return provider
    return None


def _from_mapping(config: Dict[str, Any]) -> LLMProviderConfig:
    return LLMProviderConfig(
        provider=config.get("provider"),
        url=config.get("url"),
        api_key=config.get("api_key", config.get("apiKey")),
        model=config.get("model"),
        context_length=config.get("context_length", config.get("contextLength")),
        temperature=config.get("temperature"),
    )


def classify_provider(config: LLMConfigInput) -> ProviderTarget:
    """
    Decide which backend a loose model configuration points at.

    Precedence: explicit ``provider`` field, then API-key prefix, then URL
    (without a key: OpenAI-compatible server; with an unrecognized key:
    OpenAI behind a custom endpoint).
    """
    if isinstance(config, str):
        provider = _provider_for_key(config)
        if provider:
            return ProviderTarget(provider, LLMProviderConfig(api_key=config))
        if config.startswith("http"):
            return ProviderTarget("openai-compatible", LLMProviderConfig(url=config))
        raise ConfigurationError(
            "Cannot auto-detect LLM provider from string. Use {provider, api_key} config object."
        )

    if isinstance(config, dict):
        config = _from_mapping(config)
    elif not isinstance(config, LLMProviderConfig):
        raise ConfigurationError(f"Unsupported LLM configuration: {config!r}")

    if config.provider:
        if config.provider not in PROVIDER_NAMES:
            raise ConfigurationError(f"Unsupported LLM provider: {config.provider}")
        return ProviderTarget(config.provider, config)

    provider = _provider_for_key(config.api_key)
    if provider:
        return ProviderTarget(provider, config)

    if config.url and not config.api_key:
        return ProviderTarget("openai-compatible", config)

    if config.url and config.api_key:
        return ProviderTarget("openai", config)

    raise ConfigurationError("Cannot determine LLM provider. Specify provider explicitly.")


def resolve_llm_provider(config: LLMConfigInput) -> ILLMProvider:
    """Classify ``config`` and build the matching provider"""
    target = classify_provider(config)
    logger.debug(f"Resolved LLM provider: {target.provider}")

    if target.provider == "anthropic":
        from chatdb.infrastructure.llm.anthropic_client import AnthropicProvider
        return AnthropicProvider(target.config)

    if target.provider == "openai":
        from chatdb.infrastructure.llm.openai_client import OpenAIProvider
        return OpenAIProvider(target.config)

    from chatdb.infrastructure.llm.openai_compatible_client import OpenAICompatibleProvider
    return OpenAICompatibleProvider(target.config)
