import pytest

from chatdb.domain.entities import LLMProviderConfig
from chatdb.domain.errors import ConfigurationError
from chatdb.infrastructure.llm.registry import classify_provider, resolve_llm_provider
from chatdb.infrastructure.llm.anthropic_client import AnthropicProvider
from chatdb.infrastructure.llm.openai_client import OpenAIProvider
from chatdb.infrastructure.llm.openai_compatible_client import OpenAICompatibleProvider


def test_anthropic_key_prefix_wins_over_openai_prefix():
    assert classify_provider("sk-ant-api03-abc").provider == "anthropic"


def test_openai_key_prefix():
    target = classify_provider("sk-proj-abc")
    assert target.provider == "openai"
    assert target.config.api_key == "sk-proj-abc"


def test_url_string_means_compatible_server():
    target = classify_provider("http://localhost:11434")
    assert target.provider == "openai-compatible"
    assert target.config.url == "http://localhost:11434"


def test_unrecognized_string_rejected():
    with pytest.raises(ConfigurationError) as exc_info:
        classify_provider("not-a-key")
    assert "Cannot auto-detect LLM provider" in exc_info.value.message


def test_explicit_provider_wins():
    target = classify_provider(LLMProviderConfig(provider="anthropic", api_key="sk-proj-abc"))
    assert target.provider == "anthropic"


def test_unknown_explicit_provider_rejected():
    with pytest.raises(ConfigurationError):
        classify_provider({"provider": "cohere", "api_key": "x"})


def test_mapping_with_camel_case_keys():
    target = classify_provider({"apiKey": "sk-ant-xyz", "contextLength": 1000})
    assert target.provider == "anthropic"
    assert target.config.context_length == 1000


def test_url_with_unknown_key_is_openai_endpoint():
    target = classify_provider({"url": "https://llm.internal", "api_key": "token-123"})
    assert target.provider == "openai"


def test_nothing_to_go_on_rejected():
    with pytest.raises(ConfigurationError) as exc_info:
        classify_provider(LLMProviderConfig(model="gpt-4o"))
    assert "Specify provider explicitly" in exc_info.value.message


def test_resolve_builds_matching_provider():
    assert isinstance(resolve_llm_provider("sk-ant-abc"), AnthropicProvider)
    assert isinstance(resolve_llm_provider("sk-abc"), OpenAIProvider)
    assert isinstance(resolve_llm_provider("http://localhost:8080"), OpenAICompatibleProvider)


def test_missing_key_for_hosted_provider_is_configuration_error():
    with pytest.raises(ConfigurationError):
        resolve_llm_provider({"provider": "openai"})
    with pytest.raises(ConfigurationError):
        resolve_llm_provider({"provider": "anthropic"})
