import json
from typing import List, Optional
import logging

import httpx

from chatdb.domain.interfaces import ILLMProvider
from chatdb.domain.entities import LLMMessage, GenerateResult, LLMProviderConfig
from chatdb.domain.errors import ConfigurationError, ContextOverflowError, LLMError
from chatdb.infrastructure.llm.response_schema import (
    SQL_RESPONSE_TOOL,
    DEFAULT_TEMPERATURE,
    DEFAULT_MAX_TOKENS,
)

logger = logging.getLogger(__name__)

MODEL_CONTEXT = {
    "claude-sonnet-4-5-20250929": 200_000,
    "claude-opus-4-6": 200_000,
    "claude-haiku-4-5-20251001": 200_000,
    "claude-3-5-sonnet-20241022": 200_000,
    "claude-3-5-haiku-20241022": 200_000,
    "claude-3-opus-20240229": 200_000,
}
DEFAULT_CONTEXT_LENGTH = 200_000
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(ILLMProvider):
    """
    LLM provider for the Anthropic Messages API.

    The system prompt travels as a top-level string and the JSON payload is
    obtained through a forced ``sql_response`` tool call.
    """

    name = "anthropic"

    def __init__(
        self,
        config: LLMProviderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 60.0
    ):
        if not config.api_key:
            raise ConfigurationError("Anthropic API key is required")

        self.api_key = config.api_key
        self.base_url = (config.url or "https://api.anthropic.com").rstrip("/")
        self.model = config.model or "claude-sonnet-4-5-20250929"
        self.temperature = config.temperature if config.temperature is not None else DEFAULT_TEMPERATURE
        self.context_length_override = config.context_length
        self.transport = transport
        self.timeout = timeout

    async def generate(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> GenerateResult:
        system_prompt = next((m.content for m in messages if m.role == "system"), "")
        body = {
            "model": self.model,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
            "temperature": temperature if temperature is not None else self.temperature,
            "system": system_prompt,
            "messages": [m.to_dict() for m in messages if m.role != "system"],
            "tools": [SQL_RESPONSE_TOOL],
            "tool_choice": {"type": "tool", "name": SQL_RESPONSE_TOOL["name"]},
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/v1/messages", json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Anthropic request failed: {e}")
            raise LLMError(f"Anthropic request failed: {e}", self.name) from e

        if response.is_error:
            text = response.text
            if "context" in text or "too long" in text:
                raise ContextOverflowError(self.name)
            logger.error(f"Anthropic error ({response.status_code}): {text}")
            raise LLMError(f"Anthropic error ({response.status_code}): {text}", self.name, response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Anthropic returned a non-JSON body: {e}")
            raise LLMError(
                f"Anthropic returned a non-JSON body: {e}", self.name, response.status_code
            ) from e
        if not isinstance(data, dict):
            raise LLMError("Unexpected response body from Anthropic", self.name, response.status_code)

        tool_use = next(
            (
                block for block in data.get("content") or []
                if isinstance(block, dict) and block.get("type") == "tool_use"
            ),
            None
        )
        if not tool_use or not tool_use.get("input"):
            raise LLMError("No tool_use response from Anthropic", self.name)

        return GenerateResult(content=json.dumps(tool_use["input"]), model=self.model)

    async def get_context_length(self) -> int:
        if self.context_length_override:
            return self.context_length_override
        return MODEL_CONTEXT.get(self.model, DEFAULT_CONTEXT_LENGTH)

    async def get_model_id(self) -> str:
        return self.model
