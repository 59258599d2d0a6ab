from typing import List, Optional
import logging

import openai
import tiktoken

from chatdb.domain.interfaces import ILLMProvider
from chatdb.domain.entities import LLMMessage, GenerateResult, LLMProviderConfig
from chatdb.domain.errors import ConfigurationError, ContextOverflowError, LLMError
from chatdb.infrastructure.llm.response_schema import (
    SQL_RESPONSE_SCHEMA,
    DEFAULT_TEMPERATURE,
    DEFAULT_MAX_TOKENS,
)

logger = logging.getLogger(__name__)

# Known context lengths for common models
MODEL_CONTEXT = {
    "gpt-4o": 128_000,
    "gpt-4o-mini": 128_000,
    "gpt-4-turbo": 128_000,
    "gpt-4": 8_192,
    "gpt-3.5-turbo": 16_385,
    "o1": 200_000,
    "o1-mini": 128_000,
    "o3-mini": 200_000,
}
DEFAULT_CONTEXT_LENGTH = 128_000


class OpenAIProvider(ILLMProvider):
    """
    LLM provider for the OpenAI API (or an OpenAI endpoint behind a custom URL)
    """

    name = "openai"

    def __init__(self, config: LLMProviderConfig):
        if not config.api_key:
            raise ConfigurationError("OpenAI API key is required")

        self.base_url = (config.url or "https://api.openai.com").rstrip("/")
        self.model = config.model or "gpt-4o-mini"
        self.temperature = config.temperature if config.temperature is not None else DEFAULT_TEMPERATURE
        self.context_length_override = config.context_length
        self.client = openai.AsyncOpenAI(
            api_key=config.api_key,
            base_url=f"{self.base_url}/v1",
            max_retries=0
        )
        self._tokenizer = None

    def _count_tokens(self, messages: List[LLMMessage]) -> int:
        """Count prompt tokens, loading the tokenizer on first use"""
        if self._tokenizer is None:
            try:
                self._tokenizer = tiktoken.encoding_for_model(self.model)
            except KeyError:
                self._tokenizer = tiktoken.get_encoding("cl100k_base")
        return sum(len(self._tokenizer.encode(m.content)) for m in messages)

    async def generate(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> GenerateResult:
        """Generate a JSON-schema constrained completion"""
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Input tokens: {self._count_tokens(messages)}")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[m.to_dict() for m in messages],
                temperature=temperature if temperature is not None else self.temperature,
                max_tokens=max_tokens or DEFAULT_MAX_TOKENS,
                response_format={
                    "type": "json_schema",
                    "json_schema": SQL_RESPONSE_SCHEMA,
                },
            )
        except openai.APIStatusError as e:
            if e.status_code == 400 and "context" in str(e):
                raise ContextOverflowError(self.name) from e
            logger.error(f"OpenAI error ({e.status_code}): {e}")
            raise LLMError(f"OpenAI error ({e.status_code}): {e}", self.name, e.status_code) from e
        except openai.APIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise LLMError(f"OpenAI request failed: {e}", self.name) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError("No response content from OpenAI", self.name)

        return GenerateResult(content=content, model=self.model)

    async def get_context_length(self) -> int:
        if self.context_length_override:
            return self.context_length_override
        return MODEL_CONTEXT.get(self.model, DEFAULT_CONTEXT_LENGTH)

    async def get_model_id(self) -> str:
        return self.model
