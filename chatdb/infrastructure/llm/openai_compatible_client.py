import asyncio
from typing import List, Optional
import logging

import httpx

from chatdb.domain.interfaces import ILLMProvider
from chatdb.domain.entities import LLMMessage, GenerateResult, LLMProviderConfig
from chatdb.domain.errors import ContextOverflowError, LLMError
from chatdb.infrastructure.llm.response_schema import (
    SQL_RESPONSE_SCHEMA,
    DEFAULT_TEMPERATURE,
    DEFAULT_MAX_TOKENS,
)

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:11434"
DEFAULT_CONTEXT_LENGTH = 4096
CONTEXT_LENGTH_FIELDS = ("context_length", "max_model_len", "context_window")


class OpenAICompatibleProvider(ILLMProvider):
    """
    LLM provider for local or self-hosted servers speaking the OpenAI
    chat-completions protocol (Ollama, llama.cpp, vLLM, LM Studio...).

    Model id and context length are discovered once from ``/v1/models`` and
    kept for the provider's lifetime; a missing endpoint falls back to
    conservative defaults.
    """

    name = "openai-compatible"

    def __init__(
        self,
        config: LLMProviderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 120.0
    ):
        self.base_url = (config.url or DEFAULT_URL).rstrip("/")
        self.model = config.model or ""
        self.temperature = config.temperature if config.temperature is not None else DEFAULT_TEMPERATURE
        self.context_length_override = config.context_length
        self.transport = transport
        self.timeout = timeout
        self._cached_context_length: Optional[int] = None
        self._cached_model_id: Optional[str] = None
        self._model_info_lock = asyncio.Lock()

    async def generate(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> GenerateResult:
        body = {
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature if temperature is not None else self.temperature,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
            "response_format": {
                "type": "json_schema",
                "json_schema": SQL_RESPONSE_SCHEMA,
            },
        }
        if self.model:
            body["model"] = self.model

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/v1/chat/completions", json=body)
        except httpx.HTTPError as e:
            logger.error(f"AI server request failed: {e}")
            raise LLMError(f"AI server request failed: {e}", self.name) from e

        if response.is_error:
            text = response.text
            if response.status_code == 400 and "context" in text:
                raise ContextOverflowError(self.name)
            logger.error(f"AI server error ({response.status_code}): {text}")
            raise LLMError(f"AI server error ({response.status_code}): {text}", self.name, response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"AI server returned a non-JSON body: {e}")
            raise LLMError(
                f"AI server returned a non-JSON body: {e}", self.name, response.status_code
            ) from e

        choices = data.get("choices") if isinstance(data, dict) else None
        choice = choices[0] if isinstance(choices, list) and choices else {}
        message = choice.get("message") if isinstance(choice, dict) else None
        content = (message.get("content") if isinstance(message, dict) else None) or ""
        if not content:
            raise LLMError("No response content from AI server", self.name)

        return GenerateResult(content=content, model=await self.get_model_id())

    async def get_context_length(self) -> int:
        if self.context_length_override:
            return self.context_length_override
        await self._fetch_model_info()
        return self._cached_context_length

    async def get_model_id(self) -> str:
        if self.model:
            return self.model
        await self._fetch_model_info()
        return self._cached_model_id

    async def _fetch_model_info(self) -> None:
        """Query ``/v1/models`` once; concurrent callers share the first lookup"""
        async with self._model_info_lock:
            if self._cached_context_length is not None and self._cached_model_id is not None:
                return

            try:
                async with httpx.AsyncClient(timeout=10.0, transport=self.transport) as client:
                    response = await client.get(f"{self.base_url}/v1/models")
                if response.is_success:
                    payload = response.json()
                    models = (payload.get("data") if isinstance(payload, dict) else None) or [{}]
                    model = models[0] if isinstance(models, list) and isinstance(models[0], dict) else {}
                    self._cached_model_id = model.get("id") or "unknown"
                    self._cached_context_length = next(
                        (model[f] for f in CONTEXT_LENGTH_FIELDS if model.get(f)),
                        DEFAULT_CONTEXT_LENGTH
                    )
                    logger.info(
                        f"Discovered model {self._cached_model_id} "
                        f"(context {self._cached_context_length} tokens)"
                    )
                    return
                logger.warning(f"Model listing unavailable ({response.status_code}), using defaults")
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Could not fetch model info from {self.base_url}: {e}")

            self._cached_context_length = DEFAULT_CONTEXT_LENGTH
            self._cached_model_id = "unknown"
