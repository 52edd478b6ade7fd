"""OpenAI chat-completions provider."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import openai

from taskbreaker.core.config import settings
from taskbreaker.core.errors import ProviderUnavailableError
from taskbreaker.llm.base import GenerationConstraints, LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    name = "openai"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, client: Any = None):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.model = model or settings.openai_model
        if client is not None:
            self._client = client
        else:
            self._client = openai.AsyncOpenAI(api_key=self.api_key) if self.api_key else None

    def is_available(self) -> bool:
        return self._client is not None

    async def generate(self, prompt: str, constraints: Optional[GenerationConstraints] = None) -> str:
        if self._client is None:
            raise ProviderUnavailableError("OPENAI_API_KEY missing", provider=self.name)

        constraints = constraints or GenerationConstraints()
        messages: List[Dict[str, str]] = []
        if constraints.system_prompt:
            messages.append({"role": "system", "content": constraints.system_prompt})
        messages.append({"role": "user", "content": prompt})

        request: Dict[str, Any] = {
            "model": constraints.model or self.model,
            "messages": messages,
        }
        if constraints.json_mode:
            request["response_format"] = {"type": "json_object"}
        if constraints.max_tokens:
            request["max_tokens"] = constraints.max_tokens
        if constraints.temperature is not None:
            request["temperature"] = constraints.temperature

        try:
            completion = await self._client.chat.completions.create(**request)
        except openai.OpenAIError as exc:
            logger.warning("OpenAI call failed (model=%s): %s", request["model"], exc)
            raise ProviderUnavailableError(str(exc), provider=self.name, original_error=exc) from exc

        if not completion.choices:
            logger.warning("OpenAI returned no choices (model=%s)", request["model"])
            raise ProviderUnavailableError("OpenAI returned no choices", provider=self.name)
        return completion.choices[0].message.content or ""
