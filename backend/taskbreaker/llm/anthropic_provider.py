"""Anthropic messages-API provider."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import anthropic

from taskbreaker.core.config import settings
from taskbreaker.core.errors import ProviderUnavailableError
from taskbreaker.llm.base import GenerationConstraints, LLMProvider

logger = logging.getLogger(__name__)

JSON_ONLY_SUFFIX = "Respond with a single JSON object and nothing else."


class AnthropicProvider(LLMProvider):
    name = "anthropic"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, client: Any = None):
        self.api_key = api_key if api_key is not None else settings.anthropic_api_key
        self.model = model or settings.anthropic_model
        if client is not None:
            self._client = client
        else:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key) if self.api_key else None

    def is_available(self) -> bool:
        return self._client is not None

    async def generate(self, prompt: str, constraints: Optional[GenerationConstraints] = None) -> str:
        if self._client is None:
            raise ProviderUnavailableError("ANTHROPIC_API_KEY missing", provider=self.name)

        constraints = constraints or GenerationConstraints()
        system_prompt = constraints.system_prompt or ""
        if constraints.json_mode:
            system_prompt = f"{system_prompt}\n\n{JSON_ONLY_SUFFIX}".strip()

        # Vendor-specific model names only apply to this provider.
        model = constraints.model if constraints.model and constraints.model.startswith("claude") else self.model
        request: Dict[str, Any] = {
            "model": model,
            "max_tokens": constraints.max_tokens or settings.llm_max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request["system"] = system_prompt
        if constraints.temperature is not None:
            request["temperature"] = constraints.temperature

        try:
            response = await self._client.messages.create(**request)
        except anthropic.AnthropicError as exc:
            logger.warning("Anthropic call failed (model=%s): %s", model, exc)
            raise ProviderUnavailableError(str(exc), provider=self.name, original_error=exc) from exc

        return "".join(
            getattr(block, "text", "") for block in response.content if getattr(block, "type", None) == "text"
        )
