"""Provider used when no vendor is configured."""
from __future__ import annotations

import logging
from typing import Optional

from taskbreaker.core.errors import ProviderUnavailableError
from taskbreaker.llm.base import GenerationConstraints, LLMProvider

logger = logging.getLogger(__name__)


class NoopProvider(LLMProvider):
    name = "noop"

    def is_available(self) -> bool:
        return False

    async def generate(self, prompt: str, constraints: Optional[GenerationConstraints] = None) -> str:
        logger.info("Generation requested (noop provider), prompt_chars=%s", len(prompt))
        raise ProviderUnavailableError("No LLM provider configured", provider=self.name)
