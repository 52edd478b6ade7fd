"""Provider factory."""
from __future__ import annotations

import logging
from functools import lru_cache

from taskbreaker.core.config import settings
from taskbreaker.llm.base import LLMProvider
from taskbreaker.llm.noop import NoopProvider

logger = logging.getLogger(__name__)


def build_llm_provider(name: str) -> LLMProvider:
    provider = name.lower()
    if provider == "anthropic":
        from taskbreaker.llm.anthropic_provider import AnthropicProvider

        return AnthropicProvider()
    if provider == "openai":
        from taskbreaker.llm.openai_provider import OpenAIProvider

        return OpenAIProvider()
    if provider != "noop":
        logger.warning("Unknown LLM_PROVIDER %r; generation disabled.", name)
    return NoopProvider()


@lru_cache
def get_llm_provider() -> LLMProvider:
    provider = build_llm_provider(settings.llm_provider)
    if not provider.is_available():
        logger.warning("LLM provider %s has no credentials; AI features will use fallbacks.", provider.name)
    return provider
