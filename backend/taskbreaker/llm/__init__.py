"""Text-generation providers behind a vendor-neutral interface."""

from taskbreaker.llm.base import GenerationConstraints, LLMProvider
from taskbreaker.llm.factory import get_llm_provider

__all__ = ["GenerationConstraints", "LLMProvider", "get_llm_provider"]
