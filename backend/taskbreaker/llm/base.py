"""Provider interface shared by the decomposition and coaching pipelines."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class GenerationConstraints:
    system_prompt: Optional[str] = None
    model: Optional[str] = None
    json_mode: bool = False
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None


class LLMProvider:
    """Base interface for text-generation vendors."""

    name: str = "base"

    def is_available(self) -> bool:
        raise NotImplementedError

    async def generate(self, prompt: str, constraints: Optional[GenerationConstraints] = None) -> str:
        """Return generated text or raise ``ProviderUnavailableError``."""
        raise NotImplementedError
