from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from taskbreaker.core.errors import ProviderUnavailableError
from taskbreaker.llm.base import GenerationConstraints, LLMProvider
from taskbreaker.services.task_difficulty import analyze_task_difficulty


class _OneAnswer(LLMProvider):
    name = "one-answer"

    def __init__(self, answer: str | Exception):
        self.answer = answer
        self.prompt: Optional[str] = None

    def is_available(self) -> bool:
        return True

    async def generate(self, prompt: str, constraints: Optional[GenerationConstraints] = None) -> str:
        self.prompt = prompt
        if isinstance(self.answer, Exception):
            raise self.answer
        return self.answer


@pytest.mark.parametrize(
    "answer, expected",
    [("high", "high"), ("  Low.\n", "low"), ("MEDIUM", "medium"), ("it depends", "medium")],
)
def test_answer_is_normalized(answer, expected) -> None:
    provider = _OneAnswer(answer)

    assert asyncio.run(analyze_task_difficulty("Refactor billing", provider=provider)) == expected


def test_context_is_included_in_prompt() -> None:
    provider = _OneAnswer("low")

    asyncio.run(analyze_task_difficulty("Water plants", "only the balcony", provider=provider))

    assert "only the balcony" in provider.prompt


def test_provider_failure_defaults_to_medium() -> None:
    provider = _OneAnswer(ProviderUnavailableError("quota exceeded"))

    assert asyncio.run(analyze_task_difficulty("Refactor billing", provider=provider)) == "medium"
